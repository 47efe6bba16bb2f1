"""
Domain entities shared by the store, the services and the HTTP adapter.

These are the single data contract of the system: repositories map ORM
rows into them, services return them, API schemas read them with
``from_attributes``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .enums import RideStatus, UserRole


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    address: Optional[str] = None


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Ride:
    id: int
    rider_id: int
    pickup_lat: float
    pickup_lng: float
    dest_lat: float
    dest_lng: float
    status: RideStatus = RideStatus.PENDING
    driver_id: Optional[int] = None
    pickup_address: Optional[str] = None
    dest_address: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def pickup(self) -> Location:
        return Location(self.pickup_lat, self.pickup_lng, self.pickup_address)

    @property
    def destination(self) -> Location:
        return Location(self.dest_lat, self.dest_lng, self.dest_address)


@dataclass
class UserLocation:
    user_id: int
    latitude: float
    longitude: float
    address: Optional[str] = None
    is_online: bool = False
    last_updated: Optional[datetime] = None


@dataclass
class User:
    id: int
    username: str
    role: UserRole
    phone: Optional[str] = None
    car_type: Optional[str] = None
    license_number: Optional[str] = None


@dataclass
class NearbyDriver:
    """An online driver found by a proximity search."""

    driver: User
    location: UserLocation
    distance_km: float
