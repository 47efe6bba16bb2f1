"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ridedispatch.domain.entities import NearbyDriver
from ridedispatch.domain.enums import RideStatus


# ── Requests ──────────────────────────────────────────────────────────


class RideCreateRequest(BaseModel):
    rider_id: int = Field(..., gt=0)
    pickup_lat: float = Field(..., ge=-90, le=90)
    pickup_lng: float = Field(..., ge=-180, le=180)
    dest_lat: float = Field(..., ge=-90, le=90)
    dest_lng: float = Field(..., ge=-180, le=180)
    pickup_address: Optional[str] = Field(None, max_length=255)
    dest_address: Optional[str] = Field(None, max_length=255)
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID to prevent duplicate requests on retries.",
    )


class AcceptRideRequest(BaseModel):
    driver_id: int = Field(..., gt=0)


class RideActionRequest(BaseModel):
    action: str = Field(
        ...,
        description=(
            "One of start_drive_to_pickup, arrived_at_pickup, start_ride, "
            "complete, cancel"
        ),
    )


class LocationUpdateRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = Field(None, max_length=255)


class DriverLocationRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


# ── Responses ─────────────────────────────────────────────────────────


class RideCreatedResponse(BaseModel):
    ride_id: int
    status: RideStatus = RideStatus.PENDING


class AcceptRideResponse(BaseModel):
    ride_id: int
    driver_id: int
    status: RideStatus = RideStatus.ACCEPTED


class RideActionResponse(BaseModel):
    ride_id: int
    action: str
    success: bool = True


class RideStatusResponse(BaseModel):
    ride_id: int
    status: str


class RideResponse(BaseModel):
    id: int
    rider_id: int
    driver_id: Optional[int] = None
    pickup_lat: float
    pickup_lng: float
    pickup_address: Optional[str] = None
    dest_lat: float
    dest_lng: float
    dest_address: Optional[str] = None
    status: RideStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserLocationResponse(BaseModel):
    user_id: int
    latitude: float
    longitude: float
    address: Optional[str] = None
    is_online: bool
    last_updated: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NearbyDriverResponse(BaseModel):
    driver_id: int
    username: str
    phone: Optional[str] = None
    car_type: Optional[str] = None
    license_number: Optional[str] = None
    latitude: float
    longitude: float
    address: Optional[str] = None
    distance_km: float
    last_updated: Optional[datetime] = None

    @classmethod
    def from_entity(cls, nd: NearbyDriver) -> "NearbyDriverResponse":
        return cls(
            driver_id=nd.driver.id,
            username=nd.driver.username,
            phone=nd.driver.phone,
            car_type=nd.driver.car_type,
            license_number=nd.driver.license_number,
            latitude=nd.location.latitude,
            longitude=nd.location.longitude,
            address=nd.location.address,
            distance_km=round(nd.distance_km, 3),
            last_updated=nd.location.last_updated,
        )


class SuccessResponse(BaseModel):
    success: bool = True


class HealthResponse(BaseModel):
    status: str = "ok"
