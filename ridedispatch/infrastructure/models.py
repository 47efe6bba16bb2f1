"""
SQLAlchemy ORM models.

Tables
------
* ``users``          -- riders, drivers and admins (read-only to dispatch)
* ``rides``          -- ride requests and their lifecycle
* ``user_locations`` -- last-known position, one row per user

Status and role are stored as plain strings and parsed by the
repositories, so a corrupt value surfaces as ``MappingError`` instead of
being coerced.

Indexes
-------
* **B-Tree** on ``status``, ``rider_id``, ``driver_id`` and the H3 cell
  columns used by the proximity pre-filter.
* **Unique** on ``user_locations.user_id`` -- the upsert conflict target.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)

from .database import Base
from ridedispatch.domain.enums import RideStatus, UserRole


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(80), unique=True, nullable=False)
    phone = Column(String(32), unique=True, nullable=True)
    password = Column(String(255), nullable=False)
    role = Column(String(20), default=UserRole.RIDER.value, nullable=False)
    car_type = Column(String(50), nullable=True)
    license_number = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rider_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    pickup_address = Column(String(255), nullable=True)
    dest_lat = Column(Float, nullable=False)
    dest_lng = Column(Float, nullable=False)
    dest_address = Column(String(255), nullable=True)
    pickup_h3 = Column(String(20), nullable=False)

    status = Column(String(20), default=RideStatus.PENDING.value, nullable=False)
    idempotency_key = Column(String(64), unique=True, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_rides_status", "status"),
        Index("idx_rides_rider", "rider_id"),
        Index("idx_rides_driver", "driver_id"),
        Index("idx_rides_pickup_h3", "pickup_h3"),
    )


class UserLocationModel(Base):
    __tablename__ = "user_locations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    address = Column(String(255), nullable=True)
    h3_cell = Column(String(20), nullable=False)
    is_online = Column(Boolean, default=True, nullable=False)
    last_updated = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_user_locations_cell", "h3_cell"),
        Index("idx_user_locations_online", "is_online"),
    )
