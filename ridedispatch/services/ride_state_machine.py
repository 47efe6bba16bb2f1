"""
Ride State Machine
==================

    PENDING -> ACCEPTED -> DRIVER_EN_ROUTE -> ARRIVED -> IN_PROGRESS -> COMPLETED
    (any non-terminal status) -> CANCELLED

Every transition is one compare-and-set against the store:

    UPDATE rides SET status = :target, ... WHERE id = :id AND status IN (:sources)

so two callers racing on the same ride are serialised by the database
row lock, and exactly one of them sees a changed row.  No state is read
first to decide whether to write.

A failed transition is reported as ``TransitionOutcome.CONFLICT`` or
``NOT_FOUND``; the follow-up status read that tells them apart is for
reporting only.
"""

from __future__ import annotations

import logging
from typing import Optional

from ridedispatch.domain.enums import (
    RideStatus,
    TransitionOutcome,
    sources_for,
)
from ridedispatch.domain.entities import Ride
from ridedispatch.domain.search import point_cell
from ridedispatch.domain.validation import validate_coordinates
from ridedispatch.infrastructure.database import SessionFactory, unit_of_work
from ridedispatch.infrastructure.repositories import RideRepository, UserRepository

logger = logging.getLogger(__name__)


class RideStateMachine:
    """Owns ride records and enforces legal status transitions."""

    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    # ── Creation ──────────────────────────────────────────────────────

    async def request_ride(
        self,
        rider_id: int,
        pickup_lat: float,
        pickup_lng: float,
        dest_lat: float,
        dest_lng: float,
        *,
        pickup_address: str | None = None,
        dest_address: str | None = None,
        idempotency_key: str | None = None,
    ) -> int:
        """Create a PENDING ride; returns its id, or 0 for an unknown rider."""
        validate_coordinates(pickup_lat, pickup_lng, "pickup")
        validate_coordinates(dest_lat, dest_lng, "destination")

        async with unit_of_work(self._session_factory) as session:
            ride_id = await RideRepository(session).create_ride(
                rider_id=rider_id,
                pickup_lat=pickup_lat,
                pickup_lng=pickup_lng,
                dest_lat=dest_lat,
                dest_lng=dest_lng,
                pickup_h3=point_cell(pickup_lat, pickup_lng),
                pickup_address=pickup_address,
                dest_address=dest_address,
                idempotency_key=idempotency_key,
            )
        if ride_id is None:
            logger.info("Ride request rejected: rider %d not found", rider_id)
            return 0
        logger.info("Ride %d requested by rider %d", ride_id, rider_id)
        return ride_id

    # ── Transitions ───────────────────────────────────────────────────

    async def transition(
        self,
        ride_id: int,
        target: RideStatus,
        *,
        driver_id: int | None = None,
    ) -> TransitionOutcome:
        """Apply the single legal edge into *target*, if the ride is on it."""
        sources = sources_for(target)
        async with unit_of_work(self._session_factory) as session:
            repo = RideRepository(session)
            if await repo.compare_and_set_status(
                ride_id, sources, target, driver_id=driver_id
            ):
                logger.info("Ride %d -> %s", ride_id, target.value)
                return TransitionOutcome.APPLIED
            current = await repo.get_status(ride_id)
            driver_missing = (
                driver_id is not None
                and await UserRepository(session).get_role(driver_id) is None
            )

        if current is None:
            logger.info("Ride %d -> %s rejected: not found", ride_id, target.value)
            return TransitionOutcome.NOT_FOUND
        if driver_missing:
            logger.info(
                "Ride %d -> %s rejected: driver %d not found",
                ride_id, target.value, driver_id,
            )
            return TransitionOutcome.NOT_FOUND
        logger.info(
            "Ride %d -> %s rejected: ride is %s", ride_id, target.value, current.value
        )
        return TransitionOutcome.CONFLICT

    async def accept_ride(self, driver_id: int, ride_id: int) -> TransitionOutcome:
        """PENDING -> ACCEPTED, assigning *driver_id*.  Exactly one racer wins."""
        return await self.transition(
            ride_id, RideStatus.ACCEPTED, driver_id=driver_id
        )

    async def start_drive_to_pickup(self, ride_id: int) -> TransitionOutcome:
        return await self.transition(ride_id, RideStatus.DRIVER_EN_ROUTE)

    async def arrived_at_pickup(self, ride_id: int) -> TransitionOutcome:
        return await self.transition(ride_id, RideStatus.ARRIVED)

    async def start_ride_to_destination(self, ride_id: int) -> TransitionOutcome:
        return await self.transition(ride_id, RideStatus.IN_PROGRESS)

    async def complete_ride(self, ride_id: int) -> TransitionOutcome:
        return await self.transition(ride_id, RideStatus.COMPLETED)

    async def cancel_ride(self, ride_id: int) -> TransitionOutcome:
        """Any non-terminal status -> CANCELLED.  No actor check."""
        return await self.transition(ride_id, RideStatus.CANCELLED)

    # ── Reads ─────────────────────────────────────────────────────────

    async def get_ride(self, ride_id: int) -> Optional[Ride]:
        async with unit_of_work(self._session_factory) as session:
            return await RideRepository(session).get_by_id(ride_id)

    async def get_status(self, ride_id: int) -> Optional[RideStatus]:
        async with unit_of_work(self._session_factory) as session:
            return await RideRepository(session).get_status(ride_id)

    async def current_ride(self, user_id: int) -> Optional[Ride]:
        """Most recently created non-terminal ride where the user takes part."""
        async with unit_of_work(self._session_factory) as session:
            rides = await RideRepository(session).get_rides_for_user(
                user_id, active_only=True, limit=1
            )
        return rides[0] if rides else None

    async def ride_history(self, user_id: int) -> list[Ride]:
        async with unit_of_work(self._session_factory) as session:
            return await RideRepository(session).get_rides_for_user(user_id)
