"""
Dispatch Facade
===============

The one entry point the gateway talks to.  Composes ``RideStateMachine``,
``MatchingEngine`` and ``LocationStore`` and translates their results into
the sentinel contract callers branch on:

* ``request_ride``  -> new ride id, ``0`` on invalid input, unknown rider
  or store error
* ``accept_ride``   -> ride id, ``0`` if the ride is gone or not PENDING,
  or the driver is unknown
* lifecycle steps   -> ``True`` / ``False``
* queries           -> entity / ``None`` / list (empty on invalid input)

Only ``StoreFault`` (and its ``MappingError`` subclass) is raised, except
from ``request_ride`` and ``update_driver_location`` which report store
errors as their failure value.
"""

from __future__ import annotations

import logging
from typing import Optional

from ridedispatch.config import Settings
from ridedispatch.domain.entities import NearbyDriver, Ride, UserLocation
from ridedispatch.domain.enums import (
    ACTION_TARGETS,
    RideAction,
    TransitionOutcome,
    UserRole,
)
from ridedispatch.domain.errors import StoreFault, ValidationError
from ridedispatch.domain.validation import parse_action
from ridedispatch.infrastructure.database import SessionFactory, unit_of_work
from ridedispatch.infrastructure.repositories import UserRepository

from .location_store import LocationStore
from .matching_engine import MatchingEngine
from .ride_state_machine import RideStateMachine

logger = logging.getLogger(__name__)


class DispatchFacade:
    def __init__(
        self,
        session_factory: SessionFactory,
        rides: RideStateMachine,
        matching: MatchingEngine,
        locations: LocationStore,
    ):
        self._session_factory = session_factory
        self.rides = rides
        self.matching = matching
        self.locations = locations

    @classmethod
    def from_session_factory(
        cls, session_factory: SessionFactory, settings: Settings
    ) -> "DispatchFacade":
        return cls(
            session_factory,
            rides=RideStateMachine(session_factory),
            matching=MatchingEngine(
                session_factory,
                max_prefilter_cells=settings.max_prefilter_cells,
            ),
            locations=LocationStore(session_factory),
        )

    # ── Ride request & matching ───────────────────────────────────────

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
        try:
            return await self.rides.request_ride(
                rider_id,
                pickup_lat,
                pickup_lng,
                dest_lat,
                dest_lng,
                pickup_address=pickup_address,
                dest_address=dest_address,
                idempotency_key=idempotency_key,
            )
        except ValidationError as exc:
            logger.warning("Ride request from rider %d rejected: %s", rider_id, exc)
            return 0
        except StoreFault:
            logger.exception("Failed to request ride for rider %d", rider_id)
            return 0

    async def pending_rides_near(
        self, driver_lat: float, driver_lng: float, radius_km: float
    ) -> list[Ride]:
        try:
            return await self.matching.pending_rides_near(
                driver_lat, driver_lng, radius_km
            )
        except ValidationError as exc:
            logger.warning("Pending-ride search rejected: %s", exc)
            return []

    async def find_nearby_drivers(
        self, rider_lat: float, rider_lng: float, radius_km: float
    ) -> list[NearbyDriver]:
        try:
            return await self.matching.nearby_drivers(rider_lat, rider_lng, radius_km)
        except ValidationError as exc:
            logger.warning("Nearby-driver search rejected: %s", exc)
            return []

    # ── Acceptance & lifecycle ────────────────────────────────────────

    async def accept_ride(self, driver_id: int, ride_id: int) -> int:
        outcome = await self.rides.accept_ride(driver_id, ride_id)
        return ride_id if outcome is TransitionOutcome.APPLIED else 0

    async def cancel_ride(self, ride_id: int) -> bool:
        return await self.rides.cancel_ride(ride_id) is TransitionOutcome.APPLIED

    async def start_drive_to_pickup(self, ride_id: int) -> bool:
        outcome = await self.rides.start_drive_to_pickup(ride_id)
        return outcome is TransitionOutcome.APPLIED

    async def arrived_at_pickup(self, ride_id: int) -> bool:
        return await self.rides.arrived_at_pickup(ride_id) is TransitionOutcome.APPLIED

    async def start_ride_to_destination(self, ride_id: int) -> bool:
        outcome = await self.rides.start_ride_to_destination(ride_id)
        return outcome is TransitionOutcome.APPLIED

    async def complete_ride(self, ride_id: int) -> bool:
        return await self.rides.complete_ride(ride_id) is TransitionOutcome.APPLIED

    async def apply_action(
        self, ride_id: int, action: str | RideAction
    ) -> TransitionOutcome:
        """Run a named lifecycle action (``start_ride``, ``cancel`` ...)."""
        try:
            target = ACTION_TARGETS[parse_action(action)]
        except ValidationError as exc:
            logger.warning("Ride %d: %s", ride_id, exc)
            return TransitionOutcome.INVALID
        return await self.rides.transition(ride_id, target)

    # ── Real-time tracking ────────────────────────────────────────────

    async def update_driver_location(
        self, driver_id: int, lat: float, lng: float
    ) -> bool:
        """Driver-tracking write: role-checked, always marks the driver online."""
        try:
            async with unit_of_work(self._session_factory) as session:
                role = await UserRepository(session).get_role(driver_id)
            if role is None:
                logger.warning("User %d not found; location ignored", driver_id)
                return False
            if role is not UserRole.DRIVER:
                logger.warning(
                    "User %d is not a driver (role %s); location ignored",
                    driver_id, role.value,
                )
                return False
            return await self.locations.update_location(
                driver_id, lat, lng, mark_online=True
            )
        except ValidationError as exc:
            logger.warning("Driver %d location rejected: %s", driver_id, exc)
            return False
        except StoreFault:
            logger.exception("Failed to update location for driver %d", driver_id)
            return False

    async def update_user_location(
        self, user_id: int, lat: float, lng: float, address: str | None = None
    ) -> bool:
        try:
            return await self.locations.update_location(user_id, lat, lng, address)
        except ValidationError as exc:
            logger.warning("User %d location rejected: %s", user_id, exc)
            return False

    async def get_user_location(self, user_id: int) -> Optional[UserLocation]:
        return await self.locations.get_location(user_id)

    # Role-agnostic aliases used for live tracking screens
    get_driver_location = get_user_location
    get_rider_location = get_user_location

    async def go_offline(self, user_id: int) -> bool:
        return await self.locations.set_online(user_id, False)

    async def remove_user_location(self, user_id: int) -> bool:
        return await self.locations.remove_location(user_id)

    # ── Ride information ──────────────────────────────────────────────

    async def get_ride(self, ride_id: int) -> Optional[Ride]:
        return await self.rides.get_ride(ride_id)

    async def get_current_ride(self, user_id: int) -> Optional[Ride]:
        return await self.rides.current_ride(user_id)

    async def get_ride_history(self, user_id: int) -> list[Ride]:
        return await self.rides.ride_history(user_id)

    async def get_ride_status(self, ride_id: int) -> Optional[str]:
        status = await self.rides.get_status(ride_id)
        return status.value if status else None
