"""
Last-known positions, one row per user.

Writes are a single ``INSERT ... ON CONFLICT (user_id) DO UPDATE``, so
concurrent updates for the same user never duplicate the row or lose
the online flag.
"""

from __future__ import annotations

import logging
from typing import Optional

from ridedispatch.domain.entities import UserLocation
from ridedispatch.domain.search import point_cell
from ridedispatch.domain.validation import validate_coordinates
from ridedispatch.infrastructure.database import SessionFactory, unit_of_work
from ridedispatch.infrastructure.repositories import UserLocationRepository

logger = logging.getLogger(__name__)


class LocationStore:
    def __init__(self, session_factory: SessionFactory):
        self._session_factory = session_factory

    async def update_location(
        self,
        user_id: int,
        lat: float,
        lng: float,
        address: str | None = None,
        *,
        mark_online: bool = False,
    ) -> bool:
        """
        Upsert the user's position.  ``mark_online`` is the driver-tracking
        path: it always sets ``is_online``.  Without it an existing row
        keeps its flag; a first write creates the row online.
        """
        validate_coordinates(lat, lng, "location")
        async with unit_of_work(self._session_factory) as session:
            written = await UserLocationRepository(session).upsert(
                user_id=user_id,
                latitude=lat,
                longitude=lng,
                address=address,
                h3_cell=point_cell(lat, lng),
                force_online=mark_online,
            )
        logger.debug("Location for user %d written=%s", user_id, written)
        return written

    async def get_location(self, user_id: int) -> Optional[UserLocation]:
        async with unit_of_work(self._session_factory) as session:
            return await UserLocationRepository(session).get_by_user(user_id)

    async def set_online(self, user_id: int, online: bool) -> bool:
        """Flip presence without moving the user; False if no row exists."""
        async with unit_of_work(self._session_factory) as session:
            return await UserLocationRepository(session).set_online(user_id, online)

    async def remove_location(self, user_id: int) -> bool:
        async with unit_of_work(self._session_factory) as session:
            removed = await UserLocationRepository(session).delete_by_user(user_id)
        if removed:
            logger.info("Location for user %d removed", user_id)
        return removed
