"""
Proximity Matching
==================

Two read-only radius queries:

* ``pending_rides_near``  -- PENDING rides whose pickup is within R of a driver
* ``nearby_drivers``      -- online drivers whose last position is within R
  of a rider

Both run the same pipeline:

1. **Cell pre-filter** -- ``search_cells`` returns the H3 disk covering the
   circle (or ``None`` for very large radii -> status-only scan).
2. **Haversine refinement** -- every candidate is kept iff its great-circle
   distance is ``<= R``.  This is the only metric that decides membership.
3. Results are sorted nearest first (callers must not rely on order).

Results are snapshots: a ride listed here may be accepted by someone else
before the caller acts, which ``accept_ride``'s compare-and-set handles.

Complexity: O(C) cells + O(M) candidates, M = rows in those cells.
"""

from __future__ import annotations

import logging

from ridedispatch.domain.distance import within_radius
from ridedispatch.domain.entities import NearbyDriver, Ride
from ridedispatch.domain.search import search_cells
from ridedispatch.domain.validation import validate_coordinates, validate_radius
from ridedispatch.infrastructure.database import SessionFactory, unit_of_work
from ridedispatch.infrastructure.repositories import (
    RideRepository,
    UserLocationRepository,
)

logger = logging.getLogger(__name__)


class MatchingEngine:
    def __init__(
        self,
        session_factory: SessionFactory,
        max_prefilter_cells: int = 5000,
    ):
        self._session_factory = session_factory
        self._max_prefilter_cells = max_prefilter_cells

    def _cells(self, lat: float, lng: float, radius_km: float):
        return search_cells(
            lat, lng, radius_km, max_cells=self._max_prefilter_cells
        )

    async def pending_rides_near(
        self, driver_lat: float, driver_lng: float, radius_km: float
    ) -> list[Ride]:
        validate_coordinates(driver_lat, driver_lng, "driver")
        validate_radius(radius_km)

        cells = self._cells(driver_lat, driver_lng, radius_km)
        async with unit_of_work(self._session_factory) as session:
            candidates = await RideRepository(session).get_pending_rides(cells)

        hits: list[tuple[float, Ride]] = []
        for ride in candidates:
            inside, d = within_radius(
                driver_lat, driver_lng, ride.pickup_lat, ride.pickup_lng, radius_km
            )
            if inside:
                hits.append((d, ride))
        hits.sort(key=lambda pair: pair[0])

        logger.info(
            "Found %d pending rides within %.2f km of (%.5f, %.5f)",
            len(hits), radius_km, driver_lat, driver_lng,
        )
        return [ride for _, ride in hits]

    async def nearby_drivers(
        self, rider_lat: float, rider_lng: float, radius_km: float
    ) -> list[NearbyDriver]:
        validate_coordinates(rider_lat, rider_lng, "rider")
        validate_radius(radius_km)

        cells = self._cells(rider_lat, rider_lng, radius_km)
        async with unit_of_work(self._session_factory) as session:
            candidates = await UserLocationRepository(session).get_online_drivers(cells)

        result: list[NearbyDriver] = []
        for driver, loc in candidates:
            inside, d = within_radius(
                rider_lat, rider_lng, loc.latitude, loc.longitude, radius_km
            )
            if inside:
                result.append(NearbyDriver(driver=driver, location=loc, distance_km=d))
        result.sort(key=lambda nd: nd.distance_km)

        logger.info(
            "Found %d online drivers within %.2f km of (%.5f, %.5f)",
            len(result), radius_km, rider_lat, rider_lng,
        )
        return result
