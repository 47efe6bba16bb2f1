"""Tests for distance, H3 search cells and the proximity queries."""

import math

import h3
import pytest
from sqlalchemy import select

from ridedispatch.config import Settings
from ridedispatch.domain.distance import EARTH_RADIUS_KM, haversine_km, within_radius
from ridedispatch.domain.errors import ValidationError
from ridedispatch.domain.search import (
    CELL_RESOLUTION,
    disk_size,
    point_cell,
    ring_count,
    search_cells,
)
from ridedispatch.infrastructure.models import RideModel, UserLocationModel
from ridedispatch.services.dispatch import DispatchFacade
from ridedispatch.services.matching_engine import MatchingEngine
from tests.conftest import CHICAGO, NYC, TIMES_SQUARE

KM_PER_DEG_LAT = math.pi * EARTH_RADIUS_KM / 180


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_km(19.0, 72.0, 19.0, 72.0) == 0.0

    def test_known_distance(self):
        # NYC -> Chicago ~1145 km
        d = haversine_km(*NYC, *CHICAGO)
        assert 1100 < d < 1200

    def test_symmetric(self):
        d1 = haversine_km(19.0, 72.0, 20.0, 73.0)
        d2 = haversine_km(20.0, 73.0, 19.0, 72.0)
        assert abs(d1 - d2) < 1e-6

    def test_antipodal_is_half_circumference(self):
        d = haversine_km(0.0, 0.0, 0.0, 180.0)
        assert abs(d - math.pi * EARTH_RADIUS_KM) < 1e-6

    def test_longitude_shrinks_away_from_equator(self):
        """One degree of longitude is shorter at 60N than at the equator."""
        assert haversine_km(60.0, 0.0, 60.0, 1.0) < 0.6 * haversine_km(0.0, 0.0, 0.0, 1.0)

    def test_within_radius_boundary_is_inside(self):
        d = haversine_km(*NYC, *TIMES_SQUARE)
        inside, dist = within_radius(*NYC, *TIMES_SQUARE, d)
        assert inside
        assert dist == d


class TestSearchCells:
    def test_origin_cell_included(self):
        cells = search_cells(*NYC, 1.0)
        assert point_cell(*NYC) in cells

    def test_disk_size_matches_ring_count(self):
        cells = search_cells(*NYC, 10.0)
        assert len(cells) == disk_size(ring_count(10.0))

    def test_huge_radius_skips_prefilter(self):
        assert search_cells(*NYC, 2000.0, max_cells=5000) is None

    def test_zero_radius_still_returns_cells(self):
        cells = search_cells(*NYC, 0.0)
        assert point_cell(*NYC) in cells

    @pytest.mark.parametrize("radius_km", [0.5, 1.0, 5.0, 10.0, 25.0])
    @pytest.mark.parametrize("origin", [NYC, (60.0, 10.0), (-33.86, 151.21)])
    def test_circle_edge_points_are_covered(self, origin, radius_km):
        lat, lng = origin
        dlat = radius_km / KM_PER_DEG_LAT
        dlng = radius_km / (KM_PER_DEG_LAT * math.cos(math.radians(lat)))
        cells = search_cells(lat, lng, radius_km)
        for p in [(lat + dlat, lng), (lat - dlat, lng), (lat, lng + dlng), (lat, lng - dlng)]:
            assert haversine_km(lat, lng, *p) <= radius_km * 1.001
            assert point_cell(*p) in cells


@pytest.fixture
def engine_under_test(session_factory):
    return MatchingEngine(session_factory)


class TestPendingRidesNear:
    @pytest.mark.asyncio
    async def test_driver_on_pickup_finds_ride(self, dispatch, engine_under_test):
        ride_id = await dispatch.request_ride(1, *NYC, *TIMES_SQUARE)
        rides = await engine_under_test.pending_rides_near(*NYC, 1)
        assert [r.id for r in rides] == [ride_id]

    @pytest.mark.asyncio
    async def test_driver_in_chicago_finds_nothing(self, dispatch, engine_under_test):
        await dispatch.request_ride(1, *NYC, *TIMES_SQUARE)
        assert await engine_under_test.pending_rides_near(*CHICAGO, 10) == []

    @pytest.mark.asyncio
    async def test_only_pending_rides_returned(self, dispatch, engine_under_test):
        waiting = await dispatch.request_ride(1, *NYC, *TIMES_SQUARE)
        taken = await dispatch.request_ride(6, *NYC, *TIMES_SQUARE)
        cancelled = await dispatch.request_ride(7, *NYC, *TIMES_SQUARE)
        assert await dispatch.accept_ride(2, taken) == taken
        assert await dispatch.cancel_ride(cancelled)

        rides = await engine_under_test.pending_rides_near(*NYC, 5)
        assert [r.id for r in rides] == [waiting]

    @pytest.mark.asyncio
    async def test_radius_is_great_circle(self, dispatch, engine_under_test):
        """Times Square is ~5.4 km from the NYC reference point."""
        ride_id = await dispatch.request_ride(1, *TIMES_SQUARE, *NYC)
        d = haversine_km(*NYC, *TIMES_SQUARE)
        assert await engine_under_test.pending_rides_near(*NYC, d - 0.05) == []
        rides = await engine_under_test.pending_rides_near(*NYC, d + 0.05)
        assert [r.id for r in rides] == [ride_id]

    @pytest.mark.asyncio
    async def test_results_nearest_first(self, dispatch, engine_under_test):
        far = await dispatch.request_ride(1, *TIMES_SQUARE, *NYC)
        near = await dispatch.request_ride(6, 40.7130, -74.0050, *TIMES_SQUARE)
        rides = await engine_under_test.pending_rides_near(*NYC, 10)
        assert [r.id for r in rides] == [near, far]

    @pytest.mark.asyncio
    async def test_full_scan_path_matches_prefilter(self, dispatch, session_factory):
        ride_id = await dispatch.request_ride(1, *NYC, *TIMES_SQUARE)
        await dispatch.request_ride(6, *CHICAGO, *NYC)
        no_prefilter = MatchingEngine(session_factory, max_prefilter_cells=1)
        rides = await no_prefilter.pending_rides_near(*NYC, 1)
        assert [r.id for r in rides] == [ride_id]

    @pytest.mark.asyncio
    async def test_invalid_input_rejected(self, engine_under_test):
        with pytest.raises(ValidationError):
            await engine_under_test.pending_rides_near(*NYC, -1)
        with pytest.raises(ValidationError):
            await engine_under_test.pending_rides_near(91.0, 0.0, 1)
        with pytest.raises(ValidationError):
            await engine_under_test.pending_rides_near(0.0, 0.0, math.nan)


class TestNearbyDrivers:
    @pytest.mark.asyncio
    async def test_filters_role_presence_and_distance(self, dispatch, engine_under_test):
        assert await dispatch.update_driver_location(2, 40.7130, -74.0050)  # ~0.1 km
        assert await dispatch.update_driver_location(3, *TIMES_SQUARE)  # ~5.4 km
        assert await dispatch.update_driver_location(4, 40.7140, -74.0070)
        assert await dispatch.go_offline(4)
        assert await dispatch.update_driver_location(5, *CHICAGO)
        assert await dispatch.update_user_location(6, *NYC)  # a rider, online

        found = await engine_under_test.nearby_drivers(*NYC, 10)
        assert [nd.driver.id for nd in found] == [2, 3]
        assert found[0].distance_km < found[1].distance_km
        assert found[0].driver.car_type == "SEDAN"
        assert found[0].location.is_online

    @pytest.mark.asyncio
    async def test_nothing_in_range(self, dispatch, engine_under_test):
        assert await dispatch.update_driver_location(2, *CHICAGO)
        assert await engine_under_test.nearby_drivers(*NYC, 10) == []


class TestStoredCellResolution:
    """Stored cells and query disks must share one resolution."""

    @pytest.mark.asyncio
    async def test_rows_are_written_at_cell_resolution(self, dispatch, session_factory):
        ride_id = await dispatch.request_ride(1, *NYC, *TIMES_SQUARE)
        await dispatch.update_driver_location(2, *TIMES_SQUARE)

        async with session_factory() as session:
            ride_cell = (
                await session.execute(
                    select(RideModel.pickup_h3).where(RideModel.id == ride_id)
                )
            ).scalar_one()
            location_cell = (
                await session.execute(
                    select(UserLocationModel.h3_cell).where(UserLocationModel.user_id == 2)
                )
            ).scalar_one()

        assert h3.get_resolution(ride_cell) == CELL_RESOLUTION
        assert h3.get_resolution(location_cell) == CELL_RESOLUTION

    @pytest.mark.asyncio
    async def test_resolution_env_does_not_hide_existing_rows(
        self, dispatch, session_factory, monkeypatch
    ):
        ride_id = await dispatch.request_ride(1, *NYC, *TIMES_SQUARE)
        await dispatch.update_driver_location(2, *NYC)

        monkeypatch.setenv("H3_RESOLUTION", "8")
        restarted = DispatchFacade.from_session_factory(
            session_factory, Settings(database_url="sqlite+aiosqlite://")
        )

        assert [r.id for r in await restarted.pending_rides_near(*NYC, 1.0)] == [ride_id]
        assert [n.driver.id for n in await restarted.find_nearby_drivers(*NYC, 1.0)] == [2]
