"""
Concurrency safety tests.

Demonstrates:
1. Many drivers racing to accept one ride: exactly one wins and owns it.
2. A cancel racing an accept: exactly one of them takes effect.
3. Concurrent location writes for one user collapse into a single row.
4. Retried ride requests with one idempotency key create one ride.
"""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import func, select

from ridedispatch.domain.enums import RideStatus, TransitionOutcome
from ridedispatch.infrastructure.models import RideModel, UserLocationModel
from tests.conftest import DRIVER_IDS, NYC, TIMES_SQUARE


class TestAcceptRace:
    """Conditional UPDATE guarantees a single winner."""

    @pytest.mark.asyncio
    async def test_exactly_one_driver_wins(self, dispatch):
        ride_id = await dispatch.request_ride(1, *NYC, *TIMES_SQUARE)

        results = await asyncio.gather(
            *(dispatch.accept_ride(driver_id, ride_id) for driver_id in DRIVER_IDS)
        )

        winners = [d for d, r in zip(DRIVER_IDS, results) if r == ride_id]
        assert len(winners) == 1
        assert results.count(0) == len(DRIVER_IDS) - 1

        ride = await dispatch.get_ride(ride_id)
        assert ride.status is RideStatus.ACCEPTED
        assert ride.driver_id == winners[0]

    @pytest.mark.asyncio
    async def test_repeated_race_never_double_assigns(self, dispatch):
        for _ in range(5):
            ride_id = await dispatch.request_ride(1, *NYC, *TIMES_SQUARE)
            results = await asyncio.gather(
                *(dispatch.accept_ride(d, ride_id) for d in DRIVER_IDS * 2)
            )
            assert sum(1 for r in results if r == ride_id) == 1

    @pytest.mark.asyncio
    async def test_losers_see_conflict(self, dispatch):
        ride_id = await dispatch.request_ride(1, *NYC, *TIMES_SQUARE)
        outcomes = await asyncio.gather(
            *(dispatch.rides.accept_ride(d, ride_id) for d in DRIVER_IDS)
        )
        assert outcomes.count(TransitionOutcome.APPLIED) == 1
        assert outcomes.count(TransitionOutcome.CONFLICT) == len(DRIVER_IDS) - 1


class TestCancelAcceptRace:
    @pytest.mark.asyncio
    async def test_one_of_cancel_or_accept_applies(self, dispatch):
        ride_id = await dispatch.request_ride(1, *NYC, *TIMES_SQUARE)

        accepted, cancelled = await asyncio.gather(
            dispatch.accept_ride(2, ride_id),
            dispatch.cancel_ride(ride_id),
        )

        ride = await dispatch.get_ride(ride_id)
        if accepted:
            # cancel may still land after the accept
            assert ride.driver_id == 2
            expected = RideStatus.CANCELLED if cancelled else RideStatus.ACCEPTED
            assert ride.status is expected
        else:
            assert cancelled
            assert ride.status is RideStatus.CANCELLED
            assert ride.driver_id is None

    @pytest.mark.asyncio
    async def test_double_cancel_applies_once(self, dispatch):
        ride_id = await dispatch.request_ride(1, *NYC, *TIMES_SQUARE)
        results = await asyncio.gather(*(dispatch.cancel_ride(ride_id) for _ in range(4)))
        assert results.count(True) == 1


class TestLocationWriteRace:
    @pytest.mark.asyncio
    async def test_concurrent_upserts_keep_one_row(self, dispatch, session_factory):
        points = [(40.71 + i * 0.001, -74.0 - i * 0.001) for i in range(8)]

        results = await asyncio.gather(
            *(dispatch.update_driver_location(2, lat, lng) for lat, lng in points)
        )
        assert all(results)

        async with session_factory() as session:
            count = (
                await session.execute(
                    select(func.count())
                    .select_from(UserLocationModel)
                    .where(UserLocationModel.user_id == 2)
                )
            ).scalar()
        assert count == 1

        loc = await dispatch.get_driver_location(2)
        assert (loc.latitude, loc.longitude) in points
        assert loc.is_online is True


class TestIdempotentRequest:
    @pytest.mark.asyncio
    async def test_retries_with_same_key_create_one_ride(self, dispatch, session_factory):
        ids = await asyncio.gather(
            *(
                dispatch.request_ride(1, *NYC, *TIMES_SQUARE, idempotency_key="retry-abc")
                for _ in range(5)
            )
        )
        assert len(set(ids)) == 1
        assert ids[0] > 0

        async with session_factory() as session:
            count = (
                await session.execute(select(func.count()).select_from(RideModel))
            ).scalar()
        assert count == 1
