"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 riders and 6 drivers
  - driver positions around lower Manhattan (5 online, 1 offline)
  - 5 sample rides walked through the dispatch facade
    (PENDING, ACCEPTED, IN_PROGRESS, COMPLETED, CANCELLED)
"""

import asyncio

from sqlalchemy import func, select

from ridedispatch.config import settings
from ridedispatch.domain.enums import UserRole
from ridedispatch.infrastructure.database import build_engine, build_session_factory
from ridedispatch.infrastructure.models import UserModel
from ridedispatch.services.dispatch import DispatchFacade

# Lower Manhattan (approx)
CITY_LAT, CITY_LNG = 40.7128, -74.0060


RIDERS = [
    {"username": "alice", "phone": "+1-212-555-0101"},
    {"username": "bruno", "phone": "+1-212-555-0102"},
    {"username": "chen", "phone": "+1-212-555-0103"},
    {"username": "dana", "phone": "+1-212-555-0104"},
    {"username": "eitan", "phone": "+1-212-555-0105"},
    {"username": "farah", "phone": "+1-212-555-0106"},
]

DRIVERS = [
    {"username": "gus", "phone": "+1-212-555-0201", "car_type": "SEDAN", "license": "NY-10001", "lat": 40.7138, "lng": -74.0050, "online": True},
    {"username": "hana", "phone": "+1-212-555-0202", "car_type": "SUV", "license": "NY-10002", "lat": 40.7200, "lng": -74.0000, "online": True},
    {"username": "ivan", "phone": "+1-212-555-0203", "car_type": "SEDAN", "license": "NY-10003", "lat": 40.7306, "lng": -73.9866, "online": True},
    {"username": "jo", "phone": "+1-212-555-0204", "car_type": "VAN", "license": "NY-10004", "lat": 40.7580, "lng": -73.9855, "online": True},
    {"username": "kemal", "phone": "+1-212-555-0205", "car_type": "SEDAN", "license": "NY-10005", "lat": 40.6892, "lng": -74.0445, "online": True},
    {"username": "lena", "phone": "+1-212-555-0206", "car_type": "SUV", "license": "NY-10006", "lat": 40.7100, "lng": -74.0100, "online": False},
]


async def seed(dispatch: DispatchFacade, session_factory) -> None:
    async with session_factory() as session:
        # Check if already seeded
        result = await session.execute(select(func.count()).select_from(UserModel))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        riders = [
            UserModel(username=r["username"], phone=r["phone"], password="changeme",
                      role=UserRole.RIDER.value)
            for r in RIDERS
        ]
        drivers = [
            UserModel(username=d["username"], phone=d["phone"], password="changeme",
                      role=UserRole.DRIVER.value, car_type=d["car_type"],
                      license_number=d["license"])
            for d in DRIVERS
        ]
        session.add_all(riders + drivers)
        await session.commit()
        print(f"  Created {len(riders)} riders and {len(drivers)} drivers")

    # ── Driver positions ──────────────────────────────────────────────
    for model, d in zip(drivers, DRIVERS):
        await dispatch.update_driver_location(model.id, d["lat"], d["lng"])
        if not d["online"]:
            await dispatch.go_offline(model.id)
    print(f"  Placed {len(drivers)} drivers")

    # ── Rides ─────────────────────────────────────────────────────────
    times_sq = (40.7589, -73.9851)
    pending = await dispatch.request_ride(
        riders[0].id, CITY_LAT, CITY_LNG, *times_sq,
        pickup_address="City Hall", dest_address="Times Square",
    )

    accepted = await dispatch.request_ride(riders[1].id, 40.7150, -74.0020, *times_sq)
    await dispatch.accept_ride(drivers[0].id, accepted)

    in_progress = await dispatch.request_ride(riders[2].id, 40.7306, -73.9866, 40.7484, -73.9857)
    await dispatch.accept_ride(drivers[2].id, in_progress)
    await dispatch.start_drive_to_pickup(in_progress)
    await dispatch.arrived_at_pickup(in_progress)
    await dispatch.start_ride_to_destination(in_progress)

    completed = await dispatch.request_ride(riders[3].id, 40.7580, -73.9855, CITY_LAT, CITY_LNG)
    await dispatch.accept_ride(drivers[3].id, completed)
    for step in (
        dispatch.start_drive_to_pickup,
        dispatch.arrived_at_pickup,
        dispatch.start_ride_to_destination,
        dispatch.complete_ride,
    ):
        await step(completed)

    cancelled = await dispatch.request_ride(riders[4].id, 40.6892, -74.0445, CITY_LAT, CITY_LNG)
    await dispatch.cancel_ride(cancelled)

    for ride_id in (pending, accepted, in_progress, completed, cancelled):
        print(f"  Ride {ride_id}: {await dispatch.get_ride_status(ride_id)}")

    print("\nSeed complete!")


async def main():
    print("Seeding database...")
    engine = build_engine(settings)
    session_factory = build_session_factory(engine)
    try:
        await seed(
            DispatchFacade.from_session_factory(session_factory, settings),
            session_factory,
        )
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
