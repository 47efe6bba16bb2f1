"""
Shared test fixtures.

Each test gets its own file-backed SQLite database (via aiosqlite) so the
production models, the ON CONFLICT upserts and the conditional UPDATEs run
unchanged without PostgreSQL.  A file (not ``:memory:``) is used so that
concurrent sessions get separate connections and real locking.  Foreign
keys are switched on per connection, matching PostgreSQL.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from ridedispatch.config import Settings
from ridedispatch.domain.enums import UserRole
from ridedispatch.infrastructure import models  # noqa: F401  (registers tables)
from ridedispatch.infrastructure.database import (
    Base,
    SessionFactory,
    build_session_factory,
)
from ridedispatch.infrastructure.models import UserModel
from ridedispatch.services.dispatch import DispatchFacade


# ids line up with the documented scenarios: rider 1, driver 2, rider 7
USERS = [
    (1, "rider_one", UserRole.RIDER),
    (2, "driver_two", UserRole.DRIVER),
    (3, "driver_three", UserRole.DRIVER),
    (4, "driver_four", UserRole.DRIVER),
    (5, "driver_five", UserRole.DRIVER),
    (6, "rider_six", UserRole.RIDER),
    (7, "rider_seven", UserRole.RIDER),
    (8, "admin_eight", UserRole.ADMIN),
]
DRIVER_IDS = [uid for uid, _, role in USERS if role is UserRole.DRIVER]

NYC = (40.7128, -74.0060)
TIMES_SQUARE = (40.7589, -73.9851)
CHICAGO = (41.8781, -87.6298)


# ── Fixtures ──────────────────────────────────────────────────────────


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite://",
        max_prefilter_cells=5000,
        default_search_radius_km=10.0,
    )


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables on a fresh database file, then dispose."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'dispatch.db'}")
    event.listen(eng.sync_engine, "connect", _enable_foreign_keys)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> SessionFactory:
    factory = build_session_factory(engine)
    async with factory() as session:
        for uid, name, role in USERS:
            session.add(
                UserModel(
                    id=uid,
                    username=name,
                    phone=f"+1-555-{uid:04d}",
                    password="x",
                    role=role.value,
                    car_type="SEDAN" if role is UserRole.DRIVER else None,
                    license_number=f"LIC-{uid}" if role is UserRole.DRIVER else None,
                )
            )
        await session.commit()
    return factory


@pytest.fixture
def dispatch(session_factory: SessionFactory, test_settings: Settings) -> DispatchFacade:
    return DispatchFacade.from_session_factory(session_factory, test_settings)


@pytest_asyncio.fixture
async def broken_factory(tmp_path) -> AsyncGenerator[SessionFactory, None]:
    """Session factory whose database file can never be opened."""
    eng = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'nowhere.db'}"
    )
    yield build_session_factory(eng)
    await eng.dispose()
