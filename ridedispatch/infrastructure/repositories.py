"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Rows leave this module as domain entities;
ORM models never escape.

Every conditional write is a single statement: ride transitions are
``UPDATE ... WHERE status IN (...)`` and location writes are
``INSERT ... ON CONFLICT (user_id) DO UPDATE``.  Writes that reference a
user carry ``EXISTS (SELECT 1 FROM users ...)`` in the same statement, so an
unknown id changes nothing instead of tripping the foreign key.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from sqlalchemy import cast, delete, func, literal, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ClauseElement

from .models import RideModel, UserLocationModel, UserModel
from ridedispatch.domain.entities import Ride, User, UserLocation
from ridedispatch.domain.enums import (
    STATUS_TIMESTAMPS,
    TERMINAL_STATUSES,
    RideStatus,
    UserRole,
)
from ridedispatch.domain.errors import MappingError, StoreFault


# ── Row mapping ───────────────────────────────────────────────────────


def parse_status(value: Any, ride_id: Any = None) -> RideStatus:
    try:
        return RideStatus(value)
    except ValueError:
        raise MappingError(
            f"ride {ride_id}: unknown status {value!r} in store"
        ) from None


def parse_role(value: Any, user_id: Any = None) -> UserRole:
    try:
        return UserRole(value)
    except ValueError:
        raise MappingError(
            f"user {user_id}: unknown role {value!r} in store"
        ) from None


def to_ride(row: RideModel) -> Ride:
    return Ride(
        id=row.id,
        rider_id=row.rider_id,
        driver_id=row.driver_id,
        pickup_lat=row.pickup_lat,
        pickup_lng=row.pickup_lng,
        pickup_address=row.pickup_address,
        dest_lat=row.dest_lat,
        dest_lng=row.dest_lng,
        dest_address=row.dest_address,
        status=parse_status(row.status, row.id),
        created_at=row.created_at,
        updated_at=row.updated_at,
        accepted_at=row.accepted_at,
        started_at=row.started_at,
        completed_at=row.completed_at,
    )


def to_user(row: UserModel) -> User:
    return User(
        id=row.id,
        username=row.username,
        role=parse_role(row.role, row.id),
        phone=row.phone,
        car_type=row.car_type,
        license_number=row.license_number,
    )


def to_location(row: UserLocationModel) -> UserLocation:
    return UserLocation(
        user_id=row.user_id,
        latitude=row.latitude,
        longitude=row.longitude,
        address=row.address,
        is_online=bool(row.is_online),
        last_updated=row.last_updated,
    )


def _dialect_insert(session: AsyncSession):
    """``insert`` construct with ON CONFLICT support for the bound dialect."""
    name = session.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert
    if name == "sqlite":
        return sqlite.insert
    raise StoreFault(f"upsert not supported on dialect {name!r}")


def _user_exists(user_id: int):
    return select(UserModel.id).where(UserModel.id == user_id).exists()


def _row_if_user_exists(table, values: dict[str, Any], user_id: int):
    """
    A one-row SELECT of *values* that yields nothing when *user_id* is
    unknown.  Feeding it to ``INSERT ... SELECT`` keeps the foreign-key
    check inside the single write statement.
    """
    columns = []
    for name, value in values.items():
        if not isinstance(value, ClauseElement):
            value = cast(literal(value), table.c[name].type)
        columns.append(value.label(name))
    return select(*columns).where(_user_exists(user_id))


# ── Repositories ──────────────────────────────────────────────────────


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_ride(
        self,
        *,
        rider_id: int,
        pickup_lat: float,
        pickup_lng: float,
        dest_lat: float,
        dest_lng: float,
        pickup_h3: str,
        pickup_address: str | None = None,
        dest_address: str | None = None,
        idempotency_key: str | None = None,
    ) -> Optional[int]:
        """Insert a PENDING ride and return its id.

        The row is written by ``INSERT ... SELECT ... WHERE EXISTS (rider)``,
        so an unknown *rider_id* inserts nothing and yields ``None``.

        With an *idempotency_key*, a repeated key yields the id of the
        ride created first (``ON CONFLICT DO NOTHING`` then lookup).
        """
        table = RideModel.__table__
        values = dict(
            rider_id=rider_id,
            pickup_lat=pickup_lat,
            pickup_lng=pickup_lng,
            pickup_address=pickup_address,
            dest_lat=dest_lat,
            dest_lng=dest_lng,
            dest_address=dest_address,
            pickup_h3=pickup_h3,
            status=RideStatus.PENDING.value,
            idempotency_key=idempotency_key,
        )
        insert = _dialect_insert(self.session)
        stmt = insert(table).from_select(
            list(values), _row_if_user_exists(table, values, rider_id)
        )
        if idempotency_key is not None:
            stmt = stmt.on_conflict_do_nothing(index_elements=[table.c.idempotency_key])

        new_id = (
            await self.session.execute(stmt.returning(table.c.id))
        ).scalar_one_or_none()
        if new_id is not None or idempotency_key is None:
            return new_id
        result = await self.session.execute(
            select(RideModel.id).where(RideModel.idempotency_key == idempotency_key)
        )
        return result.scalar_one_or_none()

    async def compare_and_set_status(
        self,
        ride_id: int,
        sources: Iterable[RideStatus],
        target: RideStatus,
        *,
        driver_id: int | None = None,
    ) -> bool:
        """
        Move *ride_id* to *target* only if its current status is one of
        *sources*.  One UPDATE statement; returns True iff a row changed.
        With *driver_id* the UPDATE also requires that user to exist.
        """
        values: dict[str, Any] = {"status": target.value, "updated_at": func.now()}
        stamp = STATUS_TIMESTAMPS.get(target)
        if stamp:
            values[stamp] = func.now()
        if driver_id is not None:
            values["driver_id"] = driver_id

        stmt = (
            update(RideModel)
            .where(
                RideModel.id == ride_id,
                RideModel.status.in_([s.value for s in sources]),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if driver_id is not None:
            stmt = stmt.where(_user_exists(driver_id))
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def get_by_id(self, ride_id: int) -> Optional[Ride]:
        row = await self.session.get(RideModel, ride_id)
        return to_ride(row) if row else None

    async def get_status(self, ride_id: int) -> Optional[RideStatus]:
        result = await self.session.execute(
            select(RideModel.status).where(RideModel.id == ride_id)
        )
        raw = result.scalar_one_or_none()
        return parse_status(raw, ride_id) if raw is not None else None

    async def get_pending_rides(
        self, cells: Optional[set[str]] = None
    ) -> list[Ride]:
        query = select(RideModel).where(
            RideModel.status == RideStatus.PENDING.value
        )
        if cells is not None:
            query = query.where(RideModel.pickup_h3.in_(sorted(cells)))
        result = await self.session.execute(query.order_by(RideModel.created_at))
        return [to_ride(r) for r in result.scalars().all()]

    async def get_rides_for_user(
        self,
        user_id: int,
        *,
        active_only: bool = False,
        limit: int | None = None,
    ) -> list[Ride]:
        """Rides where *user_id* is rider or driver, newest first."""
        query = select(RideModel).where(
            (RideModel.rider_id == user_id) | (RideModel.driver_id == user_id)
        )
        if active_only:
            query = query.where(
                RideModel.status.not_in([s.value for s in TERMINAL_STATUSES])
            )
        query = query.order_by(RideModel.created_at.desc(), RideModel.id.desc())
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return [to_ride(r) for r in result.scalars().all()]


class UserLocationRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert(
        self,
        *,
        user_id: int,
        latitude: float,
        longitude: float,
        h3_cell: str,
        address: str | None = None,
        force_online: bool = False,
    ) -> bool:
        """
        Insert-or-update the single row for *user_id*.

        New rows start online.  Existing rows keep their ``is_online`` flag
        unless *force_online* is set.  Returns False, writing nothing, when
        *user_id* is not a known user.
        """
        table = UserLocationModel.__table__
        row = dict(
            user_id=user_id,
            latitude=latitude,
            longitude=longitude,
            address=address,
            h3_cell=h3_cell,
            is_online=True,
            last_updated=func.now(),
        )
        insert = _dialect_insert(self.session)
        stmt = insert(table).from_select(
            list(row), _row_if_user_exists(table, row, user_id)
        )
        changes: dict[str, Any] = {
            "latitude": stmt.excluded.latitude,
            "longitude": stmt.excluded.longitude,
            "address": stmt.excluded.address,
            "h3_cell": stmt.excluded.h3_cell,
            "last_updated": func.now(),
        }
        if force_online:
            changes["is_online"] = True
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.user_id], set_=changes
        )
        result = await self.session.execute(stmt)
        return result.rowcount != 0

    async def get_by_user(self, user_id: int) -> Optional[UserLocation]:
        result = await self.session.execute(
            select(UserLocationModel).where(UserLocationModel.user_id == user_id)
        )
        row = result.scalar_one_or_none()
        return to_location(row) if row else None

    async def set_online(self, user_id: int, online: bool) -> bool:
        result = await self.session.execute(
            update(UserLocationModel)
            .where(UserLocationModel.user_id == user_id)
            .values(is_online=online, last_updated=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_by_user(self, user_id: int) -> bool:
        result = await self.session.execute(
            delete(UserLocationModel)
            .where(UserLocationModel.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def get_online_drivers(
        self, cells: Optional[set[str]] = None
    ) -> list[tuple[User, UserLocation]]:
        query = (
            select(UserModel, UserLocationModel)
            .join(UserLocationModel, UserLocationModel.user_id == UserModel.id)
            .where(
                UserModel.role == UserRole.DRIVER.value,
                UserLocationModel.is_online.is_(True),
            )
        )
        if cells is not None:
            query = query.where(UserLocationModel.h3_cell.in_(sorted(cells)))
        result = await self.session.execute(query)
        return [(to_user(u), to_location(loc)) for u, loc in result.all()]


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_role(self, user_id: int) -> Optional[UserRole]:
        result = await self.session.execute(
            select(UserModel.role).where(UserModel.id == user_id)
        )
        raw = result.scalar_one_or_none()
        return parse_role(raw, user_id) if raw is not None else None
