"""
Async SQLAlchemy engine, session factory and unit-of-work helper.

Uses ``asyncpg`` as the PostgreSQL driver for non-blocking I/O.  Nothing
here is a module-level singleton: the app factory (or a test) builds an
engine and passes the resulting ``async_sessionmaker`` to the services.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ridedispatch.config import Settings
from ridedispatch.domain.errors import StoreFault

SessionFactory = async_sessionmaker[AsyncSession]


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


def build_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(
        settings.database_url,
        echo=False,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )


def build_session_factory(engine: AsyncEngine) -> SessionFactory:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@asynccontextmanager
async def unit_of_work(factory: SessionFactory) -> AsyncIterator[AsyncSession]:
    """
    Yield a session inside one transaction; commit on success, roll back
    on error.  Driver / SQL errors surface as ``StoreFault``.
    """
    try:
        async with factory() as session:
            async with session.begin():
                yield session
    except SQLAlchemyError as exc:
        raise StoreFault(f"{type(exc).__name__}: {exc}") from exc
