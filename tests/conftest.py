"""Pytest configuration for all tests."""

import os
from datetime import date
from typing import AsyncGenerator

os.environ.setdefault("MEMOIZABLE_ENVIRONMENT", "testing")

import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from memoizable.core.config import get_settings
from memoizable.infrastructure.persistence import register_memoizable_listeners
from memoizable.infrastructure.persistence.database import Base
from tests.fixtures.rental_models import Car, Renter, Room, User

get_settings.cache_clear()
register_memoizable_listeners()


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def rental_user(db_session: AsyncSession) -> User:
    """A user with four cars (two rented), four rooms and a renter.

    Rooms 2-4 are open, room 2 is a partial bunk room.
    """
    user = User(name="Sam", state="approved", payment_frequency="Monthly")
    user.cars = [
        Car(state="rented", payment=400, renting_date=date(2024, 3, 1)),
        Car(state="rented", payment=400, renting_date=date(2024, 3, 2)),
        Car(state="pending", payment=400),
        Car(state="pending", payment=400),
    ]
    user.rooms = [
        Room(open=False, partial_bunk_room=False),
        Room(open=True, partial_bunk_room=True),
        Room(open=True, partial_bunk_room=False),
        Room(open=True, partial_bunk_room=False),
    ]
    user.renter = Renter(name="Pat Renter")
    db_session.add(user)
    await db_session.commit()
    return user
