"""
Shared test fixtures.

Uses a throw-away SQLite database file per test (via aiosqlite) so tests
run without Docker / PostgreSQL / Redis.  A file rather than ``:memory:``
lets several sessions see the same data, which the race tests rely on.
SQLite ignores ``FOR UPDATE``; the conditional writes alone keep it safe.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.domain.enums import BookingStatus, TripStatus
from src.infrastructure.database import Base
from src.infrastructure.models import BookingModel, TripModel
from src.infrastructure.repositories import BookingRepository, TripRepository
from src.services.lifecycle import BookingLifecycleService

NOW = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock the tests can move by hand."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class Seeder:
    """Writes rows directly, bypassing the service, to set up any state."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], clock: FrozenClock):
        self.session_factory = session_factory
        self.clock = clock

    async def trip(
        self,
        *,
        capacity: int = 4,
        remaining: Optional[int] = None,
        status: TripStatus = TripStatus.PREPARING,
        departs_in: timedelta = timedelta(hours=8),
        duration: Optional[timedelta] = timedelta(hours=2),
        is_demand_post: bool = False,
        price: float = 100.0,
        owner_id: str = "driver-1",
    ) -> str:
        departure_at = self.clock.now + departs_in
        async with self.session_factory() as session:
            row = TripModel(
                owner_id=owner_id,
                capacity=capacity,
                remaining_capacity=capacity if remaining is None else remaining,
                lifecycle_status=status,
                departure_at=departure_at,
                arrival_at=departure_at + duration if duration else None,
                is_demand_post=is_demand_post,
                price=price,
                version=0,
            )
            session.add(row)
            await session.commit()
            return row.id

    async def booking(
        self,
        trip_id: str,
        *,
        seats: int = 1,
        status: BookingStatus = BookingStatus.PENDING,
        passenger_id: str = "passenger-1",
    ) -> str:
        async with self.session_factory() as session:
            row = BookingModel(
                trip_id=trip_id,
                passenger_id=passenger_id,
                seats_booked=seats,
                status=status,
                total_price=100.0 * seats,
            )
            session.add(row)
            await session.commit()
            return row.id

    async def load_trip(self, trip_id: str):
        async with self.session_factory() as session:
            return await TripRepository(session).get_by_id(trip_id)

    async def load_booking(self, booking_id: str):
        async with self.session_factory() as session:
            return await BookingRepository(session).get_by_id(booking_id)

    async def load_bookings(self, trip_id: str):
        async with self.session_factory() as session:
            return await BookingRepository(session).list_for_trip(trip_id)

    async def assert_ledger_consistent(self, trip_id: str) -> None:
        """remaining == capacity - confirmed seats, and never negative."""
        trip = await self.load_trip(trip_id)
        confirmed = sum(
            b.seats_booked
            for b in await self.load_bookings(trip_id)
            if b.status == BookingStatus.CONFIRMED
        )
        assert trip.remaining_capacity == trip.capacity - confirmed
        assert trip.remaining_capacity >= 0


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables in a fresh SQLite file, yield a session factory, then dispose."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'reconciliation.db'}", echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def service(session_factory, clock) -> BookingLifecycleService:
    return BookingLifecycleService(session_factory, clock=clock, max_attempts=3)


@pytest.fixture
def seed(session_factory, clock) -> Seeder:
    return Seeder(session_factory, clock)
