"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Reads hand back detached domain entities;
the two writes the lifecycle service relies on are conditional and
report whether they hit a row, so a lost race shows up as ``False``
rather than as a silent overwrite.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import BookingModel, TripModel
from src.domain.clock import ensure_utc
from src.domain.entities import Booking, Trip
from src.domain.enums import TERMINAL_TRIP_STATUSES, BookingStatus, TripStatus


def trip_to_entity(row: TripModel) -> Trip:
    return Trip(
        id=row.id,
        owner_id=row.owner_id,
        capacity=row.capacity,
        remaining_capacity=row.remaining_capacity,
        lifecycle_status=TripStatus(row.lifecycle_status),
        departure_at=ensure_utc(row.departure_at),
        arrival_at=ensure_utc(row.arrival_at) if row.arrival_at else None,
        is_demand_post=bool(row.is_demand_post),
        price=row.price or 0.0,
        version=row.version,
    )


def booking_to_entity(row: BookingModel) -> Booking:
    return Booking(
        id=row.id,
        trip_id=row.trip_id,
        passenger_id=row.passenger_id,
        seats_booked=row.seats_booked,
        status=BookingStatus(row.status),
        total_price=row.total_price or 0.0,
        note=row.note,
        created_at=ensure_utc(row.created_at) if row.created_at else None,
    )


class TripRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, trip: TripModel) -> Trip:
        self.session.add(trip)
        await self.session.flush()
        return trip_to_entity(trip)

    async def get_by_id(self, trip_id: str) -> Optional[Trip]:
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.id == trip_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return trip_to_entity(row) if row else None

    async def get_for_update(self, trip_id: str) -> Optional[Trip]:
        """SELECT ... FOR UPDATE to serialise writers on the trip row."""
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.id == trip_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return trip_to_entity(row) if row else None

    async def get_open_trip_ids(self) -> list[str]:
        result = await self.session.execute(
            select(TripModel.id)
            .where(TripModel.lifecycle_status.not_in(list(TERMINAL_TRIP_STATUSES)))
            .order_by(TripModel.departure_at)
        )
        return list(result.scalars().all())

    async def compare_and_set(
        self,
        trip_id: str,
        *,
        expected_version: int,
        remaining_capacity: int,
        lifecycle_status: TripStatus,
    ) -> bool:
        """Write seats + status only if nobody committed since *expected_version*."""
        result = await self.session.execute(
            update(TripModel)
            .where(
                TripModel.id == trip_id,
                TripModel.version == expected_version,
            )
            .values(
                remaining_capacity=remaining_capacity,
                lifecycle_status=lifecycle_status,
                version=expected_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: BookingModel) -> Booking:
        self.session.add(booking)
        await self.session.flush()
        await self.session.refresh(booking)
        return booking_to_entity(booking)

    async def get_by_id(self, booking_id: str) -> Optional[Booking]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.id == booking_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return booking_to_entity(row) if row else None

    async def list_for_trip(self, trip_id: str) -> list[Booking]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.trip_id == trip_id)
            .order_by(BookingModel.created_at, BookingModel.id)
            .execution_options(populate_existing=True)
        )
        return [booking_to_entity(r) for r in result.scalars().all()]

    async def compare_and_set_status(
        self,
        booking_id: str,
        *,
        expected_status: BookingStatus,
        new_status: BookingStatus,
    ) -> bool:
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.id == booking_id,
                BookingModel.status == expected_status,
            )
            .values(status=new_status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
