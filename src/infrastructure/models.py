"""
SQLAlchemy ORM models.

Tables
------
* ``trips``     -- offered (or, for demand posts, requested) capacity
* ``bookings``  -- claims against a trip's capacity

``trips.version`` is bumped on every committed write and serves as the
compare-and-swap key for the lifecycle service.

Indexes
-------
* **B-Tree** on ``trips.lifecycle_status`` / ``departure_at`` for the
  sweep, and on ``bookings.trip_id`` / ``passenger_id`` / ``status``
  for sibling and owner look-ups.
"""

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from src.domain.enums import BookingStatus, TripStatus


def _uuid() -> str:
    return str(uuid.uuid4())


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(64), nullable=True)
    capacity = Column(Integer, nullable=False)
    remaining_capacity = Column(Integer, nullable=False)
    lifecycle_status = Column(
        Enum(TripStatus), default=TripStatus.PREPARING, nullable=False
    )
    departure_at = Column(DateTime(timezone=True), nullable=False)
    arrival_at = Column(DateTime(timezone=True), nullable=True)
    is_demand_post = Column(Boolean, default=False, nullable=False)
    price = Column(Float, default=0.0, nullable=False)
    version = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_trip_capacity_positive"),
        CheckConstraint(
            "remaining_capacity >= 0", name="check_trip_remaining_non_negative"
        ),
        Index("idx_trips_status", "lifecycle_status"),
        Index("idx_trips_departure", "departure_at"),
    )


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_uuid)
    trip_id = Column(String(36), ForeignKey("trips.id"), nullable=False)
    passenger_id = Column(String(64), nullable=False)
    seats_booked = Column(Integer, nullable=False)
    status = Column(
        Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False
    )
    total_price = Column(Float, default=0.0, nullable=False)
    note = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("seats_booked > 0", name="check_booking_seats_positive"),
        Index("idx_bookings_trip", "trip_id"),
        Index("idx_bookings_passenger", "passenger_id"),
        Index("idx_bookings_status", "status"),
    )
