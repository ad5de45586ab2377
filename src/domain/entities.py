"""
Domain entities with business logic.

Patterns used
-------------
- ``Booking.can_transition_to`` answers from the booking edge table
  (PENDING -> CONFIRMED -> PICKED_UP -> ON_BOARD, CANCELLED | EXPIRED);
  the transition guard is its caller.
- ``Trip`` is a detached snapshot of the trip row; only the lifecycle
  service produces new snapshots with a different seat count or status.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Optional

from .enums import (
    BOOKING_TRANSITIONS,
    TERMINAL_TRIP_STATUSES,
    BookingStatus,
    TripStatus,
)


@dataclass
class Trip:
    id: str
    capacity: int
    remaining_capacity: int
    departure_at: datetime
    lifecycle_status: TripStatus = TripStatus.PREPARING
    arrival_at: Optional[datetime] = None
    owner_id: Optional[str] = None
    is_demand_post: bool = False
    price: float = 0.0
    version: int = 0

    @property
    def is_closed(self) -> bool:
        return self.lifecycle_status in TERMINAL_TRIP_STATUSES

    def expected_arrival(self, default_duration: timedelta) -> datetime:
        return self.arrival_at or self.departure_at + default_duration

    def with_seats(self, remaining: int, status: TripStatus) -> "Trip":
        return replace(
            self,
            remaining_capacity=remaining,
            lifecycle_status=status,
            version=self.version + 1,
        )


@dataclass
class Booking:
    id: str
    trip_id: str
    seats_booked: int
    status: BookingStatus = BookingStatus.PENDING
    passenger_id: Optional[str] = None
    total_price: float = 0.0
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    def can_transition_to(self, new_status: BookingStatus) -> bool:
        return new_status in BOOKING_TRANSITIONS.get(self.status, set())
