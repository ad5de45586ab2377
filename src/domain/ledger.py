"""
Seat Ledger
===========

Relates a trip's total capacity, its confirmed bookings and the seats
still on offer::

    remaining = capacity - sum(seats_booked for confirmed bookings)

The figure is always recomputed from the booking set handed in; nothing
here caches a counter.  A negative result means earlier writes raced
past each other: ``display_remaining`` clamps it to zero for clients
while ``is_overbooked`` keeps every further confirmation blocked until
seats are freed.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, Optional, Protocol, Sequence

from .enums import SEAT_CONSUMING_STATUS, BookingStatus


class SeatHolder(Protocol):
    id: str
    seats_booked: int
    status: BookingStatus


def seats_in_use(
    bookings: Iterable[SeatHolder], exclude_booking_id: Optional[str] = None
) -> int:
    return sum(
        b.seats_booked
        for b in bookings
        if b.status == SEAT_CONSUMING_STATUS and b.id != exclude_booking_id
    )


def compute_remaining(capacity: int, bookings: Iterable[SeatHolder]) -> int:
    """Seats left on a trip.  May be negative if the booking set is overbooked."""
    return capacity - seats_in_use(bookings)


def would_fit(
    capacity: int,
    bookings: Iterable[SeatHolder],
    additional_seats: int,
    exclude_booking_id: Optional[str] = None,
) -> bool:
    """True if *additional_seats* fit once *exclude_booking_id* stops counting."""
    remaining = capacity - seats_in_use(bookings, exclude_booking_id)
    return additional_seats <= remaining


def with_status(
    bookings: Iterable[SeatHolder], booking_id: str, status: BookingStatus
) -> list:
    """Copy of *bookings* with *status* substituted for one booking."""
    return [
        replace(b, status=status) if b.id == booking_id else b for b in bookings
    ]


@dataclass(frozen=True)
class SeatLedger:
    capacity: int
    bookings: Sequence[SeatHolder]

    @property
    def remaining(self) -> int:
        return compute_remaining(self.capacity, self.bookings)

    @property
    def display_remaining(self) -> int:
        return max(0, self.remaining)

    @property
    def is_overbooked(self) -> bool:
        return self.remaining < 0

    def remaining_excluding(self, booking_id: str) -> int:
        return self.capacity - seats_in_use(self.bookings, booking_id)

    def would_fit(self, additional_seats: int, exclude_booking_id: Optional[str] = None) -> bool:
        return would_fit(
            self.capacity, self.bookings, additional_seats, exclude_booking_id
        )
