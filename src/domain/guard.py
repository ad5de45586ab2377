"""
Transition Guard
================

Rejects a booking-status change before anything is written.  Checks run
in a fixed order so callers always see the most fundamental reason:

1. trip already COMPLETED / CANCELLED          -> ``TripClosed``
2. departure time already passed (clock wins)  -> ``TripDeparted``
3. not an edge of the booking state machine    -> ``InvalidTransition``
4. confirming would overrun the seat ledger    -> ``InsufficientCapacity``

Self-service cancellation layers two more predicates in front
(``check_self_service``): ownership and the allowed source statuses.
"""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from .entities import Booking, Trip
from .enums import SELF_CANCELLABLE_STATUSES, BookingStatus
from .errors import (
    InsufficientCapacity,
    InvalidTransition,
    NotOwner,
    TripClosed,
    TripDeparted,
)
from .ledger import SeatLedger


class TransitionGuard:
    def check_trip_open(self, trip: Trip, now: datetime) -> None:
        if trip.is_closed:
            raise TripClosed(trip.id, trip.lifecycle_status.value)
        if now > trip.departure_at:
            raise TripDeparted(trip.id, trip.departure_at.isoformat())

    def check(
        self,
        trip: Trip,
        booking: Booking,
        target: BookingStatus,
        siblings: Sequence[Booking],
        now: datetime,
    ) -> None:
        self.check_trip_open(trip, now)

        if target == booking.status:
            return

        if not booking.can_transition_to(target):
            raise InvalidTransition(booking.status.value, target.value)

        if target == BookingStatus.CONFIRMED:
            ledger = SeatLedger(trip.capacity, siblings)
            if ledger.is_overbooked or not ledger.would_fit(
                booking.seats_booked, exclude_booking_id=booking.id
            ):
                raise InsufficientCapacity(
                    remaining=max(0, ledger.remaining_excluding(booking.id)),
                    requested=booking.seats_booked,
                )

    def check_self_service(self, booking: Booking, caller_id: str) -> None:
        if booking.passenger_id != caller_id:
            raise NotOwner(booking.id)
        if booking.status not in SELF_CANCELLABLE_STATUSES:
            raise InvalidTransition(
                booking.status.value,
                BookingStatus.CANCELLED.value,
                reason="only pending or confirmed bookings can be cancelled by the passenger",
            )
