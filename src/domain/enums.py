"""Domain enumerations and state-transition rules."""

import enum


class TripStatus(str, enum.Enum):
    PREPARING = "PREPARING"
    URGENT = "URGENT"
    FULL = "FULL"
    ON_TRIP = "ON_TRIP"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PICKED_UP = "PICKED_UP"
    ON_BOARD = "ON_BOARD"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


TERMINAL_TRIP_STATUSES: frozenset[TripStatus] = frozenset(
    {TripStatus.COMPLETED, TripStatus.CANCELLED}
)

# Only confirmed bookings count against a trip's capacity.
SEAT_CONSUMING_STATUS = BookingStatus.CONFIRMED

# Statuses a passenger may cancel from on their own.
SELF_CANCELLABLE_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED}
)


# State machine: maps current status -> set of valid next statuses
BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {
        BookingStatus.CONFIRMED,
        BookingStatus.CANCELLED,
        BookingStatus.EXPIRED,
    },
    BookingStatus.CONFIRMED: {
        BookingStatus.PENDING,
        BookingStatus.PICKED_UP,
        BookingStatus.ON_BOARD,
        BookingStatus.CANCELLED,
    },
    BookingStatus.PICKED_UP: {
        BookingStatus.CONFIRMED,
        BookingStatus.ON_BOARD,
        BookingStatus.CANCELLED,
    },
    BookingStatus.ON_BOARD: {BookingStatus.CANCELLED},
    BookingStatus.CANCELLED: set(),
    BookingStatus.EXPIRED: set(),
}
