"""
Trip Status Deriver
===================

``derive_status`` reacts to seat changes only: it escalates a trip to
FULL when the last seat goes and de-escalates it away from FULL when a
seat is freed.  Every other move along PREPARING -> URGENT -> ON_TRIP ->
COMPLETED comes from the clock (``derive_scheduled_status``, used by the
periodic sweep) or from an explicit staff action.
"""

from __future__ import annotations

import math
from datetime import datetime

from .enums import TERMINAL_TRIP_STATUSES, TripStatus

URGENT_WINDOW_MINUTES = 60


def minutes_to_departure(departure_at: datetime, now: datetime) -> int:
    """Whole minutes until departure, floored (negative once departed)."""
    return math.floor((departure_at - now).total_seconds() / 60)


def _open_status(minutes: int, urgent_window: int) -> TripStatus:
    if 0 < minutes <= urgent_window:
        return TripStatus.URGENT
    return TripStatus.PREPARING


def derive_status(
    remaining_capacity: int,
    current_status: TripStatus,
    minutes_to_departure: int,
    urgent_window: int = URGENT_WINDOW_MINUTES,
) -> TripStatus:
    if current_status in TERMINAL_TRIP_STATUSES:
        return current_status
    if remaining_capacity <= 0:
        return TripStatus.FULL
    if current_status == TripStatus.FULL:
        return _open_status(minutes_to_departure, urgent_window)
    return current_status


def derive_scheduled_status(
    remaining_capacity: int,
    current_status: TripStatus,
    departure_at: datetime,
    arrival_at: datetime,
    now: datetime,
    urgent_window: int = URGENT_WINDOW_MINUTES,
) -> TripStatus:
    """Status a trip should carry at *now*, judged from the clock and seats."""
    if current_status in TERMINAL_TRIP_STATUSES:
        return current_status
    if now > arrival_at:
        return TripStatus.COMPLETED
    if departure_at <= now:
        return TripStatus.ON_TRIP
    if remaining_capacity <= 0:
        return TripStatus.FULL
    return _open_status(minutes_to_departure(departure_at, now), urgent_window)
