"""
Typed rejections raised by the reconciliation engine.

Every error carries a stable ``kind`` string and a ``to_dict`` payload
with enough detail for a client to explain the refusal (for example the
exact number of seats left on ``InsufficientCapacity``).
"""

from __future__ import annotations

from typing import Any, Optional


class ReconciliationError(Exception):
    """Base class for every refusal surfaced by the lifecycle service."""

    kind: str = "ReconciliationError"

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, **self.extra}


class NotFound(ReconciliationError):
    kind = "NotFound"

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found", entity=entity, id=entity_id)


class TripClosed(ReconciliationError):
    kind = "TripClosed"

    def __init__(self, trip_id: str, status: str):
        super().__init__(
            f"Trip {trip_id} is {status}; no further changes are allowed",
            trip_id=trip_id,
            status=status,
        )


class TripDeparted(ReconciliationError):
    kind = "TripDeparted"

    def __init__(self, trip_id: str, departure_at: str):
        super().__init__(
            f"Trip {trip_id} departed at {departure_at}",
            trip_id=trip_id,
            departure_at=departure_at,
        )


class InsufficientCapacity(ReconciliationError):
    kind = "InsufficientCapacity"

    def __init__(self, remaining: int, requested: int):
        self.remaining = remaining
        self.requested = requested
        super().__init__(
            f"Only {remaining} seat(s) left; {requested} requested",
            remaining=remaining,
            requested=requested,
        )


class InvalidTransition(ReconciliationError):
    kind = "InvalidTransition"

    def __init__(self, from_status: str, to_status: str, reason: Optional[str] = None):
        message = f"Cannot transition from {from_status} to {to_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, from_status=from_status, to_status=to_status)


class NotOwner(ReconciliationError):
    kind = "NotOwner"

    def __init__(self, booking_id: str):
        super().__init__(
            f"Booking {booking_id} does not belong to the caller",
            booking_id=booking_id,
        )


class StorageConflict(ReconciliationError):
    """A conditional write lost a race; retry from a fresh read."""

    kind = "StorageConflict"

    def __init__(self, message: str = "Concurrent update detected, please retry"):
        super().__init__(message)


class StorageUnavailable(ReconciliationError):
    kind = "StorageUnavailable"

    def __init__(self, message: str = "Storage is unavailable, please retry"):
        super().__init__(message)


class InvalidRequest(ReconciliationError):
    """Malformed reservation or trip draft (bad seat count, bad times)."""

    kind = "InvalidRequest"
