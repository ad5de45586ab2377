"""Maps lifecycle-service rejections onto HTTP responses."""

from fastapi import HTTPException

from src.domain.errors import ReconciliationError
from src.services.lifecycle import TransitionResult

STATUS_BY_KIND: dict[str, int] = {
    "NotFound": 404,
    "NotOwner": 403,
    "InvalidRequest": 422,
    "TripClosed": 409,
    "TripDeparted": 409,
    "InsufficientCapacity": 409,
    "InvalidTransition": 409,
    "StorageConflict": 409,
    "StorageUnavailable": 503,
}


def to_http_exception(error: ReconciliationError) -> HTTPException:
    return HTTPException(
        status_code=STATUS_BY_KIND.get(error.kind, 400),
        detail=error.to_dict(),
    )


def unwrap(result: TransitionResult) -> TransitionResult:
    """Return *result* if it succeeded, else raise the matching HTTP error."""
    if result.error is not None:
        raise to_http_exception(result.error)
    return result
