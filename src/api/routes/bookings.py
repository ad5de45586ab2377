"""
Booking endpoints
=================

GET   /api/v1/bookings/{booking_id}         -- booking status
PATCH /api/v1/bookings/{booking_id}/status  -- staff status change
PATCH /api/v1/bookings/{booking_id}/cancel  -- passenger self-service cancel

Every status change goes through ``BookingLifecycleService`` so the
trip's seat count and status move in the same transaction.
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_caller_id, get_lifecycle_service
from src.api.errors import to_http_exception, unwrap
from src.api.middleware import DEFAULT_LIMIT, limiter
from src.api.schemas import (
    BookingResponse,
    BookingStatusUpdateRequest,
    ErrorResponse,
    TransitionResponse,
    TripResponse,
)
from src.domain.errors import NotFound
from src.services.lifecycle import BookingLifecycleService, TransitionResult

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _transition_response(result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        booking=BookingResponse.model_validate(result.booking),
        trip=TripResponse.model_validate(result.trip),
    )


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get a booking",
)
@limiter.limit(DEFAULT_LIMIT)
async def get_booking(
    request: Request,
    booking_id: str,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
):
    booking = await service.get_booking(booking_id)
    if booking is None:
        raise to_http_exception(NotFound("Booking", booking_id))
    return BookingResponse.model_validate(booking)


@router.patch(
    "/{booking_id}/status",
    response_model=TransitionResponse,
    summary="Change a booking's status",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    description=(
        "Confirming consumes seats, leaving CONFIRMED frees them. The "
        "refusal body carries the reason (e.g. seats left on "
        "InsufficientCapacity)."
    ),
)
@limiter.limit(DEFAULT_LIMIT)
async def update_booking_status(
    request: Request,
    booking_id: str,
    body: BookingStatusUpdateRequest,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
):
    result = unwrap(await service.transition(booking_id, body.status))
    return _transition_response(result)


@router.patch(
    "/{booking_id}/cancel",
    response_model=TransitionResponse,
    summary="Cancel your own booking",
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    description=(
        "Only the passenger who made the booking may cancel it, and only "
        "while it is PENDING or CONFIRMED."
    ),
)
@limiter.limit(DEFAULT_LIMIT)
async def cancel_own_booking(
    request: Request,
    booking_id: str,
    caller_id: str = Depends(get_caller_id),
    service: BookingLifecycleService = Depends(get_lifecycle_service),
):
    result = unwrap(await service.cancel_own_booking(booking_id, caller_id))
    return _transition_response(result)
