"""
Trip endpoints
==============

POST  /api/v1/trips                     -- post a trip (driver offer or demand post)
GET   /api/v1/trips/{trip_id}           -- trip with seat count, status and bookings
PATCH /api/v1/trips/{trip_id}/status    -- explicit staff status change
POST  /api/v1/trips/{trip_id}/bookings  -- reserve seats (creates a PENDING booking)
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_lifecycle_service
from src.api.errors import to_http_exception, unwrap
from src.api.middleware import DEFAULT_LIMIT, limiter
from src.api.schemas import (
    BookingCreateRequest,
    BookingResponse,
    ErrorResponse,
    TripCreateRequest,
    TripDetailResponse,
    TripResponse,
    TripStatusUpdateRequest,
)
from src.domain.errors import NotFound
from src.services.lifecycle import BookingLifecycleService, TripDraft

router = APIRouter(prefix="/trips", tags=["trips"])


@router.post(
    "",
    status_code=201,
    response_model=TripResponse,
    summary="Post a trip",
)
@limiter.limit(DEFAULT_LIMIT)
async def post_trip(
    request: Request,
    body: TripCreateRequest,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
):
    result = unwrap(
        await service.post_trip(
            TripDraft(
                owner_id=body.owner_id,
                capacity=body.capacity,
                departure_at=body.departure_at,
                arrival_at=body.arrival_at,
                is_demand_post=body.is_demand_post,
                price=body.price,
            )
        )
    )
    return TripResponse.model_validate(result.trip)


@router.get(
    "/{trip_id}",
    response_model=TripDetailResponse,
    summary="Get a trip with its bookings",
)
@limiter.limit(DEFAULT_LIMIT)
async def get_trip(
    request: Request,
    trip_id: str,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
):
    snapshot = await service.get_trip(trip_id)
    if snapshot is None:
        raise to_http_exception(NotFound("Trip", trip_id))
    return TripDetailResponse(
        **TripResponse.model_validate(snapshot.trip).model_dump(),
        bookings=[BookingResponse.model_validate(b) for b in snapshot.bookings],
    )


@router.patch(
    "/{trip_id}/status",
    response_model=TripResponse,
    summary="Change a trip's lifecycle status",
    description=(
        "Staff action for schedule moves (PREPARING, URGENT, ON_TRIP, "
        "COMPLETED) or cancelling the trip. Completed or cancelled trips "
        "are frozen; FULL follows the seat count."
    ),
)
@limiter.limit(DEFAULT_LIMIT)
async def update_trip_status(
    request: Request,
    trip_id: str,
    body: TripStatusUpdateRequest,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
):
    result = unwrap(await service.update_trip_status(trip_id, body.status))
    return TripResponse.model_validate(result.trip)


@router.post(
    "/{trip_id}/bookings",
    status_code=201,
    response_model=BookingResponse,
    summary="Reserve seats on a trip",
    responses={201: {"description": "Booking created as PENDING."}, 409: {"model": ErrorResponse}},
)
@limiter.limit(DEFAULT_LIMIT)
async def reserve(
    request: Request,
    trip_id: str,
    body: BookingCreateRequest,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
):
    result = unwrap(
        await service.reserve(trip_id, body.passenger_id, body.seats, body.note)
    )
    return BookingResponse.model_validate(result.booking)
