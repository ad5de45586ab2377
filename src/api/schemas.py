"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.domain.enums import BookingStatus, TripStatus


# ── Requests ──────────────────────────────────────────────────────────


class TripCreateRequest(BaseModel):
    owner_id: str = Field(..., min_length=1, max_length=64)
    capacity: int = Field(..., ge=1, le=64)
    departure_at: datetime
    arrival_at: Optional[datetime] = None
    is_demand_post: bool = Field(
        False, description="True when a passenger is asking for a vehicle."
    )
    price: float = Field(0.0, ge=0)


class TripStatusUpdateRequest(BaseModel):
    status: TripStatus


class BookingCreateRequest(BaseModel):
    passenger_id: str = Field(..., min_length=1, max_length=64)
    seats: int = Field(1, ge=1, le=64)
    note: Optional[str] = Field(None, max_length=1000)


class BookingStatusUpdateRequest(BaseModel):
    status: BookingStatus


# ── Responses ─────────────────────────────────────────────────────────


class TripResponse(BaseModel):
    id: str
    owner_id: Optional[str] = None
    capacity: int
    remaining_capacity: int
    lifecycle_status: TripStatus
    departure_at: datetime
    arrival_at: Optional[datetime] = None
    is_demand_post: bool
    price: float
    version: int

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: str
    trip_id: str
    passenger_id: Optional[str] = None
    seats_booked: int
    status: BookingStatus
    total_price: float
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TripDetailResponse(TripResponse):
    bookings: list[BookingResponse] = []


class TransitionResponse(BaseModel):
    booking: BookingResponse
    trip: TripResponse


class SweepResponse(BaseModel):
    trips_checked: int
    trips_updated: int
    bookings_boarded: int
    bookings_expired: int
    conflicts: int
    failures: int

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorDetail(BaseModel):
    kind: str
    message: str


class ErrorResponse(BaseModel):
    detail: ErrorDetail
