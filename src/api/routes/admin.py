"""
Admin / observability endpoints
===============================

POST /api/v1/admin/sweep   -- run one reconciliation sweep now
GET  /api/v1/admin/health  -- simple health check
"""

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_lifecycle_service
from src.api.middleware import DEFAULT_LIMIT, limiter
from src.api.schemas import HealthResponse, SweepResponse
from src.services.lifecycle import BookingLifecycleService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post(
    "/sweep",
    response_model=SweepResponse,
    summary="Reconcile every open trip against the clock and its bookings",
)
@limiter.limit(DEFAULT_LIMIT)
async def run_sweep(
    request: Request,
    service: BookingLifecycleService = Depends(get_lifecycle_service),
):
    report = await service.sweep()
    return SweepResponse.model_validate(report)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
