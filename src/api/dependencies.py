"""FastAPI dependency injection helpers."""

from fastapi import Header

from src.infrastructure.database import async_session_factory
from src.services.lifecycle import BookingLifecycleService

_service: BookingLifecycleService | None = None


def get_lifecycle_service() -> BookingLifecycleService:
    """Process-wide lifecycle service bound to the production session factory."""
    global _service
    if _service is None:
        _service = BookingLifecycleService(async_session_factory)
    return _service


def get_caller_id(x_user_id: str = Header(..., min_length=1, max_length=64)) -> str:
    """Caller identity as established by the upstream auth layer."""
    return x_user_id
