"""
FastAPI application factory.

* Registers routes for trips, bookings and admin.
* Starts / stops the background reconciliation sweeper via lifespan events.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, bookings, trips
from src.config import settings
from src.workers import sweeper as _sweeper

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the sweep worker on startup; stop on shutdown."""
    if settings.sweep_enabled:
        await _sweeper.start_sweep_loop()
    yield
    if settings.sweep_enabled:
        await _sweeper.stop_sweep_loop()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Carpool Seat Reconciliation API",
        description=(
            "Keeps each trip's remaining seats consistent with its "
            "confirmed bookings and derives the trip lifecycle status "
            "from seats and the clock.  Every booking status change goes "
            "through one transactional, conflict-checked operation."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Routers
    app.include_router(trips.router, prefix="/api/v1")
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
