"""
Background Reconciliation Sweeper
=================================

Runs every ``SWEEP_INTERVAL_SECONDS`` (default 60 s).

Per cycle
---------
1. Take the Redis lock ``reconciliation_sweep`` (skip the cycle if
   another process holds it).
2. Ask the lifecycle service to sweep all open trips: board passengers
   of departed trips, expire pending bookings of arrived trips, repair
   seat-count drift and advance PREPARING / URGENT / ON_TRIP / COMPLETED
   by the clock.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from src.config import settings
from src.infrastructure.database import async_session_factory
from src.infrastructure.locks import DistributedLock, get_redis
from src.services.lifecycle import BookingLifecycleService, SweepReport

logger = logging.getLogger(__name__)

LOCK_NAME = "reconciliation_sweep"

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_sweep_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info("Sweep worker started (interval=%ds)", settings.sweep_interval_seconds)


async def stop_sweep_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Sweep worker stopped")


async def run_sweep_cycle(
    service: Optional[BookingLifecycleService] = None,
) -> Optional[SweepReport]:
    """Execute one locked sweep.  Returns None if another worker held the lock."""
    service = service or BookingLifecycleService(async_session_factory)
    lock = DistributedLock(
        get_redis(), LOCK_NAME, ttl_seconds=max(settings.sweep_interval_seconds, 30)
    )
    async with lock.held() as acquired:
        if not acquired:
            logger.debug("Lock held by another worker – skipping sweep")
            return None
        return await service.sweep()


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: run a sweep then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_sweep_cycle()
        except Exception:
            logger.exception("Unhandled error in sweep cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.sweep_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle
