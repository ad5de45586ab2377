"""
Booking Lifecycle Service
=========================

The only writer of booking status and of a trip's
``remaining_capacity`` / ``lifecycle_status``.  Every caller (staff
order screens, trip screens, passenger self-service, the periodic sweep)
goes through this class.

Concurrency safety
------------------
Optimistic read-recompute-verify-write inside one DB transaction:

1. Fresh read of the booking, its trip (``SELECT ... FOR UPDATE`` where
   the backend supports it) and every sibling booking.
2. Guard + Seat Ledger + Status Deriver on that snapshot.
3. Conditional writes: the booking only if its status is still the one
   read, the trip only if its ``version`` is still the one read.

A missed condition rolls the whole transaction back (so the booking write
is undone together with the trip write) and surfaces as
``StorageConflict``; the call is then replayed from a fresh read a
bounded number of times.  Connectivity failures are retried the same way
and surface as ``StorageUnavailable``.

No method raises a ``ReconciliationError`` past this boundary: the
outcome is always a ``TransitionResult``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.domain.clock import Clock, ensure_utc, utcnow
from src.domain.entities import Booking, Trip
from src.domain.enums import BookingStatus, TripStatus
from src.domain.errors import (
    InsufficientCapacity,
    InvalidRequest,
    InvalidTransition,
    NotFound,
    ReconciliationError,
    StorageConflict,
    StorageUnavailable,
    TripClosed,
)
from src.domain.guard import TransitionGuard
from src.domain.ledger import SeatLedger, compute_remaining, with_status
from src.domain.status import (
    derive_scheduled_status,
    derive_status,
    minutes_to_departure,
)
from src.infrastructure.models import BookingModel, TripModel
from src.infrastructure.repositories import BookingRepository, TripRepository

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (OperationalError, InterfaceError, ConnectionError, TimeoutError)


# ── Results ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TransitionResult:
    booking: Optional[Booking] = None
    trip: Optional[Trip] = None
    error: Optional[ReconciliationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: ReconciliationError) -> "TransitionResult":
        return cls(error=error)


@dataclass(frozen=True)
class TripDraft:
    owner_id: str
    capacity: int
    departure_at: datetime
    arrival_at: Optional[datetime] = None
    is_demand_post: bool = False
    price: float = 0.0


@dataclass(frozen=True)
class TripSnapshot:
    trip: Trip
    bookings: list[Booking] = field(default_factory=list)

    @property
    def display_remaining(self) -> int:
        return SeatLedger(self.trip.capacity, self.bookings).display_remaining


@dataclass
class SweepReport:
    trips_checked: int = 0
    trips_updated: int = 0
    bookings_boarded: int = 0
    bookings_expired: int = 0
    conflicts: int = 0
    failures: int = 0


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, _TRANSIENT_ERRORS):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


# ── Service ───────────────────────────────────────────────────────────


class BookingLifecycleService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock = utcnow,
        guard: Optional[TransitionGuard] = None,
        max_attempts: int = settings.transition_max_attempts,
        urgent_window_minutes: int = settings.urgent_window_minutes,
        default_trip_duration: timedelta = timedelta(
            hours=settings.default_trip_duration_hours
        ),
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._guard = guard or TransitionGuard()
        self._max_attempts = max(1, max_attempts)
        self._urgent_window = urgent_window_minutes
        self._default_duration = default_trip_duration

    # ── Public API ────────────────────────────────────────────────────

    async def transition(self, booking_id: str, target_status) -> TransitionResult:
        """Move a booking to *target_status* and reconcile its trip."""
        return await self._run(
            lambda session: self._transition_once(session, booking_id, target_status),
            f"transition booking {booking_id} -> {target_status}",
        )

    async def cancel_own_booking(self, booking_id: str, caller_id: str) -> TransitionResult:
        """Self-service cancellation by the passenger who owns the booking."""
        return await self._run(
            lambda session: self._transition_once(
                session, booking_id, BookingStatus.CANCELLED, caller_id=caller_id
            ),
            f"self-service cancel of booking {booking_id}",
        )

    async def reserve(
        self,
        trip_id: str,
        passenger_id: str,
        seats: int,
        note: Optional[str] = None,
    ) -> TransitionResult:
        """Create a PENDING booking.  Seats are only consumed on confirmation."""
        return await self._run(
            lambda session: self._reserve_once(session, trip_id, passenger_id, seats, note),
            f"reserve {seats} seat(s) on trip {trip_id}",
        )

    async def post_trip(self, draft: TripDraft) -> TransitionResult:
        return await self._run(
            lambda session: self._post_trip_once(session, draft),
            "post trip",
        )

    async def update_trip_status(self, trip_id: str, status) -> TransitionResult:
        """Explicit staff move along the trip lifecycle (or cancellation)."""
        return await self._run(
            lambda session: self._update_trip_status_once(session, trip_id, status),
            f"set trip {trip_id} -> {status}",
        )

    async def get_trip(self, trip_id: str) -> Optional[TripSnapshot]:
        async with self._session_factory() as session:
            trip = await TripRepository(session).get_by_id(trip_id)
            if trip is None:
                return None
            bookings = await BookingRepository(session).list_for_trip(trip_id)
        return TripSnapshot(trip=trip, bookings=bookings)

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        async with self._session_factory() as session:
            return await BookingRepository(session).get_by_id(booking_id)

    async def sweep(self, now: Optional[datetime] = None) -> SweepReport:
        """
        Time-driven reconciliation of every open trip.

        Boards confirmed / picked-up passengers once a trip is under way,
        expires pending bookings once it has arrived, repairs any drift in
        ``remaining_capacity`` and moves the trip along its schedule.
        Each trip is its own transaction; a trip that loses a race is
        skipped and picked up by the next sweep.
        """
        now = ensure_utc(now) if now else self._clock()
        report = SweepReport()

        async with self._session_factory() as session:
            trip_ids = await TripRepository(session).get_open_trip_ids()

        for trip_id in trip_ids:
            report.trips_checked += 1
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        await self._sweep_trip(session, trip_id, now, report)
            except StorageConflict:
                report.conflicts += 1
                logger.info("Sweep: trip %s changed concurrently, skipping", trip_id)
            except Exception as exc:
                if not _is_transient(exc):
                    raise
                report.failures += 1
                logger.warning("Sweep: storage error on trip %s: %s", trip_id, exc)

        if report.trips_updated:
            logger.info(
                "Sweep: %d/%d trips updated, %d boarded, %d expired",
                report.trips_updated,
                report.trips_checked,
                report.bookings_boarded,
                report.bookings_expired,
            )
        return report

    # ── Retry boundary ────────────────────────────────────────────────

    async def _run(
        self,
        operation: Callable[[AsyncSession], Awaitable[TransitionResult]],
        description: str,
    ) -> TransitionResult:
        last_error: ReconciliationError = StorageConflict()
        for attempt in range(1, self._max_attempts + 1):
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        return await operation(session)
            except StorageConflict as exc:
                last_error = exc
                logger.warning(
                    "%s: conflict on attempt %d/%d", description, attempt, self._max_attempts
                )
            except ReconciliationError as exc:
                logger.info("%s rejected: %s", description, exc.message)
                return TransitionResult.failure(exc)
            except Exception as exc:
                if not _is_transient(exc):
                    raise
                last_error = StorageUnavailable()
                logger.warning(
                    "%s: storage unavailable on attempt %d/%d: %s",
                    description,
                    attempt,
                    self._max_attempts,
                    exc,
                )
        logger.error("%s failed after %d attempts", description, self._max_attempts)
        return TransitionResult.failure(last_error)

    # ── Single attempts ───────────────────────────────────────────────

    async def _load_trip(self, trips: TripRepository, trip_id: str) -> Trip:
        trip = await trips.get_for_update(trip_id)
        if trip is None:
            raise NotFound("Trip", trip_id)
        return trip

    async def _transition_once(
        self,
        session: AsyncSession,
        booking_id: str,
        target_status,
        caller_id: Optional[str] = None,
    ) -> TransitionResult:
        trips = TripRepository(session)
        bookings = BookingRepository(session)
        now = self._clock()

        booking = await bookings.get_by_id(booking_id)
        if booking is None:
            raise NotFound("Booking", booking_id)
        trip = await self._load_trip(trips, booking.trip_id)
        siblings = await bookings.list_for_trip(trip.id)

        try:
            target = BookingStatus(target_status)
        except ValueError:
            raise InvalidTransition(
                booking.status.value, str(target_status), reason="unknown booking status"
            ) from None

        if caller_id is not None:
            self._guard.check_self_service(booking, caller_id)
        self._guard.check(trip, booking, target, siblings, now)

        if target == booking.status:
            return TransitionResult(booking=booking, trip=trip)

        projected = with_status(siblings, booking.id, target)
        remaining = compute_remaining(trip.capacity, projected)
        if remaining < 0:
            if target == BookingStatus.CONFIRMED:
                raise InsufficientCapacity(
                    remaining=max(0, remaining + booking.seats_booked),
                    requested=booking.seats_booked,
                )
            logger.warning(
                "Trip %s is overbooked by %d seat(s); storing 0", trip.id, -remaining
            )
        stored_remaining = max(0, remaining)

        status = derive_status(
            stored_remaining,
            trip.lifecycle_status,
            minutes_to_departure(trip.departure_at, now),
            self._urgent_window,
        )

        if not await bookings.compare_and_set_status(
            booking.id, expected_status=booking.status, new_status=target
        ):
            raise StorageConflict()
        if not await trips.compare_and_set(
            trip.id,
            expected_version=trip.version,
            remaining_capacity=stored_remaining,
            lifecycle_status=status,
        ):
            raise StorageConflict()

        logger.info(
            "Booking %s: %s -> %s; trip %s remaining %d -> %d, status %s -> %s",
            booking.id,
            booking.status.value,
            target.value,
            trip.id,
            trip.remaining_capacity,
            stored_remaining,
            trip.lifecycle_status.value,
            status.value,
        )
        return TransitionResult(
            booking=replace(booking, status=target),
            trip=trip.with_seats(stored_remaining, status),
        )

    async def _reserve_once(
        self,
        session: AsyncSession,
        trip_id: str,
        passenger_id: str,
        seats: int,
        note: Optional[str],
    ) -> TransitionResult:
        trips = TripRepository(session)
        bookings = BookingRepository(session)

        trip = await self._load_trip(trips, trip_id)
        self._guard.check_trip_open(trip, self._clock())

        if seats < 1:
            raise InvalidRequest(f"seats must be positive, got {seats}", seats=seats)
        ledger = SeatLedger(trip.capacity, await bookings.list_for_trip(trip.id))
        if seats > trip.capacity or (
            not trip.is_demand_post and seats > ledger.display_remaining
        ):
            raise InsufficientCapacity(
                remaining=ledger.display_remaining, requested=seats
            )

        booking = await bookings.create(
            BookingModel(
                trip_id=trip.id,
                passenger_id=passenger_id,
                seats_booked=seats,
                status=BookingStatus.PENDING,
                total_price=trip.price * seats,
                note=note,
            )
        )
        logger.info(
            "Booking %s created on trip %s for %d seat(s)", booking.id, trip.id, seats
        )
        return TransitionResult(booking=booking, trip=trip)

    async def _post_trip_once(self, session: AsyncSession, draft: TripDraft) -> TransitionResult:
        if draft.capacity < 1:
            raise InvalidRequest(
                f"capacity must be positive, got {draft.capacity}", capacity=draft.capacity
            )
        departure_at = ensure_utc(draft.departure_at)
        arrival_at = ensure_utc(draft.arrival_at) if draft.arrival_at else None
        if arrival_at is not None and arrival_at <= departure_at:
            raise InvalidRequest("arrival must be after departure")

        trip = await TripRepository(session).create(
            TripModel(
                owner_id=draft.owner_id,
                capacity=draft.capacity,
                remaining_capacity=draft.capacity,
                lifecycle_status=TripStatus.PREPARING,
                departure_at=departure_at,
                arrival_at=arrival_at,
                is_demand_post=draft.is_demand_post,
                price=draft.price,
                version=0,
            )
        )
        logger.info("Trip %s posted with %d seat(s)", trip.id, trip.capacity)
        return TransitionResult(trip=trip)

    async def _update_trip_status_once(
        self, session: AsyncSession, trip_id: str, status
    ) -> TransitionResult:
        trips = TripRepository(session)
        trip = await self._load_trip(trips, trip_id)
        if trip.is_closed:
            raise TripClosed(trip.id, trip.lifecycle_status.value)

        try:
            target = TripStatus(status)
        except ValueError:
            raise InvalidRequest(f"unknown trip status {status!r}") from None
        if target == trip.lifecycle_status:
            return TransitionResult(trip=trip)

        bookings = await BookingRepository(session).list_for_trip(trip.id)
        ledger = SeatLedger(trip.capacity, bookings)
        if target == TripStatus.FULL and ledger.remaining > 0:
            raise InvalidTransition(
                trip.lifecycle_status.value,
                target.value,
                reason=f"{ledger.remaining} seat(s) still available",
            )
        if target in (TripStatus.PREPARING, TripStatus.URGENT) and ledger.remaining <= 0:
            raise InvalidTransition(
                trip.lifecycle_status.value, target.value, reason="no seats left"
            )

        if not await trips.compare_and_set(
            trip.id,
            expected_version=trip.version,
            remaining_capacity=ledger.display_remaining,
            lifecycle_status=target,
        ):
            raise StorageConflict()

        logger.info(
            "Trip %s status %s -> %s", trip.id, trip.lifecycle_status.value, target.value
        )
        return TransitionResult(trip=trip.with_seats(ledger.display_remaining, target))

    async def _sweep_trip(
        self, session: AsyncSession, trip_id: str, now: datetime, report: SweepReport
    ) -> None:
        trips = TripRepository(session)
        bookings = BookingRepository(session)

        trip = await trips.get_for_update(trip_id)
        if trip is None or trip.is_closed:
            return

        arrival_at = trip.expected_arrival(self._default_duration)
        under_way = trip.departure_at <= now <= arrival_at
        arrived = now > arrival_at

        current: list[Booking] = []
        moved = 0
        for booking in await bookings.list_for_trip(trip.id):
            new_status = None
            if under_way and booking.status in (
                BookingStatus.CONFIRMED,
                BookingStatus.PICKED_UP,
            ):
                new_status = BookingStatus.ON_BOARD
            elif arrived and booking.status == BookingStatus.PENDING:
                new_status = BookingStatus.EXPIRED

            if new_status is None:
                current.append(booking)
                continue
            if not await bookings.compare_and_set_status(
                booking.id, expected_status=booking.status, new_status=new_status
            ):
                raise StorageConflict()
            current.append(replace(booking, status=new_status))
            moved += 1
            if new_status == BookingStatus.ON_BOARD:
                report.bookings_boarded += 1
            else:
                report.bookings_expired += 1

        ledger = SeatLedger(trip.capacity, current)
        if ledger.is_overbooked:
            logger.warning(
                "Sweep: trip %s is overbooked by %d seat(s)", trip.id, -ledger.remaining
            )
        remaining = ledger.display_remaining
        status = derive_scheduled_status(
            remaining,
            trip.lifecycle_status,
            trip.departure_at,
            arrival_at,
            now,
            self._urgent_window,
        )

        if (
            not moved
            and remaining == trip.remaining_capacity
            and status == trip.lifecycle_status
        ):
            return
        if not await trips.compare_and_set(
            trip.id,
            expected_version=trip.version,
            remaining_capacity=remaining,
            lifecycle_status=status,
        ):
            raise StorageConflict()
        report.trips_updated += 1
        if status != trip.lifecycle_status:
            logger.info(
                "Sweep: trip %s %s -> %s", trip.id, trip.lifecycle_status.value, status.value
            )
