"""
Integration tests for ``BookingLifecycleService`` against SQLite.

Covers the seat invariant, idempotence, confirm/cancel round trips, the
FULL boundary, every rejection kind and the self-service flow.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from src.domain.enums import BookingStatus, TripStatus
from src.services.lifecycle import TripDraft


# ── Staff transitions ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_confirm_consumes_seats(service, seed):
    trip_id = await seed.trip(capacity=4)
    booking_id = await seed.booking(trip_id, seats=3)

    result = await service.transition(booking_id, BookingStatus.CONFIRMED)

    assert result.ok
    assert result.booking.status == BookingStatus.CONFIRMED
    assert result.trip.remaining_capacity == 1
    assert result.trip.lifecycle_status == TripStatus.PREPARING
    await seed.assert_ledger_consistent(trip_id)


@pytest.mark.asyncio
async def test_filling_last_seat_marks_trip_full(service, seed):
    trip_id = await seed.trip(capacity=4, status=TripStatus.PREPARING)
    booking_id = await seed.booking(trip_id, seats=4)

    result = await service.transition(booking_id, BookingStatus.CONFIRMED)

    assert result.ok
    assert result.trip.remaining_capacity == 0
    assert result.trip.lifecycle_status == TripStatus.FULL
    stored = await seed.load_trip(trip_id)
    assert stored.lifecycle_status == TripStatus.FULL
    assert stored.version == 1


@pytest.mark.asyncio
async def test_cancel_on_full_trip_far_from_departure_reopens_preparing(service, seed):
    trip_id = await seed.trip(
        capacity=4, remaining=0, status=TripStatus.FULL, departs_in=timedelta(minutes=500)
    )
    booking_id = await seed.booking(trip_id, seats=4, status=BookingStatus.CONFIRMED)

    result = await service.transition(booking_id, BookingStatus.CANCELLED)

    assert result.ok
    assert result.trip.remaining_capacity == 4
    assert result.trip.lifecycle_status == TripStatus.PREPARING
    await seed.assert_ledger_consistent(trip_id)


@pytest.mark.asyncio
async def test_cancel_on_full_trip_close_to_departure_reopens_urgent(service, seed):
    trip_id = await seed.trip(
        capacity=4, remaining=0, status=TripStatus.FULL, departs_in=timedelta(minutes=30)
    )
    booking_id = await seed.booking(trip_id, seats=4, status=BookingStatus.CONFIRMED)

    result = await service.transition(booking_id, BookingStatus.CANCELLED)

    assert result.ok
    assert result.trip.remaining_capacity == 4
    assert result.trip.lifecycle_status == TripStatus.URGENT


@pytest.mark.asyncio
async def test_confirm_then_cancel_restores_remaining_exactly(service, seed):
    trip_id = await seed.trip(capacity=6, remaining=4)
    await seed.booking(trip_id, seats=2, status=BookingStatus.CONFIRMED)
    booking_id = await seed.booking(trip_id, seats=3)
    await seed.booking(trip_id, seats=1, passenger_id="passenger-2")
    before = (await seed.load_trip(trip_id)).remaining_capacity

    confirmed = await service.transition(booking_id, BookingStatus.CONFIRMED)
    cancelled = await service.transition(booking_id, BookingStatus.CANCELLED)

    assert confirmed.ok and cancelled.ok
    assert confirmed.trip.remaining_capacity == before - 3
    assert cancelled.trip.remaining_capacity == before
    await seed.assert_ledger_consistent(trip_id)


@pytest.mark.asyncio
async def test_same_status_is_a_no_op(service, seed):
    trip_id = await seed.trip(capacity=4, remaining=2)
    booking_id = await seed.booking(trip_id, seats=2, status=BookingStatus.CONFIRMED)

    result = await service.transition(booking_id, BookingStatus.CONFIRMED)

    assert result.ok
    assert result.booking.status == BookingStatus.CONFIRMED
    stored = await seed.load_trip(trip_id)
    assert stored.remaining_capacity == 2
    assert stored.version == 0


@pytest.mark.asyncio
async def test_pickup_and_pending_moves_keep_invariant(service, seed):
    trip_id = await seed.trip(capacity=4)
    booking_id = await seed.booking(trip_id, seats=2)

    for target in (
        BookingStatus.CONFIRMED,
        BookingStatus.PICKED_UP,
        BookingStatus.CONFIRMED,
        BookingStatus.PENDING,
    ):
        result = await service.transition(booking_id, target)
        assert result.ok, result.error
        await seed.assert_ledger_consistent(trip_id)


@pytest.mark.asyncio
async def test_status_accepts_plain_strings(service, seed):
    trip_id = await seed.trip(capacity=4)
    booking_id = await seed.booking(trip_id, seats=1)

    result = await service.transition(booking_id, "CONFIRMED")

    assert result.ok
    assert result.booking.status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_demand_post_uses_same_ledger(service, seed):
    trip_id = await seed.trip(capacity=7, is_demand_post=True)
    booking_id = await seed.booking(trip_id, seats=7, passenger_id="driver-9")

    result = await service.transition(booking_id, BookingStatus.CONFIRMED)

    assert result.ok
    assert result.trip.remaining_capacity == 0
    assert result.trip.lifecycle_status == TripStatus.FULL


# ── Rejections ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_confirm_on_full_trip_is_insufficient_capacity(service, seed):
    trip_id = await seed.trip(capacity=4, remaining=0, status=TripStatus.FULL)
    await seed.booking(trip_id, seats=4, status=BookingStatus.CONFIRMED)
    booking_id = await seed.booking(trip_id, seats=2, passenger_id="passenger-2")

    result = await service.transition(booking_id, BookingStatus.CONFIRMED)

    assert not result.ok
    assert result.error.kind == "InsufficientCapacity"
    assert result.error.to_dict()["remaining"] == 0
    assert result.error.to_dict()["requested"] == 2
    assert (await seed.load_booking(booking_id)).status == BookingStatus.PENDING
    stored = await seed.load_trip(trip_id)
    assert stored.remaining_capacity == 0
    assert stored.lifecycle_status == TripStatus.FULL
    assert stored.version == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("target", list(BookingStatus))
async def test_completed_trip_rejects_every_target(service, seed, target):
    trip_id = await seed.trip(capacity=4, remaining=3, status=TripStatus.COMPLETED)
    booking_id = await seed.booking(trip_id, seats=1, status=BookingStatus.CONFIRMED)

    result = await service.transition(booking_id, target)

    assert result.error.kind == "TripClosed"
    assert (await seed.load_booking(booking_id)).status == BookingStatus.CONFIRMED


@pytest.mark.asyncio
async def test_departed_trip_is_rejected_even_if_not_swept(service, seed):
    trip_id = await seed.trip(
        capacity=4, status=TripStatus.PREPARING, departs_in=-timedelta(minutes=5)
    )
    booking_id = await seed.booking(trip_id, seats=1)

    result = await service.transition(booking_id, BookingStatus.CONFIRMED)

    assert result.error.kind == "TripDeparted"


@pytest.mark.asyncio
async def test_terminal_booking_cannot_be_revived(service, seed):
    trip_id = await seed.trip(capacity=4)
    booking_id = await seed.booking(trip_id, seats=1, status=BookingStatus.CANCELLED)

    result = await service.transition(booking_id, BookingStatus.CONFIRMED)

    assert result.error.kind == "InvalidTransition"


@pytest.mark.asyncio
async def test_unknown_status_is_invalid_transition(service, seed):
    trip_id = await seed.trip(capacity=4)
    booking_id = await seed.booking(trip_id, seats=1)

    result = await service.transition(booking_id, "TELEPORTED")

    assert result.error.kind == "InvalidTransition"


@pytest.mark.asyncio
async def test_missing_booking_is_not_found(service):
    result = await service.transition("does-not-exist", BookingStatus.CONFIRMED)

    assert result.error.kind == "NotFound"


@pytest.mark.asyncio
async def test_overbooked_trip_still_allows_cancellation(service, seed):
    # Left behind by an earlier unguarded writer: 5 confirmed seats on 4.
    trip_id = await seed.trip(capacity=4, remaining=0, status=TripStatus.FULL)
    big = await seed.booking(trip_id, seats=3, status=BookingStatus.CONFIRMED)
    await seed.booking(trip_id, seats=2, status=BookingStatus.CONFIRMED)
    waiting = await seed.booking(trip_id, seats=1)

    rejected = await service.transition(waiting, BookingStatus.CONFIRMED)
    cancelled = await service.transition(big, BookingStatus.CANCELLED)

    assert rejected.error.kind == "InsufficientCapacity"
    assert cancelled.ok
    assert cancelled.trip.remaining_capacity == 2
    await seed.assert_ledger_consistent(trip_id)


# ── Self-service cancellation ─────────────────────────────────────────


@pytest.mark.asyncio
async def test_owner_cancels_confirmed_booking_and_seats_return(service, seed):
    trip_id = await seed.trip(capacity=4, remaining=1)
    booking_id = await seed.booking(
        trip_id, seats=3, status=BookingStatus.CONFIRMED, passenger_id="alice"
    )

    result = await service.cancel_own_booking(booking_id, "alice")

    assert result.ok
    assert result.booking.status == BookingStatus.CANCELLED
    assert result.trip.remaining_capacity == 4
    await seed.assert_ledger_consistent(trip_id)


@pytest.mark.asyncio
async def test_someone_else_cannot_cancel(service, seed):
    trip_id = await seed.trip(capacity=4)
    booking_id = await seed.booking(trip_id, seats=1, passenger_id="alice")

    result = await service.cancel_own_booking(booking_id, "mallory")

    assert result.error.kind == "NotOwner"
    assert (await seed.load_booking(booking_id)).status == BookingStatus.PENDING


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status", [BookingStatus.PICKED_UP, BookingStatus.ON_BOARD, BookingStatus.CANCELLED]
)
async def test_owner_cannot_cancel_underway_or_finished_booking(service, seed, status):
    trip_id = await seed.trip(capacity=4)
    booking_id = await seed.booking(trip_id, seats=1, status=status, passenger_id="alice")

    result = await service.cancel_own_booking(booking_id, "alice")

    assert result.error.kind == "InvalidTransition"


@pytest.mark.asyncio
async def test_self_service_respects_trip_guard(service, seed):
    trip_id = await seed.trip(capacity=4, status=TripStatus.CANCELLED)
    booking_id = await seed.booking(trip_id, seats=1, passenger_id="alice")

    result = await service.cancel_own_booking(booking_id, "alice")

    assert result.error.kind == "TripClosed"


# ── Reservation, posting and staff trip status ───────────────────────


@pytest.mark.asyncio
async def test_post_trip_starts_with_all_seats(service, clock):
    result = await service.post_trip(
        TripDraft(
            owner_id="driver-1",
            capacity=4,
            departure_at=clock.now + timedelta(hours=6),
            price=150.0,
        )
    )

    assert result.ok
    assert result.trip.remaining_capacity == 4
    assert result.trip.lifecycle_status == TripStatus.PREPARING
    assert result.trip.version == 0


@pytest.mark.asyncio
async def test_post_trip_rejects_arrival_before_departure(service, clock):
    result = await service.post_trip(
        TripDraft(
            owner_id="driver-1",
            capacity=4,
            departure_at=clock.now + timedelta(hours=6),
            arrival_at=clock.now + timedelta(hours=5),
        )
    )

    assert result.error.kind == "InvalidRequest"


@pytest.mark.asyncio
async def test_reserve_creates_pending_booking_without_touching_seats(service, seed):
    trip_id = await seed.trip(capacity=4, price=120.0)

    result = await service.reserve(trip_id, "alice", 2, note="pick me up at the gate")

    assert result.ok
    assert result.booking.status == BookingStatus.PENDING
    assert result.booking.total_price == 240.0
    assert result.booking.note == "pick me up at the gate"
    assert (await seed.load_trip(trip_id)).remaining_capacity == 4


@pytest.mark.asyncio
async def test_reserve_more_than_remaining_is_rejected(service, seed):
    trip_id = await seed.trip(capacity=4, remaining=1)
    await seed.booking(trip_id, seats=3, status=BookingStatus.CONFIRMED)

    result = await service.reserve(trip_id, "alice", 2)

    assert result.error.kind == "InsufficientCapacity"
    assert result.error.to_dict()["remaining"] == 1


@pytest.mark.asyncio
async def test_demand_post_accepts_offers_beyond_remaining(service, seed):
    trip_id = await seed.trip(capacity=2, remaining=0, status=TripStatus.FULL, is_demand_post=True)
    await seed.booking(trip_id, seats=2, status=BookingStatus.CONFIRMED)

    accepted = await service.reserve(trip_id, "driver-7", 2)
    too_big = await service.reserve(trip_id, "driver-8", 3)

    assert accepted.ok
    assert too_big.error.kind == "InsufficientCapacity"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [TripStatus.COMPLETED, TripStatus.CANCELLED])
async def test_reserve_on_closed_trip_is_rejected(service, seed, status):
    trip_id = await seed.trip(capacity=4, status=status)

    result = await service.reserve(trip_id, "alice", 1)

    assert result.error.kind == "TripClosed"


@pytest.mark.asyncio
async def test_reserve_zero_seats_is_invalid(service, seed):
    trip_id = await seed.trip(capacity=4)

    result = await service.reserve(trip_id, "alice", 0)

    assert result.error.kind == "InvalidRequest"


@pytest.mark.asyncio
async def test_staff_moves_trip_along_and_completion_freezes_it(service, seed, clock):
    trip_id = await seed.trip(capacity=4, departs_in=timedelta(minutes=10))
    booking_id = await seed.booking(trip_id, seats=1)

    on_trip = await service.update_trip_status(trip_id, TripStatus.ON_TRIP)
    completed = await service.update_trip_status(trip_id, "COMPLETED")
    reopened = await service.update_trip_status(trip_id, TripStatus.PREPARING)
    confirm = await service.transition(booking_id, BookingStatus.CONFIRMED)

    assert on_trip.ok and on_trip.trip.version == 1
    assert completed.ok and completed.trip.lifecycle_status == TripStatus.COMPLETED
    assert reopened.error.kind == "TripClosed"
    assert confirm.error.kind == "TripClosed"


@pytest.mark.asyncio
async def test_staff_cannot_mark_trip_full_while_seats_remain(service, seed):
    trip_id = await seed.trip(capacity=4)

    result = await service.update_trip_status(trip_id, TripStatus.FULL)

    assert result.error.kind == "InvalidTransition"


@pytest.mark.asyncio
async def test_get_trip_returns_bookings(service, seed):
    trip_id = await seed.trip(capacity=4, remaining=3)
    await seed.booking(trip_id, seats=1, status=BookingStatus.CONFIRMED)
    await seed.booking(trip_id, seats=2)

    snapshot = await service.get_trip(trip_id)

    assert snapshot.trip.id == trip_id
    assert len(snapshot.bookings) == 2
    assert snapshot.display_remaining == 3
    assert await service.get_trip("missing") is None
