# backend/modules/seating/tests/test_assignment_service.py

"""
Tests for assignment commands: assign, clear, swap, check-in and
execution of generated options, including commit-time re-validation.
"""

import pytest
from datetime import timedelta

from core.exceptions import ConflictError
from tests.factories import BookingFactory, RestaurantTableFactory
from ..exceptions import (
    ConfirmationRequiredError,
    InconsistentSwapError,
    SeatingStoreError,
    SeatingValidationError,
    TablesUnavailableError,
)
from ..models.seating_models import BookingStatus, BookingStatusHistory
from ..services.assignment_service import AssignmentService
from ..services.swap_option_service import SwapOptionType, swap_option_service


@pytest.fixture
def service(store):
    return AssignmentService(store)


@pytest.fixture
def tables(db_session):
    return [RestaurantTableFactory(max_capacity=4) for _ in range(3)]


async def _options_for(store, booking, target_ids, now):
    tables = await store.list_tables(booking.restaurant_id)
    bookings = await store.list_bookings(
        booking.restaurant_id, now - timedelta(hours=24), now + timedelta(hours=24)
    )
    return swap_option_service.calculate_swap_options(
        booking, target_ids, tables, bookings, now=now
    )


class TestAssign:

    @pytest.mark.asyncio
    async def test_assign_free_table(self, service, tables, db_session, now):
        booking = BookingFactory(booking_time=now)

        updated = await service.assign(booking.id, [tables[0].id], changed_by=7)

        assert updated.table_ids == [tables[0].id]
        history = (
            db_session.query(BookingStatusHistory)
            .filter(BookingStatusHistory.booking_id == booking.id)
            .all()
        )
        assert history[-1].reason == "table_switch"
        assert history[-1].changed_by == 7
        assert history[-1].details == {"from_tables": [], "to_tables": [tables[0].id]}

    @pytest.mark.asyncio
    async def test_assign_occupied_table_is_rejected(self, service, tables, now):
        seated = BookingFactory(
            status=BookingStatus.SEATED,
            booking_time=now - timedelta(minutes=30),
            tables=[tables[0]],
        )
        booking = BookingFactory(booking_time=now)

        with pytest.raises(TablesUnavailableError) as exc_info:
            await service.assign(booking.id, [tables[0].id])

        error = exc_info.value
        assert error.table_ids == [tables[0].id]
        assert error.occupying_booking_id == seated.id
        assert error.retryable
        assert "Recompute options" in error.detail
        assert booking.table_ids == []

    @pytest.mark.asyncio
    async def test_assign_ignores_displaced_bookings(self, service, tables, now):
        waiting = BookingFactory(
            status=BookingStatus.ARRIVED,
            booking_time=now - timedelta(minutes=5),
            tables=[tables[0]],
        )
        booking = BookingFactory(booking_time=now)

        updated = await service.assign(
            booking.id, [tables[0].id], displaced_booking_ids=[waiting.id]
        )

        assert updated.table_ids == [tables[0].id]

    @pytest.mark.asyncio
    async def test_assign_unknown_table(self, service, tables, now):
        booking = BookingFactory(booking_time=now)

        with pytest.raises(SeatingValidationError):
            await service.assign(booking.id, [9999])

    @pytest.mark.asyncio
    async def test_assign_inactive_table(self, service, db_session, now):
        closed = RestaurantTableFactory(is_active=False)
        booking = BookingFactory(booking_time=now)

        with pytest.raises(SeatingValidationError) as exc_info:
            await service.assign(booking.id, [closed.id])
        assert "inactive" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_assign_requires_tables(self, service, db_session, now):
        booking = BookingFactory(booking_time=now)

        with pytest.raises(SeatingValidationError):
            await service.assign(booking.id, [])

    @pytest.mark.asyncio
    async def test_clear(self, service, tables, now):
        booking = BookingFactory(booking_time=now, tables=[tables[0], tables[1]])

        cleared = await service.clear(booking.id)

        assert cleared.table_ids == []


class TestSwap:

    @pytest.fixture
    def parties(self, tables, now):
        first = BookingFactory(
            status=BookingStatus.SEATED,
            booking_time=now - timedelta(minutes=30),
            tables=[tables[0]],
        )
        second = BookingFactory(
            status=BookingStatus.ARRIVED,
            booking_time=now - timedelta(minutes=5),
            tables=[tables[1]],
        )
        return first, second

    @pytest.mark.asyncio
    async def test_swap_exchanges_tables(self, service, tables, parties):
        first, second = parties

        a, b = await service.swap(first.id, [tables[1].id], second.id, [tables[0].id])

        assert a.table_ids == [tables[1].id]
        assert b.table_ids == [tables[0].id]

    @pytest.mark.asyncio
    async def test_swap_blocked_by_third_party(self, service, tables, parties, now):
        first, second = parties
        BookingFactory(
            status=BookingStatus.SEATED,
            booking_time=now - timedelta(minutes=10),
            tables=[tables[2]],
        )

        with pytest.raises(TablesUnavailableError):
            await service.swap(first.id, [tables[2].id], second.id, [tables[0].id])

        assert first.table_ids == [tables[0].id]
        assert second.table_ids == [tables[1].id]

    @pytest.mark.asyncio
    async def test_failed_half_is_compensated(
        self, service, store, tables, parties, monkeypatch
    ):
        first, second = parties
        original = store.update_booking_tables

        async def flaky(booking_id, table_ids, changed_by=None):
            if booking_id == second.id:
                raise SeatingStoreError("update_booking_tables", "OperationalError")
            return await original(booking_id, table_ids, changed_by)

        monkeypatch.setattr(store, "update_booking_tables", flaky)

        with pytest.raises(SeatingStoreError):
            await service.swap(first.id, [tables[1].id], second.id, [tables[0].id])

        assert first.table_ids == [tables[0].id]
        assert second.table_ids == [tables[1].id]

    @pytest.mark.asyncio
    async def test_failed_compensation_is_reported(
        self, service, store, tables, parties, monkeypatch
    ):
        first, second = parties
        original = store.update_booking_tables
        calls = []

        async def flaky(booking_id, table_ids, changed_by=None):
            calls.append(booking_id)
            if booking_id == second.id or calls.count(first.id) > 1:
                raise SeatingStoreError("update_booking_tables", "OperationalError")
            return await original(booking_id, table_ids, changed_by)

        monkeypatch.setattr(store, "update_booking_tables", flaky)

        with pytest.raises(InconsistentSwapError) as exc_info:
            await service.swap(first.id, [tables[1].id], second.id, [tables[0].id])

        assert exc_info.value.context["booking_ids"] == [first.id, second.id]
        assert exc_info.value.error_code == "SWAP_INCONSISTENT"

    @pytest.mark.asyncio
    async def test_both_halves_failing_raises_first_error(
        self, service, store, tables, parties, monkeypatch
    ):
        first, second = parties

        async def broken(booking_id, table_ids, changed_by=None):
            raise SeatingStoreError(f"update {booking_id}", "OperationalError")

        monkeypatch.setattr(store, "update_booking_tables", broken)

        with pytest.raises(SeatingStoreError) as exc_info:
            await service.swap(first.id, [tables[1].id], second.id, [tables[0].id])

        assert exc_info.value.operation == f"update {first.id}"


class TestCheckIn:

    @pytest.mark.asyncio
    async def test_check_in_seats_booking(self, service, tables, now):
        booking = BookingFactory(booking_time=now, tables=[tables[0]])

        seated = await service.check_in(booking.id)

        assert seated.status == BookingStatus.SEATED
        assert seated.seated_at is not None
        assert seated.checked_in_at is not None

    @pytest.mark.asyncio
    async def test_check_in_at_other_tables(self, service, tables, now):
        booking = BookingFactory(booking_time=now, tables=[tables[0]])

        seated = await service.check_in(booking.id, [tables[1].id])

        assert seated.table_ids == [tables[1].id]
        assert seated.status == BookingStatus.SEATED

    @pytest.mark.asyncio
    async def test_check_in_rechecks_occupancy(self, service, tables, now):
        BookingFactory(
            status=BookingStatus.SEATED,
            booking_time=now - timedelta(minutes=40),
            tables=[tables[0]],
        )
        booking = BookingFactory(booking_time=now, tables=[tables[0]])

        with pytest.raises(TablesUnavailableError):
            await service.check_in(booking.id)

        assert booking.status == BookingStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_check_in_needs_valid_transition(self, service, tables, now):
        booking = BookingFactory(
            status=BookingStatus.PENDING, booking_time=now, tables=[tables[0]]
        )

        with pytest.raises(ConflictError) as exc_info:
            await service.check_in(booking.id)
        assert exc_info.value.error_code == "INVALID_STATUS_TRANSITION"

    @pytest.mark.asyncio
    async def test_check_in_without_tables(self, service, db_session, now):
        booking = BookingFactory(booking_time=now)

        with pytest.raises(SeatingValidationError):
            await service.check_in(booking.id)


class TestUpdateStatus:

    @pytest.mark.asyncio
    async def test_arrival_on_occupied_table_is_rejected(self, service, tables, now):
        BookingFactory(
            status=BookingStatus.MAIN_COURSE,
            booking_time=now - timedelta(minutes=60),
            tables=[tables[0]],
        )
        booking = BookingFactory(booking_time=now, tables=[tables[0]])

        with pytest.raises(TablesUnavailableError):
            await service.update_status(booking.id, BookingStatus.ARRIVED)

    @pytest.mark.asyncio
    async def test_dining_progress(self, service, tables, now):
        booking = BookingFactory(
            status=BookingStatus.SEATED, booking_time=now, tables=[tables[0]]
        )

        updated = await service.update_status(
            booking.id, BookingStatus.ORDERED, reason="order sent"
        )

        assert updated.status == BookingStatus.ORDERED

    @pytest.mark.asyncio
    async def test_invalid_transition(self, service, tables, now):
        booking = BookingFactory(status=BookingStatus.COMPLETED, booking_time=now)

        with pytest.raises(ConflictError):
            await service.update_status(booking.id, BookingStatus.PAYMENT)


class TestExecuteOption:

    @pytest.mark.asyncio
    async def test_bump_future_reservation(self, service, store, tables, now):
        upcoming = BookingFactory(
            booking_time=now + timedelta(minutes=60), tables=[tables[0]]
        )
        booking = BookingFactory(status=BookingStatus.ARRIVED, booking_time=now)

        options = await _options_for(store, booking, [tables[0].id], now)
        assert options[0].confidence == 75

        updated = await service.execute_option(booking.id, options[0])

        assert updated.table_ids == [tables[0].id]
        assert upcoming.table_ids == []

    @pytest.mark.asyncio
    async def test_late_reservation_is_bumped_not_double_booked(
        self, service, store, tables, now
    ):
        late = BookingFactory(
            booking_time=now - timedelta(minutes=5), tables=[tables[0]]
        )
        booking = BookingFactory(status=BookingStatus.ARRIVED, booking_time=now)

        options = await _options_for(store, booking, [tables[0].id], now)
        assert [o.confidence for o in options] == [75]
        assert options[0].displaced_bookings == [late]

        updated = await service.execute_option(booking.id, options[0])
        arrived = await service.update_status(late.id, BookingStatus.ARRIVED)

        assert updated.table_ids == [tables[0].id]
        assert arrived.status == BookingStatus.ARRIVED
        assert arrived.table_ids == []

    @pytest.mark.asyncio
    async def test_true_swap(self, service, store, tables, now):
        seated = BookingFactory(
            status=BookingStatus.SEATED,
            booking_time=now - timedelta(minutes=30),
            tables=[tables[0]],
        )
        booking = BookingFactory(
            status=BookingStatus.ARRIVED, booking_time=now, tables=[tables[1]]
        )

        options = await _options_for(store, booking, [tables[0].id], now)
        swap = next(o for o in options if o.type == SwapOptionType.SWAP)

        updated = await service.execute_option(booking.id, swap)

        assert updated.table_ids == [tables[0].id]
        assert seated.table_ids == [tables[1].id]

    @pytest.mark.asyncio
    async def test_stale_option_is_rejected(self, service, store, tables, now):
        upcoming = BookingFactory(
            booking_time=now + timedelta(minutes=60), tables=[tables[0]]
        )
        booking = BookingFactory(status=BookingStatus.ARRIVED, booking_time=now)
        options = await _options_for(store, booking, [tables[0].id], now)

        # Another terminal seats a party there before this one commits
        rival = BookingFactory(status=BookingStatus.ARRIVED, booking_time=now)
        await service.check_in(rival.id, [tables[0].id])

        with pytest.raises(TablesUnavailableError) as exc_info:
            await service.execute_option(booking.id, options[0])

        assert exc_info.value.occupying_booking_id == rival.id
        assert upcoming.table_ids == [tables[0].id]
        assert booking.table_ids == []

    @pytest.mark.asyncio
    async def test_capacity_warning_needs_confirmation(
        self, service, store, db_session, now
    ):
        small = RestaurantTableFactory(max_capacity=2)
        booking = BookingFactory(party_size=4, booking_time=now)
        options = await _options_for(store, booking, [small.id], now)

        with pytest.raises(ConfirmationRequiredError) as exc_info:
            await service.execute_option(booking.id, options[0])
        assert exc_info.value.items[0]["message"] == (
            "Tables seat 2, party of 4 exceeds capacity"
        )

        updated = await service.execute_option(booking.id, options[0], confirmed=True)
        assert updated.table_ids == [small.id]


class TestReassign:

    @pytest.mark.asyncio
    async def test_short_capacity_needs_confirmation(self, service, db_session, now):
        small = RestaurantTableFactory(max_capacity=2)
        booking = BookingFactory(party_size=3, booking_time=now)

        with pytest.raises(ConfirmationRequiredError) as exc_info:
            await service.reassign(booking.id, [small.id])
        assert exc_info.value.items == [
            {"type": "capacity", "capacity": 2, "party_size": 3}
        ]

        updated = await service.reassign(booking.id, [small.id], confirmed=True)
        assert updated.table_ids == [small.id]

    @pytest.mark.asyncio
    async def test_reassign_to_fitting_tables(self, service, tables, now):
        booking = BookingFactory(party_size=6, booking_time=now, tables=[tables[2]])

        updated = await service.reassign(booking.id, [tables[0].id, tables[1].id])

        assert updated.table_ids == sorted([tables[0].id, tables[1].id])
