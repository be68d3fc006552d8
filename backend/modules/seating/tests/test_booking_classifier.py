# backend/modules/seating/tests/test_booking_classifier.py

"""
Tests for host-stand queue classification.
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

from tests.factories import BookingFactory, RestaurantTableFactory
from ..config import SeatingConfig
from ..models.seating_models import BookingStatus
from ..services.booking_classifier import (
    CustomerFlags,
    Shift,
    Urgency,
    classify_bookings,
    get_shift,
    get_urgency,
    minutes_until,
    to_local_time,
)


class TestShiftsAndUrgency:

    @pytest.mark.parametrize(
        "hour,expected",
        [
            (6, Shift.MORNING),
            (10, Shift.MORNING),
            (11, Shift.LUNCH),
            (15, Shift.LUNCH),
            (16, Shift.DINNER),
            (21, Shift.DINNER),
            (22, Shift.LATE_NIGHT),
            (2, Shift.LATE_NIGHT),
            (5, Shift.LATE_NIGHT),
        ],
    )
    def test_shift_boundaries(self, hour, expected):
        assert get_shift(datetime(2024, 6, 1, hour, 30)) == expected

    def test_shift_uses_restaurant_timezone(self):
        config = SeatingConfig(RESTAURANT_TIMEZONE="America/New_York")
        # 23:30 UTC is 19:30 in New York during daylight saving time
        booking_time = datetime(2024, 6, 1, 23, 30, tzinfo=timezone.utc)
        with patch(
            "modules.seating.services.booking_classifier.get_seating_config",
            return_value=config,
        ):
            assert get_shift(booking_time) == Shift.DINNER

    def test_naive_stored_time_is_read_as_utc(self):
        config = SeatingConfig(RESTAURANT_TIMEZONE="America/New_York")
        booking_time = datetime(2024, 6, 1, 23, 30)
        with patch(
            "modules.seating.services.booking_classifier.get_seating_config",
            return_value=config,
        ):
            assert get_shift(booking_time) == Shift.DINNER
            assert to_local_time(booking_time).strftime("%H:%M") == "19:30"

    @pytest.mark.parametrize(
        "offset,expected",
        [
            (-16, Urgency.LATE),
            (-15, Urgency.CURRENT),
            (0, Urgency.CURRENT),
            (15, Urgency.CURRENT),
            (16, Urgency.UPCOMING),
        ],
    )
    def test_urgency_threshold(self, now, offset, expected):
        assert get_urgency(now + timedelta(minutes=offset), now) == expected

    def test_minutes_until_truncates_toward_zero(self, now):
        assert minutes_until(now + timedelta(seconds=90), now) == 1
        assert minutes_until(now - timedelta(seconds=90), now) == -1

    def test_minutes_until_mixed_awareness(self, now):
        aware = (now + timedelta(minutes=20)).replace(tzinfo=timezone.utc)
        assert minutes_until(aware, now) == 20


class TestClassifyBookings:

    @pytest.fixture
    def bookings(self, now):
        table = RestaurantTableFactory.build()
        return {
            "arrived": BookingFactory.build(
                status=BookingStatus.ARRIVED, booking_time=now - timedelta(minutes=5)
            ),
            "main": BookingFactory.build(
                status=BookingStatus.MAIN_COURSE,
                booking_time=now - timedelta(minutes=90),
                tables=[table],
            ),
            "seated": BookingFactory.build(
                status=BookingStatus.SEATED, booking_time=now - timedelta(minutes=20)
            ),
            "late": BookingFactory.build(
                status=BookingStatus.CONFIRMED,
                booking_time=now - timedelta(minutes=30),
                tables=[table],
            ),
            "current": BookingFactory.build(
                status=BookingStatus.CONFIRMED, booking_time=now + timedelta(minutes=10)
            ),
            "upcoming": BookingFactory.build(
                status=BookingStatus.CONFIRMED,
                booking_time=now + timedelta(hours=3),
                user_id=42,
            ),
            "pending": BookingFactory.build(
                status=BookingStatus.PENDING, booking_time=now + timedelta(minutes=30)
            ),
            "completed": BookingFactory.build(
                status=BookingStatus.COMPLETED, booking_time=now - timedelta(hours=3)
            ),
        }

    def test_partitions_are_disjoint(self, bookings, now):
        result = classify_bookings(bookings.values(), now)

        waiting = {b.id for b in result.waiting_for_seating}
        dining = {b.id for b in result.active_dining}
        arrivals = {b.id for b in result.arrivals}

        assert waiting == {bookings["arrived"].id}
        assert dining == {bookings["main"].id, bookings["seated"].id}
        assert arrivals == {
            bookings["late"].id,
            bookings["current"].id,
            bookings["upcoming"].id,
        }
        assert not (waiting & dining or waiting & arrivals or dining & arrivals)

    def test_pending_and_terminal_bookings_are_excluded(self, bookings, now):
        result = classify_bookings(bookings.values(), now)
        every = result.waiting_for_seating + result.active_dining + result.arrivals

        assert bookings["pending"] not in every
        assert bookings["completed"] not in every

    def test_active_dining_in_service_order(self, bookings, now):
        result = classify_bookings(bookings.values(), now)
        assert result.active_dining == [bookings["seated"], bookings["main"]]

    def test_arrivals_grouped_by_urgency(self, bookings, now):
        result = classify_bookings(bookings.values(), now)

        assert result.late_arrivals == [bookings["late"]]
        assert result.current_arrivals == [bookings["current"]]
        assert result.upcoming_arrivals == [bookings["upcoming"]]

    def test_arrivals_grouped_by_shift(self, bookings, now):
        result = classify_bookings(bookings.values(), now)

        assert set(result.arrivals_by_shift) == set(Shift)
        assert result.arrivals_by_shift[Shift.DINNER] == [
            bookings["late"],
            bookings["current"],
        ]
        assert result.arrivals_by_shift[Shift.LATE_NIGHT] == [bookings["upcoming"]]
        assert result.arrivals_by_shift[Shift.LUNCH] == []

    def test_arrivals_sorted_by_time(self, now):
        later = BookingFactory.build(booking_time=now + timedelta(minutes=40))
        sooner = BookingFactory.build(booking_time=now + timedelta(minutes=20))

        result = classify_bookings([later, sooner], now)

        assert result.arrivals == [sooner, later]

    def test_needing_tables(self, bookings, now):
        shared = BookingFactory.build(
            booking_time=now + timedelta(minutes=10),
            is_shared_booking=True,
            shared_table_id=99,
        )
        result = classify_bookings(list(bookings.values()) + [shared], now)

        assert result.needing_tables == [bookings["current"], bookings["upcoming"]]

    def test_vip_arrivals_use_customer_flags(self, bookings, now):
        lookup = Mock(
            side_effect=lambda user_id: CustomerFlags(vip_status=user_id == 42)
        )

        result = classify_bookings(bookings.values(), now, lookup)

        assert result.vip_arrivals == [bookings["upcoming"]]
        lookup.assert_called_once_with(42)

    def test_missing_customer_flags(self, bookings, now):
        result = classify_bookings(bookings.values(), now, lambda user_id: None)
        assert result.vip_arrivals == []

    def test_empty_input(self, now):
        result = classify_bookings([], now)

        assert result.arrivals == []
        assert all(group == [] for group in result.arrivals_by_urgency.values())
