# backend/modules/seating/tests/test_booking_status_service.py

import pytest

from core.exceptions import ConflictError
from ..models.seating_models import BookingStatus, TERMINAL_STATUSES
from ..services.booking_status_service import (
    can_transition,
    estimate_remaining_minutes,
    get_dining_progress,
    get_valid_transitions,
    validate_status_transition,
)


class TestBookingStatusTransitions:

    @pytest.mark.parametrize(
        "current,new",
        [
            (BookingStatus.PENDING, BookingStatus.CONFIRMED),
            (BookingStatus.CONFIRMED, BookingStatus.ARRIVED),
            (BookingStatus.CONFIRMED, BookingStatus.SEATED),
            (BookingStatus.ARRIVED, BookingStatus.SEATED),
            (BookingStatus.SEATED, BookingStatus.ORDERED),
            (BookingStatus.MAIN_COURSE, BookingStatus.PAYMENT),
            (BookingStatus.PAYMENT, BookingStatus.COMPLETED),
            (BookingStatus.NO_SHOW, BookingStatus.CONFIRMED),
        ],
    )
    def test_allowed(self, current, new):
        assert can_transition(current, new)
        validate_status_transition(current, new)

    @pytest.mark.parametrize(
        "current,new",
        [
            (BookingStatus.PENDING, BookingStatus.SEATED),
            (BookingStatus.SEATED, BookingStatus.ARRIVED),
            (BookingStatus.ORDERED, BookingStatus.COMPLETED),
            (BookingStatus.COMPLETED, BookingStatus.PAYMENT),
        ],
    )
    def test_rejected(self, current, new):
        assert not can_transition(current, new)
        with pytest.raises(ConflictError) as exc_info:
            validate_status_transition(current, new)

        assert exc_info.value.error_code == "INVALID_STATUS_TRANSITION"
        assert current.value in exc_info.value.detail
        assert new.value in exc_info.value.detail

    def test_accepts_plain_strings(self):
        assert can_transition("confirmed", "arrived")

    def test_terminal_statuses_can_reopen(self):
        for status in TERMINAL_STATUSES:
            assert BookingStatus.CONFIRMED in get_valid_transitions(status)

    def test_valid_transitions_in_enum_order(self):
        assert get_valid_transitions(BookingStatus.ARRIVED) == [
            BookingStatus.SEATED,
            BookingStatus.CANCELLED_BY_RESTAURANT,
        ]


class TestDiningProgress:

    def test_progress_increases_through_service(self):
        flow = [
            BookingStatus.SEATED,
            BookingStatus.ORDERED,
            BookingStatus.APPETIZERS,
            BookingStatus.MAIN_COURSE,
            BookingStatus.DESSERT,
            BookingStatus.PAYMENT,
        ]
        progress = [get_dining_progress(status) for status in flow]
        assert progress == sorted(progress)

    def test_remaining_minutes(self):
        assert estimate_remaining_minutes(BookingStatus.MAIN_COURSE, 100) == pytest.approx(30)
        assert estimate_remaining_minutes(BookingStatus.COMPLETED, 120) == 0
