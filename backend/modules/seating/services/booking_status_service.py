# backend/modules/seating/services/booking_status_service.py

"""
Booking lifecycle rules: allowed status transitions, dining progress
and remaining-time estimates.
"""

from typing import Dict, List, FrozenSet

from core.exceptions import ConflictError
from ..models.seating_models import BookingStatus, TERMINAL_STATUSES


# Guided flow plus the shortcuts staff use at the host stand
ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {
            BookingStatus.CONFIRMED,
            BookingStatus.CANCELLED_BY_USER,
            BookingStatus.CANCELLED_BY_RESTAURANT,
            BookingStatus.DECLINED_BY_RESTAURANT,
        }
    ),
    BookingStatus.CONFIRMED: frozenset(
        {
            BookingStatus.ARRIVED,
            BookingStatus.SEATED,
            BookingStatus.NO_SHOW,
            BookingStatus.CANCELLED_BY_USER,
            BookingStatus.CANCELLED_BY_RESTAURANT,
        }
    ),
    BookingStatus.ARRIVED: frozenset(
        {BookingStatus.SEATED, BookingStatus.CANCELLED_BY_RESTAURANT}
    ),
    BookingStatus.SEATED: frozenset({BookingStatus.ORDERED}),
    BookingStatus.ORDERED: frozenset({BookingStatus.APPETIZERS}),
    BookingStatus.APPETIZERS: frozenset({BookingStatus.MAIN_COURSE}),
    BookingStatus.MAIN_COURSE: frozenset(
        {BookingStatus.DESSERT, BookingStatus.PAYMENT}
    ),
    BookingStatus.DESSERT: frozenset({BookingStatus.PAYMENT}),
    BookingStatus.PAYMENT: frozenset({BookingStatus.COMPLETED}),
}

# Finished bookings may be re-opened
REOPEN_STATUSES = frozenset(
    {
        BookingStatus.PENDING,
        BookingStatus.CONFIRMED,
        BookingStatus.ARRIVED,
        BookingStatus.SEATED,
    }
)
for _terminal in TERMINAL_STATUSES:
    ALLOWED_TRANSITIONS[_terminal] = REOPEN_STATUSES

DINING_PROGRESS: Dict[BookingStatus, int] = {
    BookingStatus.PENDING: 0,
    BookingStatus.CONFIRMED: 5,
    BookingStatus.ARRIVED: 10,
    BookingStatus.SEATED: 20,
    BookingStatus.ORDERED: 30,
    BookingStatus.APPETIZERS: 50,
    BookingStatus.MAIN_COURSE: 70,
    BookingStatus.DESSERT: 85,
    BookingStatus.PAYMENT: 95,
    BookingStatus.COMPLETED: 100,
    BookingStatus.NO_SHOW: 100,
    BookingStatus.CANCELLED_BY_USER: 100,
    BookingStatus.CANCELLED_BY_RESTAURANT: 100,
    BookingStatus.DECLINED_BY_RESTAURANT: 100,
}


def get_valid_transitions(current_status: BookingStatus) -> List[BookingStatus]:
    """Statuses a booking may move to from ``current_status``, in enum order"""
    allowed = ALLOWED_TRANSITIONS.get(BookingStatus(current_status), frozenset())
    return [status for status in BookingStatus if status in allowed]


def can_transition(current_status: BookingStatus, new_status: BookingStatus) -> bool:
    return BookingStatus(new_status) in ALLOWED_TRANSITIONS.get(
        BookingStatus(current_status), frozenset()
    )


def validate_status_transition(
    current_status: BookingStatus, new_status: BookingStatus
) -> None:
    """Raise ConflictError if the transition is not allowed"""
    if not can_transition(current_status, new_status):
        current = BookingStatus(current_status).value
        new = BookingStatus(new_status).value
        raise ConflictError(
            f"Cannot transition booking from {current} to {new}",
            error_code="INVALID_STATUS_TRANSITION",
            context={"current_status": current, "requested_status": new},
        )


def get_dining_progress(status: BookingStatus) -> int:
    """Dining progress percentage (0-100) for a status"""
    return DINING_PROGRESS.get(BookingStatus(status), 0)


def estimate_remaining_minutes(status: BookingStatus, turn_time_minutes: int) -> float:
    """Remaining occupancy in minutes, scaled by dining progress"""
    progress = get_dining_progress(status)
    elapsed = (progress / 100) * turn_time_minutes
    return max(0.0, turn_time_minutes - elapsed)
