# backend/modules/seating/services/booking_classifier.py

"""
Partitions a restaurant's bookings into the queues the host stand works
from: guests waiting for a table, parties currently dining, and the
confirmed arrivals grouped by shift and by urgency.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from ..config import get_seating_config
from ..models.seating_models import Booking, BookingStatus, ACTIVE_DINING_STATUSES


class Shift(str, Enum):
    MORNING = "morning"
    LUNCH = "lunch"
    DINNER = "dinner"
    LATE_NIGHT = "late_night"


class Urgency(str, Enum):
    LATE = "late"
    CURRENT = "current"
    UPCOMING = "upcoming"


@dataclass
class CustomerFlags:
    """Flags looked up for a registered guest"""

    vip_status: bool = False
    blacklisted: bool = False
    average_party_size: Optional[float] = None
    preferred_table_types: List[str] = field(default_factory=list)


CustomerFlagLookup = Callable[[int], Optional[CustomerFlags]]


@dataclass
class ClassifiedBookings:
    waiting_for_seating: List[Booking] = field(default_factory=list)
    active_dining: List[Booking] = field(default_factory=list)
    arrivals: List[Booking] = field(default_factory=list)
    arrivals_by_shift: Dict[Shift, List[Booking]] = field(
        default_factory=lambda: {shift: [] for shift in Shift}
    )
    arrivals_by_urgency: Dict[Urgency, List[Booking]] = field(
        default_factory=lambda: {urgency: [] for urgency in Urgency}
    )
    vip_arrivals: List[Booking] = field(default_factory=list)
    needing_tables: List[Booking] = field(default_factory=list)

    @property
    def late_arrivals(self) -> List[Booking]:
        return self.arrivals_by_urgency[Urgency.LATE]

    @property
    def current_arrivals(self) -> List[Booking]:
        return self.arrivals_by_urgency[Urgency.CURRENT]

    @property
    def upcoming_arrivals(self) -> List[Booking]:
        return self.arrivals_by_urgency[Urgency.UPCOMING]


def to_local_time(value: datetime) -> datetime:
    """Convert a datetime to restaurant local time; naive values are UTC"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(get_seating_config().RESTAURANT_TIMEZONE))


def get_shift(booking_time: datetime) -> Shift:
    hour = to_local_time(booking_time).hour
    if 6 <= hour < 11:
        return Shift.MORNING
    if 11 <= hour < 16:
        return Shift.LUNCH
    if 16 <= hour < 22:
        return Shift.DINNER
    return Shift.LATE_NIGHT


def minutes_until(booking_time: datetime, now: datetime) -> int:
    """Whole minutes from now until booking_time, truncated toward zero"""
    if (booking_time.tzinfo is None) != (now.tzinfo is None):
        # Naive values are treated as UTC when mixed with aware ones
        booking_time = booking_time.replace(tzinfo=booking_time.tzinfo or timezone.utc)
        now = now.replace(tzinfo=now.tzinfo or timezone.utc)
    return int((booking_time - now).total_seconds() / 60)


def get_urgency(booking_time: datetime, now: datetime) -> Urgency:
    threshold = get_seating_config().URGENCY_THRESHOLD_MINUTES
    minutes = minutes_until(booking_time, now)
    if minutes < -threshold:
        return Urgency.LATE
    if minutes <= threshold:
        return Urgency.CURRENT
    return Urgency.UPCOMING


_DINING_ORDER = {status: position for position, status in enumerate(ACTIVE_DINING_STATUSES)}


def classify_bookings(
    bookings: Iterable[Booking],
    now: datetime,
    customer_flags: Optional[CustomerFlagLookup] = None,
) -> ClassifiedBookings:
    """Build the host-stand queues for a snapshot of bookings"""
    result = ClassifiedBookings()
    flag_cache: Dict[int, Optional[CustomerFlags]] = {}

    def is_vip(booking: Booking) -> bool:
        if customer_flags is None or booking.user_id is None:
            return False
        if booking.user_id not in flag_cache:
            flag_cache[booking.user_id] = customer_flags(booking.user_id)
        flags = flag_cache[booking.user_id]
        return bool(flags and flags.vip_status)

    by_time = sorted(bookings, key=lambda b: (b.booking_time, b.id or 0))

    for booking in by_time:
        if booking.status == BookingStatus.ARRIVED:
            result.waiting_for_seating.append(booking)
        elif booking.status in _DINING_ORDER:
            result.active_dining.append(booking)
        elif booking.status == BookingStatus.CONFIRMED:
            result.arrivals.append(booking)
            result.arrivals_by_shift[get_shift(booking.booking_time)].append(booking)
            result.arrivals_by_urgency[get_urgency(booking.booking_time, now)].append(
                booking
            )
            if is_vip(booking):
                result.vip_arrivals.append(booking)
            if not booking.tables and not booking.is_shared_booking:
                result.needing_tables.append(booking)

    # Stable sort keeps booking time order inside each status
    result.active_dining.sort(key=lambda b: _DINING_ORDER[BookingStatus(b.status)])
    return result
