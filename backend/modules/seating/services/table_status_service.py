# backend/modules/seating/services/table_status_service.py

"""
Per-table occupancy view derived from table and booking snapshots.

The index is a pure function of (tables, bookings, now). Results are
memoized by a fingerprint of those inputs so repeated refreshes of the
same floor do not rebuild it.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from ..config import get_seating_config
from ..models.seating_models import (
    Booking,
    BookingStatus,
    RestaurantTable,
    PHYSICALLY_PRESENT_STATUSES,
)

logger = logging.getLogger(__name__)


def turn_time_for(booking: Booking) -> int:
    return booking.turn_time_minutes or get_seating_config().DEFAULT_TURN_TIME_MINUTES


def is_physically_present(booking: Booking) -> bool:
    return booking.status in PHYSICALLY_PRESENT_STATUSES


@dataclass
class TableStatusEntry:
    """Derived state of one table at a point in time"""

    table: RestaurantTable
    is_occupied: bool = False
    occupying_booking: Optional[Booking] = None
    present_bookings: List[Booking] = field(default_factory=list)
    upcoming_bookings: List[Booking] = field(default_factory=list)
    held_bookings: List[Booking] = field(default_factory=list)
    next_available: Optional[datetime] = None
    availability_score: int = 100
    shared_seats_taken: int = 0

    @property
    def table_id(self) -> int:
        return self.table.id

    @property
    def is_assignable(self) -> bool:
        return bool(self.table.is_active) and not self.is_occupied

    def to_dict(self) -> Dict:
        return {
            "table_id": self.table.id,
            "table_number": self.table.table_number,
            "max_capacity": self.table.max_capacity,
            "is_active": bool(self.table.is_active),
            "is_occupied": self.is_occupied,
            "occupying_booking_id": (
                self.occupying_booking.id if self.occupying_booking else None
            ),
            "upcoming_booking_ids": [b.id for b in self.upcoming_bookings],
            "held_booking_ids": [b.id for b in self.held_bookings],
            "next_available": self.next_available,
            "availability_score": self.availability_score,
            "shared_seats_taken": self.shared_seats_taken,
        }


class TableStatusIndex:
    """Lookup of TableStatusEntry by table id, in table input order"""

    def __init__(self, entries: Sequence[TableStatusEntry], now: datetime):
        self.now = now
        self._entries: "OrderedDict[int, TableStatusEntry]" = OrderedDict(
            (entry.table_id, entry) for entry in entries
        )

    def __getitem__(self, table_id: int) -> TableStatusEntry:
        return self._entries[table_id]

    def __contains__(self, table_id: int) -> bool:
        return table_id in self._entries

    def __iter__(self):
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, table_id: int) -> Optional[TableStatusEntry]:
        return self._entries.get(table_id)

    def available_tables(self) -> List[RestaurantTable]:
        """Active tables with no physically present booking"""
        return [entry.table for entry in self if entry.is_assignable]

    def occupied_table_ids(self) -> List[int]:
        return [entry.table_id for entry in self if entry.is_occupied]


class TableStatusService:
    """Builds and memoizes table status indices"""

    def __init__(self, cache_size: int = 32):
        self._cache: "OrderedDict[Tuple, TableStatusIndex]" = OrderedDict()
        self._cache_size = cache_size

    def build_index(
        self,
        tables: Iterable[RestaurantTable],
        bookings: Iterable[Booking],
        now: datetime,
        lookahead_minutes: Optional[int] = None,
    ) -> TableStatusIndex:
        tables = list(tables)
        bookings = list(bookings)
        config = get_seating_config()
        if lookahead_minutes is None:
            lookahead_minutes = config.LOOKAHEAD_MINUTES
        grace_minutes = config.URGENCY_THRESHOLD_MINUTES

        key = self._fingerprint(tables, bookings, now, lookahead_minutes, grace_minutes)
        cached = self._cache.get(key)
        if cached is not None:
            self._cache.move_to_end(key)
            return cached

        index = self._compute(tables, bookings, now, lookahead_minutes, grace_minutes)
        self._cache[key] = index
        if len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)
        return index

    def clear_cache(self):
        self._cache.clear()

    def _compute(
        self,
        tables: List[RestaurantTable],
        bookings: List[Booking],
        now: datetime,
        lookahead_minutes: int,
        grace_minutes: int,
    ) -> TableStatusIndex:
        horizon = now + timedelta(minutes=lookahead_minutes)
        grace = now - timedelta(minutes=grace_minutes)
        entries = {table.id: TableStatusEntry(table=table) for table in tables}

        for booking in sorted(bookings, key=lambda b: (b.booking_time, b.id or 0)):
            if booking.is_shared_booking:
                entry = entries.get(booking.shared_table_id)
                if entry is not None and is_physically_present(booking):
                    entry.shared_seats_taken += (
                        booking.seats_requested or booking.party_size
                    )
                continue

            for table in booking.tables or []:
                entry = entries.get(table.id)
                if entry is None:
                    continue
                if is_physically_present(booking):
                    entry.present_bookings.append(booking)
                elif (
                    booking.status == BookingStatus.CONFIRMED
                    and now < booking.booking_time <= horizon
                ):
                    entry.upcoming_bookings.append(booking)
                elif (
                    booking.status == BookingStatus.CONFIRMED
                    and grace < booking.booking_time <= now
                ):
                    # Guest is running late but still holds the table
                    entry.held_bookings.append(booking)

        for entry in entries.values():
            if entry.present_bookings:
                if len(entry.present_bookings) > 1:
                    logger.warning(
                        f"Table {entry.table.table_number} is referenced by "
                        f"{len(entry.present_bookings)} present bookings: "
                        f"{[b.id for b in entry.present_bookings]}"
                    )
                entry.is_occupied = True
                entry.occupying_booking = entry.present_bookings[0]
                entry.next_available = entry.occupying_booking.booking_time + timedelta(
                    minutes=turn_time_for(entry.occupying_booking)
                )
                entry.availability_score = 0
            elif entry.held_bookings or entry.upcoming_bookings:
                if entry.upcoming_bookings:
                    entry.next_available = entry.upcoming_bookings[0].booking_time
                entry.availability_score = 50
            if not entry.table.is_active:
                entry.availability_score = 0

        return TableStatusIndex([entries[table.id] for table in tables], now)

    @staticmethod
    def _fingerprint(
        tables: List[RestaurantTable],
        bookings: List[Booking],
        now: datetime,
        lookahead_minutes: int,
        grace_minutes: int,
    ) -> Tuple:
        table_key = tuple(
            (id(t), t.id, bool(t.is_active), t.max_capacity, bool(t.is_shared))
            for t in tables
        )
        booking_key = tuple(
            (
                id(b),
                b.id,
                b.status,
                b.booking_time,
                b.party_size,
                b.turn_time_minutes,
                tuple(t.id for t in b.tables or []),
                bool(b.is_shared_booking),
                b.shared_table_id,
                b.seats_requested,
            )
            for b in bookings
        )
        return (table_key, booking_key, now, lookahead_minutes, grace_minutes)


# Global service instance
table_status_service = TableStatusService()
