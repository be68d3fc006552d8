# backend/modules/seating/services/swap_option_service.py

"""
Table reassignment options for a booking.

Given a booking and a candidate set of tables, the generator works out
which strategies are feasible (move to empty tables, bump upcoming
reservations, swap with the party sitting there, bump one or more
present parties, or use a restaurant-approved combination), explains
each with warnings and benefits and ranks them by confidence.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from itertools import combinations as pairs_of
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import logging

from ..config import get_seating_config
from ..models.seating_models import (
    Booking,
    BookingStatus,
    RestaurantTable,
    TableCombination,
    TableType,
    ACTIVE_DINING_STATUSES,
)
from .booking_classifier import CustomerFlags, to_local_time
from .table_status_service import TableStatusIndex, table_status_service

logger = logging.getLogger(__name__)


class SwapOptionType(str, Enum):
    EMPTY = "empty"
    SWAP = "swap"
    FUTURE_SWAP = "future-swap"  # Reserved; bump-future options are reported as EMPTY
    COMBINATION = "combination"


class Confidence:
    EMPTY = 100
    COMBINATION = 95
    SWAP = 90
    BUMP_FUTURE = 75
    BUMP_PRESENT = 60
    BUMP_MULTIPLE = 30


# Present parties past this point are never bumped as a group
_PAST_SEATED = frozenset(ACTIVE_DINING_STATUSES) - {BookingStatus.SEATED}

PREMIUM_TABLE_TYPES = (TableType.BOOTH, TableType.WINDOW, TableType.PRIVATE)


@dataclass
class SwapOption:
    """A ranked, explained way to give a booking a set of tables"""

    type: SwapOptionType
    tables: List[RestaurantTable]
    confidence: int
    target_booking: Optional[Booking] = None
    displaced_bookings: List[Booking] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    benefits: List[str] = field(default_factory=list)
    combination_id: Optional[int] = None
    is_predefined: bool = False
    requires_confirmation: bool = False
    capacity: int = 0

    @property
    def table_ids(self) -> List[int]:
        return sorted(t.id for t in self.tables)

    @property
    def key(self) -> Tuple[SwapOptionType, Tuple[int, ...]]:
        return (self.type, tuple(self.table_ids))

    def to_dict(self) -> Dict:
        return {
            "type": self.type.value,
            "table_ids": self.table_ids,
            "table_numbers": [t.table_number for t in self.tables],
            "confidence": self.confidence,
            "target_booking_id": self.target_booking.id if self.target_booking else None,
            "displaced_booking_ids": [b.id for b in self.displaced_bookings],
            "warnings": list(self.warnings),
            "benefits": list(self.benefits),
            "combination_id": self.combination_id,
            "is_predefined": self.is_predefined,
            "requires_confirmation": self.requires_confirmation,
            "capacity": self.capacity,
        }


@dataclass
class SmartSuggestion:
    id: str
    title: str
    description: str
    priority: str = "medium"
    table_ids: List[int] = field(default_factory=list)


_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


def format_clock(value: datetime) -> str:
    return to_local_time(value).strftime("%H:%M")


def rank_options(options: Iterable[SwapOption], party_size: int) -> List[SwapOption]:
    """
    Sort options by confidence, highest first, and drop duplicates.

    Equal confidence breaks by type name, then by options that seat the
    party ahead of those that don't, then by the smallest leftover
    capacity, then by table ids. Duplicates share (type, table ids); the
    best ranked one is kept.
    """

    def sort_key(option: SwapOption):
        short = option.capacity < party_size
        leftover = abs(option.capacity - party_size)
        return (-option.confidence, option.type.value, short, leftover, option.table_ids)

    ranked = []
    seen = set()
    for option in sorted(options, key=sort_key):
        if option.key in seen:
            continue
        seen.add(option.key)
        ranked.append(option)
    return ranked


class SwapOptionService:
    """Generates and ranks table reassignment options"""

    def calculate_swap_options(
        self,
        booking: Booking,
        target_table_ids: Sequence[int],
        tables: Sequence[RestaurantTable],
        bookings: Sequence[Booking],
        combinations: Sequence[TableCombination] = (),
        now: Optional[datetime] = None,
        index: Optional[TableStatusIndex] = None,
    ) -> List[SwapOption]:
        """Options for moving ``booking`` onto the tables in ``target_table_ids``"""
        config = get_seating_config()
        now = now or datetime.utcnow()
        tables_by_id = {t.id: t for t in tables}
        if index is None:
            index = table_status_service.build_index(tables, bookings, now)

        target_tables = []
        for table_id in dict.fromkeys(target_table_ids):
            table = tables_by_id.get(table_id)
            if table is None or not table.is_active:
                logger.debug(
                    f"Skipping unknown or inactive table {table_id} for booking {booking.id}"
                )
                continue
            target_tables.append(table)

        if not target_tables:
            return []

        target_ids = [t.id for t in target_tables]
        present = self._present_at(index, target_ids, booking)
        future = self._reserved_at(index, target_ids, booking)
        options: List[SwapOption] = []

        if not present and not future:
            options.append(
                SwapOption(
                    type=SwapOptionType.EMPTY,
                    tables=target_tables,
                    confidence=Confidence.EMPTY,
                    benefits=["Tables are completely free", "No conflicts or disruptions"],
                )
            )

        elif not present:
            options.append(
                SwapOption(
                    type=SwapOptionType.EMPTY,
                    tables=target_tables,
                    confidence=Confidence.BUMP_FUTURE,
                    target_booking=future[0],
                    displaced_bookings=list(future),
                    warnings=self._bump_warnings(future),
                    benefits=["Tables available now", "Future bookings will be reassigned"],
                )
            )

        elif len(present) == 1:
            occupant = present[0]
            swap = self._true_swap(booking, occupant, target_tables, index)
            if swap is not None:
                options.append(swap)

            if occupant.status not in ACTIVE_DINING_STATUSES:
                options.append(
                    SwapOption(
                        type=SwapOptionType.EMPTY,
                        tables=target_tables,
                        confidence=Confidence.BUMP_PRESENT,
                        target_booking=occupant,
                        displaced_bookings=[occupant] + list(future),
                        warnings=[
                            f"Will reassign {occupant.display_name} to another table"
                        ]
                        + self._bump_warnings(future),
                        benefits=[
                            "Get desired tables immediately",
                            "Other party will be accommodated elsewhere",
                        ],
                    )
                )

        elif not any(b.status in _PAST_SEATED for b in present):
            options.append(
                SwapOption(
                    type=SwapOptionType.EMPTY,
                    tables=target_tables,
                    confidence=Confidence.BUMP_MULTIPLE,
                    displaced_bookings=list(present) + list(future),
                    warnings=[
                        f"Will reassign {len(present)} bookings to other tables: "
                        + ", ".join(b.display_name for b in present),
                        "This may cause delays for affected parties",
                    ]
                    + self._bump_warnings(future),
                    benefits=["Get desired tables", "All affected parties will be reseated"],
                )
            )

        if booking.party_size >= config.COMBINATION_MIN_PARTY_SIZE:
            options.extend(
                self._combination_options(booking, combinations, tables_by_id, index)
            )

        for option in options:
            self._apply_capacity_check(option, booking.party_size)

        return rank_options(options, booking.party_size)

    def generate_all_options(
        self,
        booking: Booking,
        tables: Sequence[RestaurantTable],
        bookings: Sequence[Booking],
        combinations: Sequence[TableCombination] = (),
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[SwapOption]:
        """
        Options across every suitable table set in the restaurant.

        Single tables that seat the whole party are always candidates;
        for large parties every pair of active tables whose combined
        capacity seats the party is tried as well.
        """
        config = get_seating_config()
        now = now or datetime.utcnow()
        limit = limit or config.MAX_SWAP_OPTIONS
        index = table_status_service.build_index(tables, bookings, now)

        active = [t for t in tables if t.is_active]
        current = tuple(sorted(booking.table_ids))
        candidates: List[Tuple[int, ...]] = [
            (t.id,) for t in active if t.max_capacity >= booking.party_size
        ]
        if booking.party_size >= config.COMBINATION_MIN_PARTY_SIZE:
            candidates.extend(
                (a.id, b.id)
                for a, b in pairs_of(active, 2)
                if a.max_capacity + b.max_capacity >= booking.party_size
            )

        options: List[SwapOption] = []
        for candidate in candidates:
            if tuple(sorted(candidate)) == current:
                continue
            options.extend(
                self.calculate_swap_options(
                    booking, candidate, tables, bookings, combinations, now, index=index
                )
            )

        ranked = rank_options(options, booking.party_size)
        logger.debug(
            f"Generated {len(ranked)} options for booking {booking.id} "
            f"from {len(candidates)} candidate table sets"
        )
        return ranked[:limit]

    def generate_smart_suggestions(
        self,
        booking: Booking,
        tables: Sequence[RestaurantTable],
        bookings: Sequence[Booking],
        now: Optional[datetime] = None,
        customer_flags: Optional[CustomerFlags] = None,
    ) -> List[SmartSuggestion]:
        """Quick seating suggestions for the host stand"""
        now = now or datetime.utcnow()
        suggestions = []

        if not booking.tables:
            index = table_status_service.build_index(tables, bookings, now)
            fitting = [
                t for t in index.available_tables() if t.max_capacity >= booking.party_size
            ]
            if fitting:
                best = min(
                    fitting, key=lambda t: (abs(t.max_capacity - booking.party_size), t.id)
                )
                suggestions.append(
                    SmartSuggestion(
                        id="assign-best-table",
                        title=f"Assign Table {best.table_number}",
                        description=(
                            f"Perfect fit for party of {booking.party_size} "
                            f"({best.min_capacity}-{best.max_capacity} seats)"
                        ),
                        priority="high",
                        table_ids=[best.id],
                    )
                )

        if customer_flags is not None and customer_flags.vip_status:
            premium = [
                t.id for t in tables if t.is_active and t.table_type in PREMIUM_TABLE_TYPES
            ]
            if premium:
                suggestions.append(
                    SmartSuggestion(
                        id="vip-priority",
                        title="VIP Priority Seating",
                        description="Prioritize best available table for VIP guest",
                        priority="high",
                        table_ids=premium,
                    )
                )

        return sorted(suggestions, key=lambda s: _PRIORITY_ORDER.get(s.priority, 1))

    def _true_swap(
        self,
        booking: Booking,
        occupant: Booking,
        target_tables: List[RestaurantTable],
        index: TableStatusIndex,
    ) -> Optional[SwapOption]:
        current_tables = list(booking.tables or [])
        if not current_tables:
            return None

        current_ids = [t.id for t in current_tables]
        if set(current_ids) & {t.id for t in target_tables}:
            return None
        if not all(t.is_active for t in current_tables):
            return None
        if sum(t.max_capacity for t in current_tables) < occupant.party_size:
            return None

        others = [
            b
            for b in self._present_at(index, current_ids, booking)
            + self._reserved_at(index, current_ids, booking)
            if b.id != occupant.id
        ]
        if others:
            return None

        return SwapOption(
            type=SwapOptionType.SWAP,
            tables=target_tables,
            confidence=Confidence.SWAP,
            target_booking=occupant,
            warnings=[f"Will swap tables with {occupant.display_name}"],
            benefits=[
                "Clean table swap - both parties get suitable tables",
                "No one needs to wait or be bumped",
            ],
        )

    def _combination_options(
        self,
        booking: Booking,
        combinations: Sequence[TableCombination],
        tables_by_id: Dict[int, RestaurantTable],
        index: TableStatusIndex,
    ) -> List[SwapOption]:
        options = []
        for combo in combinations:
            if not combo.is_active:
                continue
            primary = tables_by_id.get(combo.primary_table_id)
            secondary = tables_by_id.get(combo.secondary_table_id)
            if primary is None or secondary is None:
                continue
            if not (primary.is_active and secondary.is_active):
                continue
            if combo.combined_capacity < booking.party_size:
                continue

            combo_ids = [primary.id, secondary.id]
            if self._present_at(index, combo_ids, booking):
                continue

            future = self._reserved_at(index, combo_ids, booking)
            options.append(
                SwapOption(
                    type=SwapOptionType.COMBINATION,
                    tables=[primary, secondary],
                    confidence=Confidence.COMBINATION,
                    target_booking=future[0] if future else None,
                    displaced_bookings=list(future),
                    warnings=self._bump_warnings(future),
                    benefits=[
                        "Restaurant-approved combination",
                        f"Perfect for party of {booking.party_size}",
                        "Optimized table layout",
                    ],
                    combination_id=combo.id,
                    is_predefined=True,
                    capacity=combo.combined_capacity,
                )
            )
        return options

    @staticmethod
    def _apply_capacity_check(option: SwapOption, party_size: int):
        if not option.capacity:
            option.capacity = sum(t.max_capacity for t in option.tables)
        if option.capacity < party_size:
            option.warnings.append(
                f"Tables seat {option.capacity}, party of {party_size} exceeds capacity"
            )
            option.requires_confirmation = True

    @staticmethod
    def _bump_warnings(bookings: Iterable[Booking]) -> List[str]:
        return [
            f"Will bump {b.display_name}, arriving at {format_clock(b.booking_time)}"
            for b in bookings
        ]

    @staticmethod
    def _present_at(
        index: TableStatusIndex, table_ids: Iterable[int], booking: Booking
    ) -> List[Booking]:
        found: Dict[int, Booking] = {}
        for table_id in table_ids:
            entry = index.get(table_id)
            if entry is None:
                continue
            for other in entry.present_bookings:
                if other.id != booking.id:
                    found.setdefault(other.id, other)
        return sorted(found.values(), key=lambda b: (b.booking_time, b.id))

    @staticmethod
    def _reserved_at(
        index: TableStatusIndex, table_ids: Iterable[int], booking: Booking
    ) -> List[Booking]:
        found: Dict[int, Booking] = {}
        for table_id in table_ids:
            entry = index.get(table_id)
            if entry is None:
                continue
            for other in entry.held_bookings + entry.upcoming_bookings:
                if other.id != booking.id:
                    found.setdefault(other.id, other)
        return sorted(found.values(), key=lambda b: (b.booking_time, b.id))


# Global service instance
swap_option_service = SwapOptionService()
