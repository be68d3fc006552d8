# backend/modules/seating/services/walkin_service.py

"""
Walk-in intake.

A walk-in moves through Drafting -> ConflictCheck -> Confirmed or
Cancelled -> Seated. The conflict check looks for reservations arriving
on the selected tables within the lookahead window, capacity shortfalls,
multi-table and large-party seatings and blacklisted guests. When any
of those is found the walk-in can only be confirmed by acknowledging
each displaced reservation explicitly.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
import logging

from ..config import get_seating_config
from ..exceptions import (
    ConfirmationRequiredError,
    SeatingValidationError,
    TablesUnavailableError,
)
from ..models.seating_models import Booking, BookingStatus, RestaurantTable
from .assignment_service import AssignmentService
from .displacement_service import DisplacementService
from .seating_store import BookingDraft, SeatingStore
from .swap_option_service import format_clock
from .table_status_service import table_status_service

logger = logging.getLogger(__name__)


class WalkInState(str, Enum):
    DRAFTING = "drafting"
    CONFLICT_CHECK = "conflict_check"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    SEATED = "seated"


WALK_IN_TRANSITIONS: Dict[WalkInState, FrozenSet[WalkInState]] = {
    WalkInState.DRAFTING: frozenset({WalkInState.CONFLICT_CHECK, WalkInState.CANCELLED}),
    WalkInState.CONFLICT_CHECK: frozenset(
        {WalkInState.CONFIRMED, WalkInState.CANCELLED, WalkInState.CONFLICT_CHECK}
    ),
    WalkInState.CONFIRMED: frozenset(
        {WalkInState.SEATED, WalkInState.CANCELLED, WalkInState.CONFLICT_CHECK}
    ),
    WalkInState.CANCELLED: frozenset(),
    WalkInState.SEATED: frozenset(),
}


class ConflictKind(str, Enum):
    UPCOMING_BOOKING = "upcoming_booking"
    CAPACITY = "capacity"
    MULTIPLE_TABLES = "multiple_tables"
    LARGE_PARTY = "large_party"
    BLACKLISTED = "blacklisted"


@dataclass
class WalkInDraft:
    """Guest, party and table selection collected at the host stand"""

    restaurant_id: int
    party_size: int
    table_ids: List[int] = field(default_factory=list)
    customer_id: Optional[int] = None
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
    guest_email: Optional[str] = None
    occasion: Optional[str] = None
    estimated_duration: Optional[int] = None
    shared_table_id: Optional[int] = None
    seats_requested: Optional[int] = None

    @property
    def is_shared(self) -> bool:
        return self.shared_table_id is not None


@dataclass
class ConflictItem:
    kind: ConflictKind
    message: str
    booking_id: Optional[int] = None
    table_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "booking_id": self.booking_id,
            "table_ids": self.table_ids,
        }


@dataclass
class WalkInCheck:
    """Outcome of the conflict check for one draft"""

    tables: List[RestaurantTable]
    capacity: int
    conflicts: List[ConflictItem] = field(default_factory=list)
    displaced_bookings: List[Booking] = field(default_factory=list)
    turn_time_minutes: int = 120
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
    guest_email: Optional[str] = None
    user_id: Optional[int] = None

    @property
    def requires_confirmation(self) -> bool:
        return bool(self.conflicts)

    @property
    def displaced_booking_ids(self) -> List[int]:
        return [b.id for b in self.displaced_bookings]


class WalkIn:
    """One walk-in moving through intake"""

    def __init__(self, draft: WalkInDraft):
        self.draft = draft
        self.state = WalkInState.DRAFTING
        self.check: Optional[WalkInCheck] = None
        self.acknowledged_booking_ids: FrozenSet[int] = frozenset()
        self.booking: Optional[Booking] = None

    def transition(self, new_state: WalkInState):
        if new_state not in WALK_IN_TRANSITIONS[self.state]:
            raise SeatingValidationError(
                f"Walk-in cannot move from {self.state.value} to {new_state.value}",
                context={"state": self.state.value, "requested_state": new_state.value},
            )
        self.state = new_state


class WalkInService:
    """Conflict-gated intake of walk-in guests"""

    def __init__(
        self,
        store: SeatingStore,
        assignment_service: Optional[AssignmentService] = None,
        displacement_service: Optional[DisplacementService] = None,
    ):
        self.store = store
        self.assignment_service = assignment_service or AssignmentService(store)
        self.displacement_service = displacement_service or DisplacementService(store)

    def start(self, draft: WalkInDraft) -> WalkIn:
        return WalkIn(draft)

    async def check(self, walk_in: WalkIn, now: Optional[datetime] = None) -> WalkInCheck:
        """
        Run the conflict check. A walk-in with nothing to confirm is
        confirmed straight away; otherwise it waits in ConflictCheck.
        """
        now = now or datetime.utcnow()
        walk_in.transition(WalkInState.CONFLICT_CHECK)
        result = await self._run_check(walk_in.draft, now)
        walk_in.check = result

        if result.requires_confirmation:
            logger.info(
                f"Walk-in for party of {walk_in.draft.party_size} needs confirmation: "
                f"{[c.kind.value for c in result.conflicts]}"
            )
        else:
            walk_in.transition(WalkInState.CONFIRMED)
        return result

    def confirm(
        self, walk_in: WalkIn, acknowledged_booking_ids: Iterable[int] = ()
    ) -> WalkIn:
        """Accept the conflicts found; every displaced booking must be listed"""
        if walk_in.state != WalkInState.CONFLICT_CHECK or walk_in.check is None:
            raise SeatingValidationError(
                f"Walk-in must be in conflict_check to confirm, not {walk_in.state.value}"
            )

        acknowledged = frozenset(acknowledged_booking_ids)
        missing = [
            b for b in walk_in.check.displaced_bookings if b.id not in acknowledged
        ]
        if missing:
            raise ConfirmationRequiredError(
                "Every displaced reservation must be acknowledged: "
                + ", ".join(f"booking {b.id} ({b.display_name})" for b in missing),
                items=[
                    c.to_dict()
                    for c in walk_in.check.conflicts
                    if c.booking_id in {b.id for b in missing}
                ],
            )

        walk_in.acknowledged_booking_ids = acknowledged
        walk_in.transition(WalkInState.CONFIRMED)
        return walk_in

    def cancel(self, walk_in: WalkIn) -> WalkIn:
        walk_in.transition(WalkInState.CANCELLED)
        logger.info(f"Walk-in for party of {walk_in.draft.party_size} cancelled")
        return walk_in

    async def seat(
        self,
        walk_in: WalkIn,
        now: Optional[datetime] = None,
        changed_by: Optional[int] = None,
    ) -> Booking:
        """Create the walk-in booking, clear displaced reservations and emit the displacement"""
        if walk_in.state == WalkInState.CONFLICT_CHECK and walk_in.check is not None:
            raise ConfirmationRequiredError(
                "Walk-in has unconfirmed conflicts",
                items=[c.to_dict() for c in walk_in.check.conflicts],
            )
        if walk_in.state != WalkInState.CONFIRMED:
            raise SeatingValidationError(
                f"Walk-in must be confirmed before seating, not {walk_in.state.value}"
            )

        now = now or datetime.utcnow()
        draft = walk_in.draft

        # Re-check against fresh data; anything new must be confirmed again
        fresh = await self._run_check(draft, now)
        previous = walk_in.check
        new_conflicts = self._new_conflicts(previous, fresh, walk_in.acknowledged_booking_ids)
        walk_in.check = fresh
        if new_conflicts:
            walk_in.transition(WalkInState.CONFLICT_CHECK)
            raise ConfirmationRequiredError(
                "Seating changed since the walk-in was confirmed",
                items=[c.to_dict() for c in new_conflicts],
            )

        table_ids = [t.id for t in fresh.tables] if not draft.is_shared else []
        booking = await self.store.create_booking(
            BookingDraft(
                restaurant_id=draft.restaurant_id,
                party_size=draft.party_size,
                booking_time=now,
                status=BookingStatus.ARRIVED,
                table_ids=table_ids,
                turn_time_minutes=fresh.turn_time_minutes,
                user_id=fresh.user_id,
                customer_id=draft.customer_id,
                guest_name=fresh.guest_name,
                guest_email=fresh.guest_email,
                guest_phone=fresh.guest_phone,
                occasion=draft.occasion,
                source="walk_in",
                is_shared_booking=draft.is_shared,
                shared_table_id=draft.shared_table_id,
                seats_requested=draft.seats_requested,
                checked_in_at=now,
            )
        )
        for displaced in fresh.displaced_bookings:
            await self.assignment_service.clear(displaced.id, changed_by)
        walk_in.booking = booking
        walk_in.transition(WalkInState.SEATED)

        await self.displacement_service.notify_displacement(
            booking,
            fresh.displaced_bookings,
            table_ids,
            reason=f"walk-in {booking.display_name} seated",
            now=now,
        )
        logger.info(
            f"Seated walk-in booking {booking.id} ({booking.display_name}) "
            f"party of {booking.party_size} at tables {table_ids or [draft.shared_table_id]}"
        )
        return booking

    async def process(
        self,
        draft: WalkInDraft,
        acknowledged_booking_ids: Optional[Iterable[int]] = None,
        accept_conflicts: bool = False,
        now: Optional[datetime] = None,
        changed_by: Optional[int] = None,
    ) -> Booking:
        """Run a draft through the whole intake in one call"""
        walk_in = self.start(draft)
        result = await self.check(walk_in, now)
        if result.requires_confirmation:
            if not accept_conflicts:
                raise ConfirmationRequiredError(
                    "Walk-in needs confirmation before seating",
                    items=[c.to_dict() for c in result.conflicts],
                )
            self.confirm(walk_in, acknowledged_booking_ids or ())
        return await self.seat(walk_in, now, changed_by)

    async def _run_check(self, draft: WalkInDraft, now: datetime) -> WalkInCheck:
        config = get_seating_config()

        if draft.party_size <= 0:
            raise SeatingValidationError(
                f"Party size must be positive, got {draft.party_size}",
                context={"party_size": draft.party_size},
            )
        if not draft.is_shared and not draft.table_ids:
            raise SeatingValidationError("No tables selected for walk-in")

        horizon = now + timedelta(minutes=config.LOOKAHEAD_MINUTES)
        tables = await self.store.list_tables(draft.restaurant_id)
        since = now - timedelta(minutes=config.URGENCY_THRESHOLD_MINUTES)
        bookings = await self.store.list_bookings(draft.restaurant_id, since, horizon)
        index = table_status_service.build_index(tables, bookings, now)

        guest, blacklisted = await self._guest_details(draft, now)
        conflicts: List[ConflictItem] = []

        if draft.is_shared:
            selected = self._shared_table(draft, index)
            capacity = selected.table.max_capacity - selected.shared_seats_taken
            seats = draft.seats_requested or draft.party_size
            if capacity < seats:
                conflicts.append(
                    ConflictItem(
                        kind=ConflictKind.CAPACITY,
                        message=(
                            f"Shared table {selected.table.table_number} has {capacity} "
                            f"free seats, {seats} requested"
                        ),
                        table_ids=[selected.table_id],
                    )
                )
            result = WalkInCheck(tables=[selected.table], capacity=capacity, **guest)
        else:
            entries = self._selected_tables(draft, index)
            capacity = sum(e.table.max_capacity for e in entries)
            table_ids = [e.table_id for e in entries]
            displaced: Dict[int, Booking] = {}

            for entry in entries:
                for upcoming in entry.held_bookings + entry.upcoming_bookings:
                    if upcoming.id in displaced:
                        continue
                    displaced[upcoming.id] = upcoming
                    due = "was due" if upcoming.booking_time <= now else "arrives"
                    conflicts.append(
                        ConflictItem(
                            kind=ConflictKind.UPCOMING_BOOKING,
                            message=(
                                f"{upcoming.display_name} (party of {upcoming.party_size}) "
                                f"{due} at {format_clock(upcoming.booking_time)} "
                                f"for table {entry.table.table_number} and will be displaced"
                            ),
                            booking_id=upcoming.id,
                            table_ids=[entry.table_id],
                        )
                    )

            if capacity < draft.party_size:
                conflicts.append(
                    ConflictItem(
                        kind=ConflictKind.CAPACITY,
                        message=(
                            f"Selected tables seat {capacity}, party of {draft.party_size}"
                        ),
                        table_ids=table_ids,
                    )
                )
            if len(entries) > 1:
                conflicts.append(
                    ConflictItem(
                        kind=ConflictKind.MULTIPLE_TABLES,
                        message=f"Walk-in will use {len(entries)} tables",
                        table_ids=table_ids,
                    )
                )

            result = WalkInCheck(
                tables=[e.table for e in entries],
                capacity=capacity,
                displaced_bookings=sorted(
                    displaced.values(), key=lambda b: (b.booking_time, b.id)
                ),
                **guest,
            )

        if draft.party_size > config.LARGE_WALK_IN_PARTY_SIZE:
            conflicts.append(
                ConflictItem(
                    kind=ConflictKind.LARGE_PARTY,
                    message=f"Large party of {draft.party_size}",
                )
            )
        if blacklisted or await self._is_blacklisted_user(result.user_id):
            conflicts.append(
                ConflictItem(
                    kind=ConflictKind.BLACKLISTED,
                    message=f"{result.guest_name} is flagged as blacklisted",
                )
            )

        result.conflicts = conflicts
        return result

    def _selected_tables(self, draft: WalkInDraft, index):
        entries = []
        for table_id in dict.fromkeys(draft.table_ids):
            entry = index.get(table_id)
            if entry is None:
                raise SeatingValidationError(
                    f"Table {table_id} does not exist", context={"table_ids": [table_id]}
                )
            if not entry.table.is_active:
                raise SeatingValidationError(
                    f"Table {entry.table.table_number} is inactive",
                    context={"table_ids": [table_id]},
                )
            if entry.is_occupied:
                raise TablesUnavailableError([table_id], entry.occupying_booking.id)
            entries.append(entry)
        return entries

    def _shared_table(self, draft: WalkInDraft, index):
        entry = index.get(draft.shared_table_id)
        if entry is None or not entry.table.is_active:
            raise SeatingValidationError(
                f"Shared table {draft.shared_table_id} does not exist or is inactive",
                context={"table_ids": [draft.shared_table_id]},
            )
        if not entry.table.is_shared:
            raise SeatingValidationError(
                f"Table {entry.table.table_number} is not a shared table",
                context={"table_ids": [draft.shared_table_id]},
            )
        seats = draft.seats_requested or draft.party_size
        if seats <= 0 or seats > draft.party_size:
            raise SeatingValidationError(
                f"Seats requested ({seats}) must be between 1 and the party size ({draft.party_size})",
                context={"seats_requested": seats, "party_size": draft.party_size},
            )
        return entry

    async def _guest_details(self, draft: WalkInDraft, now: datetime) -> Tuple[Dict, bool]:
        """Guest identity and turn time for the booking, plus the customer's blacklist flag"""
        config = get_seating_config()
        name = (draft.guest_name or "").strip() or None
        phone = (draft.guest_phone or "").strip() or None
        email = draft.guest_email
        user_id = None
        blacklisted = False
        turn_time = config.DEFAULT_TURN_TIME_MINUTES

        if draft.customer_id is not None:
            customer = await self.store.get_customer(draft.customer_id)
            if customer is None:
                raise SeatingValidationError(
                    f"Customer {draft.customer_id} not found",
                    context={"customer_id": draft.customer_id},
                )
            name = customer.full_name or name
            phone = customer.phone or phone
            email = customer.email or email
            user_id = customer.user_id
            blacklisted = bool(customer.blacklisted)
            if (customer.average_party_size or 0) > config.LARGE_PARTY_AVERAGE_SIZE:
                turn_time = config.LARGE_PARTY_TURN_TIME_MINUTES

        details = {
            "guest_name": name or f"Walk-in {format_clock(now)}",
            "guest_phone": phone,
            "guest_email": email,
            "user_id": user_id,
            "turn_time_minutes": draft.estimated_duration or turn_time,
        }
        return details, blacklisted

    async def _is_blacklisted_user(self, user_id: Optional[int]) -> bool:
        if user_id is None:
            return False
        flags = await self.store.lookup_customer_flags(user_id)
        return bool(flags and flags.blacklisted)

    @staticmethod
    def _new_conflicts(
        previous: Optional[WalkInCheck],
        fresh: WalkInCheck,
        acknowledged_booking_ids: FrozenSet[int],
    ) -> List[ConflictItem]:
        """Conflicts in ``fresh`` that were not accepted at confirmation"""
        accepted_kinds = {c.kind for c in previous.conflicts} if previous else set()
        new = []
        for conflict in fresh.conflicts:
            if conflict.kind == ConflictKind.UPCOMING_BOOKING:
                if conflict.booking_id not in acknowledged_booking_ids:
                    new.append(conflict)
            elif conflict.kind not in accepted_kinds:
                new.append(conflict)
        return new
