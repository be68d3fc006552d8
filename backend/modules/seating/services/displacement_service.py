# backend/modules/seating/services/displacement_service.py

"""
Tracks reservations displaced by walk-ins.

When a walk-in is seated on tables with upcoming reservations, each
affected reservation becomes a booking conflict with a vacate-by time
and an urgency level so the floor team knows when the table must turn.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Sequence
import logging

from ..config import get_seating_config
from ..models.seating_models import Booking, BookingConflict, ConflictUrgency
from .booking_classifier import minutes_until
from .seating_store import SeatingStore

logger = logging.getLogger(__name__)


def conflict_urgency(arrival_time: datetime, now: datetime) -> ConflictUrgency:
    config = get_seating_config()
    minutes = minutes_until(arrival_time, now)
    if minutes <= config.CONFLICT_CRITICAL_MINUTES:
        return ConflictUrgency.CRITICAL
    if minutes <= config.CONFLICT_WARNING_MINUTES:
        return ConflictUrgency.WARNING
    return ConflictUrgency.INFO


class DisplacementService:
    """Emits displacement events and manages the resulting conflicts"""

    def __init__(self, store: SeatingStore):
        self.store = store

    def build_conflicts(
        self,
        walk_in: Booking,
        affected: Sequence[Booking],
        table_ids: Sequence[int],
        now: Optional[datetime] = None,
    ) -> List[BookingConflict]:
        now = now or datetime.utcnow()
        buffer = timedelta(minutes=get_seating_config().VACATE_BUFFER_MINUTES)
        return [
            BookingConflict(
                restaurant_id=walk_in.restaurant_id,
                walk_in_booking_id=walk_in.id,
                upcoming_booking_id=booking.id,
                table_ids=sorted(table_ids),
                walk_in_guest_name=walk_in.guest_name or "Walk-in Guest",
                upcoming_guest_name=booking.display_name,
                arrival_time=booking.booking_time,
                must_vacate_by=booking.booking_time - buffer,
                urgency=conflict_urgency(booking.booking_time, now),
                resolved=False,
            )
            for booking in affected
        ]

    async def notify_displacement(
        self,
        walk_in: Booking,
        affected: Sequence[Booking],
        table_ids: Sequence[int],
        reason: str,
        now: Optional[datetime] = None,
    ) -> List[BookingConflict]:
        """
        Record a displacement event. Never raises: failures are logged and
        an empty list is returned, the walk-in stays seated either way.
        """
        if not affected:
            return []

        try:
            conflicts = self.build_conflicts(walk_in, affected, table_ids, now)
            await self.store.record_conflicts(conflicts)
        except Exception as e:
            logger.error(
                f"Failed to record displacement for walk-in {walk_in.id} "
                f"(affected {[b.id for b in affected]}): {str(e)}"
            )
            return []

        for conflict in conflicts:
            logger.warning(
                f"Booking conflict: walk-in {walk_in.id} on tables {conflict.table_ids} "
                f"must vacate by {conflict.must_vacate_by:%H:%M} for booking "
                f"{conflict.upcoming_booking_id} ({conflict.urgency.value}). Reason: {reason}"
            )
        return conflicts

    async def get_active_conflicts(self, restaurant_id: int) -> List[BookingConflict]:
        return await self.store.list_active_conflicts(restaurant_id)

    async def resolve_conflict(self, conflict_id: int) -> BookingConflict:
        conflict = await self.store.resolve_conflict(conflict_id)
        logger.info(f"Resolved booking conflict {conflict_id}")
        return conflict
