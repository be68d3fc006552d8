# backend/modules/seating/services/assignment_service.py

"""
Executes table assignments against the seating store.

Every command re-reads tables and bookings from the store and checks
occupancy at the moment of commit instead of trusting an index computed
earlier, so two terminals working the same floor cannot seat two
parties at one table.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple
import logging

from ..config import get_seating_config
from ..exceptions import (
    ConfirmationRequiredError,
    InconsistentSwapError,
    SeatingValidationError,
    TablesUnavailableError,
)
from ..models.seating_models import (
    Booking,
    BookingStatus,
    RestaurantTable,
    PHYSICALLY_PRESENT_STATUSES,
)
from .booking_status_service import validate_status_transition
from .seating_store import SeatingStore
from .swap_option_service import SwapOption, SwapOptionType

logger = logging.getLogger(__name__)


class AssignmentService:
    """Assign, clear, swap and check-in commands with commit-time validation"""

    def __init__(self, store: SeatingStore):
        self.store = store

    async def assign(
        self,
        booking_id: int,
        table_ids: Sequence[int],
        displaced_booking_ids: Iterable[int] = (),
        changed_by: Optional[int] = None,
    ) -> Booking:
        """Attach ``table_ids`` to a booking, replacing its current tables"""
        if not table_ids:
            raise SeatingValidationError(
                f"No tables selected for booking {booking_id}",
                context={"booking_id": booking_id},
            )

        booking = await self.store.get_booking(booking_id)
        await self._validate_tables(booking, table_ids, ignore=displaced_booking_ids)
        return await self.store.update_booking_tables(booking_id, table_ids, changed_by)

    async def clear(self, booking_id: int, changed_by: Optional[int] = None) -> Booking:
        """Detach all tables from a booking"""
        return await self.store.update_booking_tables(booking_id, [], changed_by)

    async def swap(
        self,
        booking_a_id: int,
        tables_for_a: Sequence[int],
        booking_b_id: int,
        tables_for_b: Sequence[int],
        changed_by: Optional[int] = None,
    ) -> Tuple[Booking, Booking]:
        """
        Exchange table sets between two bookings.

        Both updates are issued together. If one of them fails the side
        that was applied is restored to its original tables; if that
        restore fails too an InconsistentSwapError names both bookings.
        """
        if not tables_for_a or not tables_for_b:
            raise SeatingValidationError(
                f"Swap between booking {booking_a_id} and booking {booking_b_id} "
                "needs tables on both sides",
                context={"booking_ids": [booking_a_id, booking_b_id]},
            )

        booking_a = await self.store.get_booking(booking_a_id)
        booking_b = await self.store.get_booking(booking_b_id)
        original = {booking_a_id: booking_a.table_ids, booking_b_id: booking_b.table_ids}

        await self._validate_tables(booking_a, tables_for_a, ignore=[booking_b_id])
        await self._validate_tables(booking_b, tables_for_b, ignore=[booking_a_id])

        results = await asyncio.gather(
            self.store.update_booking_tables(booking_a_id, tables_for_a, changed_by),
            self.store.update_booking_tables(booking_b_id, tables_for_b, changed_by),
            return_exceptions=True,
        )
        failed = {
            booking_id: result
            for booking_id, result in zip((booking_a_id, booking_b_id), results)
            if isinstance(result, BaseException)
        }

        if not failed:
            logger.info(
                f"Swapped tables: booking {booking_a_id} -> {list(tables_for_a)}, "
                f"booking {booking_b_id} -> {list(tables_for_b)}"
            )
            return results[0], results[1]

        if len(failed) == 2:
            logger.warning(
                f"Swap between booking {booking_a_id} and booking {booking_b_id} failed on both sides"
            )
            raise failed[booking_a_id]

        failed_id, error = next(iter(failed.items()))
        applied_id = booking_b_id if failed_id == booking_a_id else booking_a_id
        logger.warning(
            f"Swap half for booking {failed_id} failed ({str(error)}); "
            f"restoring booking {applied_id} to tables {original[applied_id]}"
        )
        try:
            await self.store.update_booking_tables(
                applied_id, original[applied_id], changed_by
            )
        except Exception as restore_error:
            logger.error(
                f"Could not restore booking {applied_id} after failed swap: {str(restore_error)}"
            )
            raise InconsistentSwapError(
                booking_a_id,
                booking_b_id,
                f"booking {applied_id} kept its new tables after booking {failed_id} failed",
            ) from restore_error
        raise error

    async def check_in(
        self,
        booking_id: int,
        table_ids: Optional[Sequence[int]] = None,
        changed_by: Optional[int] = None,
    ) -> Booking:
        """Seat a booking once its tables are confirmed free"""
        booking = await self.store.get_booking(booking_id)
        table_ids = list(table_ids or booking.table_ids)
        if not table_ids:
            raise SeatingValidationError(
                f"Booking {booking_id} has no tables to seat at",
                context={"booking_id": booking_id},
            )

        validate_status_transition(booking.status, BookingStatus.SEATED)
        await self._validate_tables(booking, table_ids)

        if sorted(table_ids) != sorted(booking.table_ids):
            await self.store.update_booking_tables(booking_id, table_ids, changed_by)

        seated = await self.store.update_booking_status(
            booking_id, BookingStatus.SEATED, changed_by, reason="check_in"
        )
        logger.info(f"Checked in booking {booking_id} at tables {table_ids}")
        return seated

    async def update_status(
        self,
        booking_id: int,
        status: BookingStatus,
        changed_by: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> Booking:
        booking = await self.store.get_booking(booking_id)
        validate_status_transition(booking.status, status)

        entering_floor = (
            status in PHYSICALLY_PRESENT_STATUSES
            and booking.status not in PHYSICALLY_PRESENT_STATUSES
        )
        if entering_floor and booking.table_ids:
            await self._validate_tables(booking, booking.table_ids)

        return await self.store.update_booking_status(booking_id, status, changed_by, reason)

    async def execute_option(
        self,
        booking_id: int,
        option: SwapOption,
        confirmed: bool = False,
        changed_by: Optional[int] = None,
    ) -> Booking:
        """Carry out a generated swap option"""
        if option.requires_confirmation and not confirmed:
            raise ConfirmationRequiredError(
                f"Option for booking {booking_id} on tables {option.table_ids} "
                "must be confirmed before it is applied",
                items=[{"type": "warning", "message": w} for w in option.warnings],
            )

        if option.type == SwapOptionType.SWAP:
            if option.target_booking is None:
                raise SeatingValidationError(
                    f"Swap option for booking {booking_id} has no counterpart booking"
                )
            booking = await self.store.get_booking(booking_id)
            updated, _ = await self.swap(
                booking_id,
                option.table_ids,
                option.target_booking.id,
                booking.table_ids,
                changed_by,
            )
            return updated

        displaced_ids = [b.id for b in option.displaced_bookings]
        booking = await self.store.get_booking(booking_id)
        # Nothing is cleared unless the tables are still free once the displaced parties leave
        await self._validate_tables(booking, option.table_ids, ignore=displaced_ids)

        for displaced_id in displaced_ids:
            await self.clear(displaced_id, changed_by)
            logger.info(f"Bumped booking {displaced_id} from tables {option.table_ids}")

        return await self.assign(
            booking_id, option.table_ids, displaced_booking_ids=displaced_ids, changed_by=changed_by
        )

    async def reassign(
        self,
        booking_id: int,
        table_ids: Sequence[int],
        confirmed: bool = False,
        changed_by: Optional[int] = None,
    ) -> Booking:
        """Manual table selection, gated on capacity confirmation"""
        if not table_ids:
            raise SeatingValidationError(
                f"No tables selected for booking {booking_id}",
                context={"booking_id": booking_id},
            )

        booking = await self.store.get_booking(booking_id)
        tables = await self._validate_tables(booking, table_ids)
        capacity = sum(t.max_capacity for t in tables)
        if capacity < booking.party_size and not confirmed:
            raise ConfirmationRequiredError(
                f"Tables {sorted(table_ids)} seat {capacity}, booking {booking_id} "
                f"has a party of {booking.party_size}",
                items=[
                    {
                        "type": "capacity",
                        "capacity": capacity,
                        "party_size": booking.party_size,
                    }
                ],
            )
        return await self.store.update_booking_tables(booking_id, table_ids, changed_by)

    async def _validate_tables(
        self,
        booking: Booking,
        table_ids: Sequence[int],
        ignore: Iterable[int] = (),
    ) -> List[RestaurantTable]:
        """Check tables exist, are active and are not held by another present party"""
        now = datetime.utcnow()
        window = timedelta(hours=get_seating_config().REVALIDATION_WINDOW_HOURS)

        tables = await self.store.list_tables(booking.restaurant_id)
        tables_by_id = {t.id: t for t in tables}
        missing = [t for t in table_ids if t not in tables_by_id]
        if missing:
            raise SeatingValidationError(
                f"Tables {missing} do not exist for booking {booking.id}",
                context={"table_ids": missing, "booking_id": booking.id},
            )
        inactive = [t for t in table_ids if not tables_by_id[t].is_active]
        if inactive:
            raise SeatingValidationError(
                f"Tables {inactive} are inactive and cannot be assigned to booking {booking.id}",
                context={"table_ids": inactive, "booking_id": booking.id},
            )

        skip = set(ignore) | {booking.id}
        wanted = set(table_ids)
        bookings = await self.store.list_bookings(
            booking.restaurant_id, now - window, now + window
        )
        for other in bookings:
            if other.id in skip or other.status not in PHYSICALLY_PRESENT_STATUSES:
                continue
            taken = sorted(wanted & set(other.table_ids))
            if taken:
                logger.warning(
                    f"Tables {taken} for booking {booking.id} are occupied by booking {other.id}"
                )
                raise TablesUnavailableError(taken, other.id, booking.id)

        return [tables_by_id[t] for t in table_ids]
