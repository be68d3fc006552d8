# backend/modules/seating/services/seating_store.py

"""
Data access for the seating engine.

``SeatingStore`` is the narrow interface the engine reads snapshots from
and issues mutation commands against. ``SQLAlchemySeatingStore`` backs
it with the ORM session used everywhere else in the application.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence
import logging

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from ..exceptions import SeatingStoreError, SeatingValidationError
from ..models.seating_models import (
    Booking,
    BookingConflict,
    BookingStatus,
    BookingStatusHistory,
    Customer,
    RestaurantTable,
    TableCombination,
    PHYSICALLY_PRESENT_STATUSES,
)
from .booking_classifier import CustomerFlags

logger = logging.getLogger(__name__)


@dataclass
class BookingDraft:
    """Everything needed to create a booking row"""

    restaurant_id: int
    party_size: int
    booking_time: datetime
    status: BookingStatus = BookingStatus.PENDING
    table_ids: List[int] = field(default_factory=list)
    turn_time_minutes: Optional[int] = None
    user_id: Optional[int] = None
    customer_id: Optional[int] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    occasion: Optional[str] = None
    source: str = "reservation"
    is_shared_booking: bool = False
    shared_table_id: Optional[int] = None
    seats_requested: Optional[int] = None
    checked_in_at: Optional[datetime] = None


class SeatingStore(ABC):
    """Reads and commands the seating engine issues against persistence"""

    @abstractmethod
    async def list_tables(self, restaurant_id: int) -> List[RestaurantTable]:
        ...

    @abstractmethod
    async def list_bookings(
        self, restaurant_id: int, start: datetime, end: datetime
    ) -> List[Booking]:
        """Bookings in [start, end] plus any physically present booking"""

    @abstractmethod
    async def list_table_combinations(self, restaurant_id: int) -> List[TableCombination]:
        ...

    @abstractmethod
    async def get_booking(self, booking_id: int) -> Booking:
        ...

    @abstractmethod
    async def update_booking_tables(
        self, booking_id: int, table_ids: Sequence[int], changed_by: Optional[int] = None
    ) -> Booking:
        """Replace a booking's tables; an empty list clears them"""

    @abstractmethod
    async def update_booking_status(
        self,
        booking_id: int,
        status: BookingStatus,
        changed_by: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> Booking:
        ...

    @abstractmethod
    async def create_booking(self, draft: BookingDraft) -> Booking:
        ...

    @abstractmethod
    async def lookup_customer_flags(self, user_id: int) -> Optional[CustomerFlags]:
        ...

    @abstractmethod
    async def get_customer(self, customer_id: int) -> Optional[Customer]:
        ...

    @abstractmethod
    async def record_conflicts(self, conflicts: Sequence[BookingConflict]) -> None:
        ...

    @abstractmethod
    async def list_active_conflicts(self, restaurant_id: int) -> List[BookingConflict]:
        ...

    @abstractmethod
    async def resolve_conflict(self, conflict_id: int) -> BookingConflict:
        ...


class SQLAlchemySeatingStore(SeatingStore):
    """SeatingStore over a synchronous SQLAlchemy session"""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, operation: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Seating store operation '{operation}' failed: {str(e)}")
            raise SeatingStoreError(operation, e.__class__.__name__) from e

    async def list_tables(self, restaurant_id: int) -> List[RestaurantTable]:
        with self._guard("list_tables"):
            return (
                self.db.query(RestaurantTable)
                .filter(RestaurantTable.restaurant_id == restaurant_id)
                .order_by(RestaurantTable.id)
                .all()
            )

    async def list_bookings(
        self, restaurant_id: int, start: datetime, end: datetime
    ) -> List[Booking]:
        with self._guard("list_bookings"):
            return (
                self.db.query(Booking)
                .filter(
                    Booking.restaurant_id == restaurant_id,
                    or_(
                        and_(Booking.booking_time >= start, Booking.booking_time <= end),
                        Booking.status.in_(list(PHYSICALLY_PRESENT_STATUSES)),
                    ),
                )
                .order_by(Booking.booking_time, Booking.id)
                .all()
            )

    async def list_table_combinations(self, restaurant_id: int) -> List[TableCombination]:
        with self._guard("list_table_combinations"):
            return (
                self.db.query(TableCombination)
                .filter(
                    TableCombination.restaurant_id == restaurant_id,
                    TableCombination.is_active == True,
                )
                .order_by(TableCombination.id)
                .all()
            )

    async def get_booking(self, booking_id: int) -> Booking:
        with self._guard("get_booking"):
            booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    async def update_booking_tables(
        self, booking_id: int, table_ids: Sequence[int], changed_by: Optional[int] = None
    ) -> Booking:
        booking = await self.get_booking(booking_id)
        with self._guard("update_booking_tables"):
            tables = []
            if table_ids:
                tables = (
                    self.db.query(RestaurantTable)
                    .filter(
                        RestaurantTable.id.in_(list(table_ids)),
                        RestaurantTable.restaurant_id == booking.restaurant_id,
                    )
                    .order_by(RestaurantTable.id)
                    .all()
                )
                missing = set(table_ids) - {t.id for t in tables}
                if missing:
                    raise SeatingValidationError(
                        f"Tables {sorted(missing)} do not exist for booking {booking_id}",
                        context={"table_ids": sorted(missing)},
                    )

            previous = booking.table_ids
            booking.tables = tables
            self.db.add(
                BookingStatusHistory(
                    booking_id=booking.id,
                    old_status=BookingStatus(booking.status).value,
                    new_status=BookingStatus(booking.status).value,
                    changed_by=changed_by,
                    reason="table_switch",
                    details={"from_tables": previous, "to_tables": [t.id for t in tables]},
                    changed_at=datetime.utcnow(),
                )
            )
            self.db.commit()
            self.db.refresh(booking)

        logger.info(
            f"Booking {booking_id} tables changed from {previous} to {booking.table_ids}"
        )
        return booking

    async def update_booking_status(
        self,
        booking_id: int,
        status: BookingStatus,
        changed_by: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> Booking:
        booking = await self.get_booking(booking_id)
        with self._guard("update_booking_status"):
            old_status = BookingStatus(booking.status)
            now = datetime.utcnow()
            booking.status = status
            if status == BookingStatus.ARRIVED and booking.checked_in_at is None:
                booking.checked_in_at = now
            if status == BookingStatus.SEATED:
                booking.checked_in_at = booking.checked_in_at or now
                booking.seated_at = now

            self.db.add(
                BookingStatusHistory(
                    booking_id=booking.id,
                    old_status=old_status.value,
                    new_status=BookingStatus(status).value,
                    changed_by=changed_by,
                    reason=reason,
                    changed_at=now,
                )
            )
            self.db.commit()
            self.db.refresh(booking)

        logger.info(
            f"Booking {booking_id} status changed from {old_status.value} to {BookingStatus(status).value}"
        )
        return booking

    async def create_booking(self, draft: BookingDraft) -> Booking:
        with self._guard("create_booking"):
            tables = []
            if draft.table_ids:
                tables = (
                    self.db.query(RestaurantTable)
                    .filter(RestaurantTable.id.in_(list(draft.table_ids)))
                    .order_by(RestaurantTable.id)
                    .all()
                )

            booking = Booking(
                restaurant_id=draft.restaurant_id,
                status=draft.status,
                booking_time=draft.booking_time,
                party_size=draft.party_size,
                turn_time_minutes=draft.turn_time_minutes,
                user_id=draft.user_id,
                customer_id=draft.customer_id,
                guest_name=draft.guest_name,
                guest_email=draft.guest_email,
                guest_phone=draft.guest_phone,
                occasion=draft.occasion,
                source=draft.source,
                is_shared_booking=draft.is_shared_booking,
                shared_table_id=draft.shared_table_id,
                seats_requested=draft.seats_requested,
                checked_in_at=draft.checked_in_at,
                tables=tables,
            )
            self.db.add(booking)
            self.db.flush()
            self.db.add(
                BookingStatusHistory(
                    booking_id=booking.id,
                    new_status=BookingStatus(draft.status).value,
                    reason=f"created ({draft.source})",
                    changed_at=datetime.utcnow(),
                )
            )
            self.db.commit()
            self.db.refresh(booking)

        logger.info(
            f"Created booking {booking.id} for party of {booking.party_size} "
            f"on tables {booking.table_ids}"
        )
        return booking

    async def lookup_customer_flags(self, user_id: int) -> Optional[CustomerFlags]:
        with self._guard("lookup_customer_flags"):
            customer = self.db.query(Customer).filter(Customer.user_id == user_id).first()
        if not customer:
            return None
        return CustomerFlags(
            vip_status=bool(customer.vip_status),
            blacklisted=bool(customer.blacklisted),
            average_party_size=customer.average_party_size,
            preferred_table_types=list(customer.preferred_table_types or []),
        )

    async def get_customer(self, customer_id: int) -> Optional[Customer]:
        with self._guard("get_customer"):
            return self.db.query(Customer).filter(Customer.id == customer_id).first()

    async def record_conflicts(self, conflicts: Sequence[BookingConflict]) -> None:
        with self._guard("record_conflicts"):
            for conflict in conflicts:
                self.db.add(conflict)
            self.db.commit()

    async def list_active_conflicts(self, restaurant_id: int) -> List[BookingConflict]:
        with self._guard("list_active_conflicts"):
            return (
                self.db.query(BookingConflict)
                .filter(
                    BookingConflict.restaurant_id == restaurant_id,
                    BookingConflict.resolved == False,
                )
                .order_by(BookingConflict.arrival_time, BookingConflict.id)
                .all()
            )

    async def resolve_conflict(self, conflict_id: int) -> BookingConflict:
        with self._guard("resolve_conflict"):
            conflict = (
                self.db.query(BookingConflict)
                .filter(BookingConflict.id == conflict_id)
                .first()
            )
            if not conflict:
                raise NotFoundError(f"Booking conflict {conflict_id} not found")
            conflict.resolved = True
            conflict.resolved_at = datetime.utcnow()
            self.db.commit()
            self.db.refresh(conflict)
        return conflict
