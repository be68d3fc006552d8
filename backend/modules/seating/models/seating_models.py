# backend/modules/seating/models/seating_models.py

"""
Persistence models for tables, bookings and their assignments.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    JSON,
    Table as AssociationTable,
    Enum as SQLEnum,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime
from enum import Enum

from core.database import Base
from core.mixins import TimestampMixin


class TableType(str, Enum):
    """Kind of table, used for premium seating and display"""

    BOOTH = "booth"
    WINDOW = "window"
    PATIO = "patio"
    STANDARD = "standard"
    BAR = "bar"
    PRIVATE = "private"


class TableShape(str, Enum):
    """Table shape for the floor plan"""

    SQUARE = "square"
    RECTANGLE = "rectangle"
    CIRCLE = "circle"


class BookingStatus(str, Enum):
    """Booking lifecycle status"""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    ARRIVED = "arrived"
    SEATED = "seated"
    ORDERED = "ordered"
    APPETIZERS = "appetizers"
    MAIN_COURSE = "main_course"
    DESSERT = "dessert"
    PAYMENT = "payment"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    CANCELLED_BY_USER = "cancelled_by_user"
    CANCELLED_BY_RESTAURANT = "cancelled_by_restaurant"
    DECLINED_BY_RESTAURANT = "declined_by_restaurant"


# Guests are on the premises and their tables are occupied
PHYSICALLY_PRESENT_STATUSES = frozenset(
    {
        BookingStatus.ARRIVED,
        BookingStatus.SEATED,
        BookingStatus.ORDERED,
        BookingStatus.APPETIZERS,
        BookingStatus.MAIN_COURSE,
        BookingStatus.DESSERT,
        BookingStatus.PAYMENT,
    }
)

# Seated and eating, in service order
ACTIVE_DINING_STATUSES = (
    BookingStatus.SEATED,
    BookingStatus.ORDERED,
    BookingStatus.APPETIZERS,
    BookingStatus.MAIN_COURSE,
    BookingStatus.DESSERT,
    BookingStatus.PAYMENT,
)

TERMINAL_STATUSES = frozenset(
    {
        BookingStatus.COMPLETED,
        BookingStatus.NO_SHOW,
        BookingStatus.CANCELLED_BY_USER,
        BookingStatus.CANCELLED_BY_RESTAURANT,
        BookingStatus.DECLINED_BY_RESTAURANT,
    }
)


class ConflictUrgency(str, Enum):
    """How soon a displaced reservation arrives"""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


booking_tables = AssociationTable(
    "booking_tables",
    Base.metadata,
    Column("booking_id", Integer, ForeignKey("bookings.id", ondelete="CASCADE"), primary_key=True),
    Column("table_id", Integer, ForeignKey("restaurant_tables.id"), primary_key=True),
)


class RestaurantTable(Base, TimestampMixin):
    """Physical table in a restaurant"""

    __tablename__ = "restaurant_tables"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    section_id = Column(Integer)

    table_number = Column(String(20), nullable=False)
    table_type = Column(SQLEnum(TableType), default=TableType.STANDARD, nullable=False)

    # Capacity
    min_capacity = Column(Integer, nullable=False, default=1)
    max_capacity = Column(Integer, nullable=False)

    # Floor plan geometry (percentages of the canvas)
    x_position = Column(Float, default=0)
    y_position = Column(Float, default=0)
    width = Column(Float, default=10)
    height = Column(Float, default=10)
    shape = Column(SQLEnum(TableShape), default=TableShape.RECTANGLE)

    is_active = Column(Boolean, default=True, nullable=False)
    is_shared = Column(Boolean, default=False, nullable=False)  # Communal seating

    bookings = relationship("Booking", secondary=booking_tables, back_populates="tables")

    __table_args__ = (
        UniqueConstraint(
            "restaurant_id", "table_number", name="uix_restaurant_table_number"
        ),
        CheckConstraint("min_capacity <= max_capacity", name="chk_restaurant_table_capacity"),
    )

    def __repr__(self):
        return f"<RestaurantTable {self.table_number} ({self.min_capacity}-{self.max_capacity})>"


class TableCombination(Base, TimestampMixin):
    """Pair of tables the restaurant allows to be joined for large parties"""

    __tablename__ = "table_combinations"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    primary_table_id = Column(Integer, ForeignKey("restaurant_tables.id"), nullable=False)
    secondary_table_id = Column(Integer, ForeignKey("restaurant_tables.id"), nullable=False)
    combined_capacity = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    primary_table = relationship("RestaurantTable", foreign_keys=[primary_table_id])
    secondary_table = relationship("RestaurantTable", foreign_keys=[secondary_table_id])

    @property
    def table_ids(self):
        return [self.primary_table_id, self.secondary_table_id]


class Customer(Base, TimestampMixin):
    """Restaurant-scoped customer record"""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, index=True)  # Registered account, if any

    full_name = Column(String(100))
    phone = Column(String(30))
    email = Column(String(100))

    vip_status = Column(Boolean, default=False, nullable=False)
    blacklisted = Column(Boolean, default=False, nullable=False)
    average_party_size = Column(Float)
    preferred_table_types = Column(JSON, default=list)

    bookings = relationship("Booking", back_populates="customer")


class Booking(Base, TimestampMixin):
    """Reservation or walk-in visit"""

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, nullable=False, index=True)

    status = Column(SQLEnum(BookingStatus), default=BookingStatus.PENDING, nullable=False)
    booking_time = Column(DateTime, nullable=False)
    party_size = Column(Integer, nullable=False)
    turn_time_minutes = Column(Integer, default=120)

    # Guest identity: a registered user or freeform guest details
    user_id = Column(Integer, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"))
    guest_name = Column(String(100))
    guest_email = Column(String(100))
    guest_phone = Column(String(30))

    occasion = Column(String(50))
    source = Column(String(30), default="reservation")  # reservation, phone, walk_in
    table_preferences = Column(JSON, default=list)

    # Partial seating at a communal table
    is_shared_booking = Column(Boolean, default=False, nullable=False)
    shared_table_id = Column(Integer, ForeignKey("restaurant_tables.id"))
    seats_requested = Column(Integer)

    checked_in_at = Column(DateTime)
    seated_at = Column(DateTime)

    tables = relationship(
        "RestaurantTable",
        secondary=booking_tables,
        back_populates="bookings",
        lazy="selectin",
        order_by="RestaurantTable.id",
    )
    customer = relationship("Customer", back_populates="bookings")
    shared_table = relationship("RestaurantTable", foreign_keys=[shared_table_id])
    status_history = relationship(
        "BookingStatusHistory", back_populates="booking", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("party_size > 0", name="chk_booking_party_size"),
        Index("idx_booking_restaurant_time", "restaurant_id", "booking_time"),
        Index("idx_booking_restaurant_status", "restaurant_id", "status"),
    )

    @property
    def display_name(self) -> str:
        if self.guest_name:
            return self.guest_name
        if self.customer is not None and self.customer.full_name:
            return self.customer.full_name
        return "Guest"

    @property
    def table_ids(self):
        return [t.id for t in self.tables or []]

    def __repr__(self):
        return f"<Booking {self.id} {self.status} party={self.party_size} at {self.booking_time}>"


class BookingStatusHistory(Base):
    """Audit row for every status change or table switch"""

    __tablename__ = "booking_status_history"

    id = Column(Integer, primary_key=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    old_status = Column(String(30))
    new_status = Column(String(30), nullable=False)
    changed_by = Column(Integer)
    reason = Column(String(200))
    details = Column(JSON, default=dict)
    changed_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    booking = relationship("Booking", back_populates="status_history")


class BookingConflict(Base):
    """A walk-in seated on tables that an upcoming reservation expects"""

    __tablename__ = "booking_conflicts"

    id = Column(Integer, primary_key=True)
    restaurant_id = Column(Integer, nullable=False, index=True)
    walk_in_booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    upcoming_booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    table_ids = Column(JSON, default=list)

    walk_in_guest_name = Column(String(100))
    upcoming_guest_name = Column(String(100))
    arrival_time = Column(DateTime, nullable=False)
    must_vacate_by = Column(DateTime, nullable=False)
    urgency = Column(SQLEnum(ConflictUrgency), nullable=False)

    resolved = Column(Boolean, default=False, nullable=False)
    resolved_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "walk_in_booking_id", "upcoming_booking_id", name="uix_conflict_pair"
        ),
    )
