from .seating_models import (
    RestaurantTable,
    Booking,
    TableCombination,
    Customer,
    BookingStatusHistory,
    BookingConflict,
    booking_tables,
    BookingStatus,
    TableType,
    TableShape,
    ConflictUrgency,
    PHYSICALLY_PRESENT_STATUSES,
    ACTIVE_DINING_STATUSES,
    TERMINAL_STATUSES,
)

__all__ = [
    "RestaurantTable",
    "Booking",
    "TableCombination",
    "Customer",
    "BookingStatusHistory",
    "BookingConflict",
    "booking_tables",
    "BookingStatus",
    "TableType",
    "TableShape",
    "ConflictUrgency",
    "PHYSICALLY_PRESENT_STATUSES",
    "ACTIVE_DINING_STATUSES",
    "TERMINAL_STATUSES",
]
