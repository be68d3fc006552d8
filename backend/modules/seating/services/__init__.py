from .table_status_service import TableStatusService, TableStatusIndex, table_status_service
from .booking_classifier import classify_bookings, ClassifiedBookings, CustomerFlags
from .swap_option_service import SwapOptionService, SwapOption, SwapOptionType, swap_option_service
from .seating_store import SeatingStore, SQLAlchemySeatingStore, BookingDraft
from .assignment_service import AssignmentService
from .displacement_service import DisplacementService
from .walkin_service import WalkInService, WalkInDraft, WalkInState

__all__ = [
    "TableStatusService",
    "TableStatusIndex",
    "table_status_service",
    "classify_bookings",
    "ClassifiedBookings",
    "CustomerFlags",
    "SwapOptionService",
    "SwapOption",
    "SwapOptionType",
    "swap_option_service",
    "SeatingStore",
    "SQLAlchemySeatingStore",
    "BookingDraft",
    "AssignmentService",
    "DisplacementService",
    "WalkInService",
    "WalkInDraft",
    "WalkInState",
]
