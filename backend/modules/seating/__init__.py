# backend/modules/seating/__init__.py

from .models.seating_models import (
    RestaurantTable, TableCombination, Customer, Booking,
    BookingStatusHistory, BookingConflict,
    BookingStatus, TableType, TableShape, ConflictUrgency
)

from .services.table_status_service import table_status_service
from .services.swap_option_service import swap_option_service
from .services.assignment_service import AssignmentService
from .services.walkin_service import WalkInService

from .routers.seating_router import router as seating_router

__all__ = [
    # Models
    "RestaurantTable", "TableCombination", "Customer", "Booking",
    "BookingStatusHistory", "BookingConflict",
    "BookingStatus", "TableType", "TableShape", "ConflictUrgency",
    # Services
    "table_status_service", "swap_option_service",
    "AssignmentService", "WalkInService",
    # Routers
    "seating_router",
]
