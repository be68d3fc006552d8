from .seating_schemas import (
    TableStatusResponse,
    BookingResponse,
    BookingQueuesResponse,
    SwapOptionsRequest,
    SwapOptionResponse,
    SmartSuggestionResponse,
    SwapOptionsResponse,
    AssignmentRequest,
    CheckInRequest,
    StatusUpdateRequest,
    WalkInRequest,
    ConflictItemResponse,
    WalkInCheckResponse,
    BookingConflictResponse,
)
