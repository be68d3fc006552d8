# backend/modules/seating/schemas/seating_schemas.py

"""
Pydantic schemas for the seating API.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Dict, List, Optional

from ..models.seating_models import BookingStatus, ConflictUrgency
from ..services.swap_option_service import SwapOptionType


class TableStatusResponse(BaseModel):
    """Derived state of one table"""

    table_id: int
    table_number: str
    max_capacity: int
    is_active: bool
    is_occupied: bool
    occupying_booking_id: Optional[int] = None
    upcoming_booking_ids: List[int] = []
    held_booking_ids: List[int] = []
    next_available: Optional[datetime] = None
    availability_score: int
    shared_seats_taken: int = 0


class BookingResponse(BaseModel):
    """Booking as seen by the host stand"""

    id: int
    restaurant_id: int
    status: BookingStatus
    booking_time: datetime
    party_size: int
    turn_time_minutes: Optional[int] = None
    display_name: str
    guest_phone: Optional[str] = None
    user_id: Optional[int] = None
    customer_id: Optional[int] = None
    source: Optional[str] = None
    table_ids: List[int] = []
    is_shared_booking: bool = False
    shared_table_id: Optional[int] = None
    seats_requested: Optional[int] = None
    checked_in_at: Optional[datetime] = None
    seated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BookingQueuesResponse(BaseModel):
    waiting_for_seating: List[BookingResponse] = []
    active_dining: List[BookingResponse] = []
    arrivals: List[BookingResponse] = []
    arrivals_by_shift: Dict[str, List[BookingResponse]] = {}
    arrivals_by_urgency: Dict[str, List[BookingResponse]] = {}
    vip_arrivals: List[BookingResponse] = []
    needing_tables: List[BookingResponse] = []


class SwapOptionsRequest(BaseModel):
    """Candidate tables to evaluate; omit to search the whole floor"""

    table_ids: Optional[List[int]] = None


class SwapOptionResponse(BaseModel):
    type: SwapOptionType
    table_ids: List[int]
    table_numbers: List[str]
    confidence: int = Field(..., ge=0, le=100)
    target_booking_id: Optional[int] = None
    displaced_booking_ids: List[int] = []
    warnings: List[str] = []
    benefits: List[str] = []
    combination_id: Optional[int] = None
    is_predefined: bool = False
    requires_confirmation: bool = False
    capacity: int


class SmartSuggestionResponse(BaseModel):
    id: str
    title: str
    description: str
    priority: str
    table_ids: List[int] = []

    model_config = ConfigDict(from_attributes=True)


class SwapOptionsResponse(BaseModel):
    booking_id: int
    options: List[SwapOptionResponse] = []
    suggestions: List[SmartSuggestionResponse] = []


class AssignmentRequest(BaseModel):
    """
    Apply tables to a booking.

    With ``option_type`` set, the matching generated option (same type and
    tables) is executed; without it the tables are assigned as a manual
    selection.
    """

    table_ids: List[int]
    option_type: Optional[SwapOptionType] = None
    confirmed: bool = False
    changed_by: Optional[int] = None


class CheckInRequest(BaseModel):
    table_ids: Optional[List[int]] = None
    changed_by: Optional[int] = None


class StatusUpdateRequest(BaseModel):
    status: BookingStatus
    reason: Optional[str] = Field(None, max_length=200)
    changed_by: Optional[int] = None


class WalkInRequest(BaseModel):
    """Walk-in guest, party and table selection"""

    party_size: int
    table_ids: List[int] = []
    customer_id: Optional[int] = None
    guest_name: Optional[str] = Field(None, max_length=100)
    guest_phone: Optional[str] = Field(None, max_length=30)
    guest_email: Optional[str] = Field(None, max_length=100)
    occasion: Optional[str] = Field(None, max_length=50)
    estimated_duration: Optional[int] = Field(None, ge=15, le=480)
    shared_table_id: Optional[int] = None
    seats_requested: Optional[int] = None

    # Confirmation step
    acknowledged_booking_ids: List[int] = []
    accept_conflicts: bool = False
    changed_by: Optional[int] = None

    @field_validator("guest_name", "guest_phone")
    @classmethod
    def strip_blank(cls, v):
        if v is None:
            return v
        return v.strip() or None


class ConflictItemResponse(BaseModel):
    kind: str
    message: str
    booking_id: Optional[int] = None
    table_ids: List[int] = []


class WalkInCheckResponse(BaseModel):
    state: str
    requires_confirmation: bool
    capacity: int
    table_ids: List[int]
    conflicts: List[ConflictItemResponse] = []
    displaced_booking_ids: List[int] = []
    guest_name: Optional[str] = None
    turn_time_minutes: int


class BookingConflictResponse(BaseModel):
    id: int
    walk_in_booking_id: int
    upcoming_booking_id: int
    table_ids: List[int] = []
    walk_in_guest_name: Optional[str] = None
    upcoming_guest_name: Optional[str] = None
    arrival_time: datetime
    must_vacate_by: datetime
    urgency: ConflictUrgency
    resolved: bool

    model_config = ConfigDict(from_attributes=True)
