# backend/modules/seating/routers/seating_router.py

"""
Host-stand seating endpoints: table status, booking queues, swap
options, assignments, check-in and walk-in intake.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.database import get_db
from core.exceptions import NotFoundError
from ..config import get_seating_config
from ..exceptions import TablesUnavailableError
from ..models.seating_models import Booking
from ..schemas.seating_schemas import (
    AssignmentRequest,
    BookingConflictResponse,
    BookingQueuesResponse,
    BookingResponse,
    CheckInRequest,
    SmartSuggestionResponse,
    StatusUpdateRequest,
    SwapOptionResponse,
    SwapOptionsRequest,
    SwapOptionsResponse,
    TableStatusResponse,
    WalkInCheckResponse,
    WalkInRequest,
)
from ..services.assignment_service import AssignmentService
from ..services.booking_classifier import CustomerFlags, classify_bookings
from ..services.displacement_service import DisplacementService
from ..services.seating_store import SeatingStore, SQLAlchemySeatingStore
from ..services.swap_option_service import swap_option_service
from ..services.table_status_service import table_status_service
from ..services.walkin_service import WalkInDraft, WalkInService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/seating/restaurants/{restaurant_id}", tags=["Seating"]
)


def get_seating_store(db: Session = Depends(get_db)) -> SeatingStore:
    return SQLAlchemySeatingStore(db)


async def _load_snapshot(store: SeatingStore, restaurant_id: int, now: datetime):
    window = timedelta(hours=get_seating_config().REVALIDATION_WINDOW_HOURS)
    tables = await store.list_tables(restaurant_id)
    bookings = await store.list_bookings(restaurant_id, now - window, now + window)
    combinations = await store.list_table_combinations(restaurant_id)
    return tables, bookings, combinations


async def _get_restaurant_booking(
    store: SeatingStore, restaurant_id: int, booking_id: int
) -> Booking:
    booking = await store.get_booking(booking_id)
    if booking.restaurant_id != restaurant_id:
        raise NotFoundError(f"Booking {booking_id} not found in restaurant {restaurant_id}")
    return booking


async def _customer_flags(
    store: SeatingStore, bookings: List[Booking]
) -> Dict[int, Optional[CustomerFlags]]:
    flags = {}
    for booking in bookings:
        if booking.user_id is not None and booking.user_id not in flags:
            flags[booking.user_id] = await store.lookup_customer_flags(booking.user_id)
    return flags


def _walk_in_draft(restaurant_id: int, request: WalkInRequest) -> WalkInDraft:
    return WalkInDraft(
        restaurant_id=restaurant_id,
        party_size=request.party_size,
        table_ids=list(request.table_ids),
        customer_id=request.customer_id,
        guest_name=request.guest_name,
        guest_phone=request.guest_phone,
        guest_email=request.guest_email,
        occasion=request.occasion,
        estimated_duration=request.estimated_duration,
        shared_table_id=request.shared_table_id,
        seats_requested=request.seats_requested,
    )


@router.get("/tables/status", response_model=List[TableStatusResponse])
async def get_table_status(
    restaurant_id: int, store: SeatingStore = Depends(get_seating_store)
):
    """Occupancy, upcoming reservations and next availability for every table"""
    now = datetime.utcnow()
    tables, bookings, _ = await _load_snapshot(store, restaurant_id, now)
    index = table_status_service.build_index(tables, bookings, now)
    return [entry.to_dict() for entry in index]


@router.get("/queues", response_model=BookingQueuesResponse)
async def get_booking_queues(
    restaurant_id: int, store: SeatingStore = Depends(get_seating_store)
):
    """Waiting, dining and arrival queues for the host stand"""
    now = datetime.utcnow()
    _, bookings, _ = await _load_snapshot(store, restaurant_id, now)
    flags = await _customer_flags(store, bookings)
    queues = classify_bookings(bookings, now, flags.get)

    def dump(items):
        return [BookingResponse.model_validate(b) for b in items]

    return BookingQueuesResponse(
        waiting_for_seating=dump(queues.waiting_for_seating),
        active_dining=dump(queues.active_dining),
        arrivals=dump(queues.arrivals),
        arrivals_by_shift={k.value: dump(v) for k, v in queues.arrivals_by_shift.items()},
        arrivals_by_urgency={
            k.value: dump(v) for k, v in queues.arrivals_by_urgency.items()
        },
        vip_arrivals=dump(queues.vip_arrivals),
        needing_tables=dump(queues.needing_tables),
    )


@router.post("/bookings/{booking_id}/swap-options", response_model=SwapOptionsResponse)
async def get_swap_options(
    restaurant_id: int,
    booking_id: int,
    request: SwapOptionsRequest,
    store: SeatingStore = Depends(get_seating_store),
):
    """
    Ranked table options for a booking.

    With ``table_ids`` the options target those tables; otherwise every
    suitable table and table pair on the floor is considered.
    """
    now = datetime.utcnow()
    booking = await _get_restaurant_booking(store, restaurant_id, booking_id)
    tables, bookings, combinations = await _load_snapshot(store, restaurant_id, now)

    if request.table_ids:
        options = swap_option_service.calculate_swap_options(
            booking, request.table_ids, tables, bookings, combinations, now
        )
    else:
        options = swap_option_service.generate_all_options(
            booking, tables, bookings, combinations, now
        )

    flags = None
    if booking.user_id is not None:
        flags = await store.lookup_customer_flags(booking.user_id)
    suggestions = swap_option_service.generate_smart_suggestions(
        booking, tables, bookings, now, flags
    )

    return SwapOptionsResponse(
        booking_id=booking.id,
        options=[SwapOptionResponse(**option.to_dict()) for option in options],
        suggestions=[SmartSuggestionResponse.model_validate(s) for s in suggestions],
    )


@router.post("/bookings/{booking_id}/assignments", response_model=BookingResponse)
async def assign_tables(
    restaurant_id: int,
    booking_id: int,
    request: AssignmentRequest,
    store: SeatingStore = Depends(get_seating_store),
):
    """Apply a generated option or a manual table selection to a booking"""
    booking = await _get_restaurant_booking(store, restaurant_id, booking_id)
    service = AssignmentService(store)

    if request.option_type is None:
        updated = await service.reassign(
            booking_id, request.table_ids, request.confirmed, request.changed_by
        )
        return BookingResponse.model_validate(updated)

    # Options are regenerated from fresh data and matched by type and tables
    now = datetime.utcnow()
    tables, bookings, combinations = await _load_snapshot(store, restaurant_id, now)
    options = swap_option_service.calculate_swap_options(
        booking, request.table_ids, tables, bookings, combinations, now
    )
    wanted = (request.option_type, tuple(sorted(request.table_ids)))
    option = next((o for o in options if o.key == wanted), None)
    if option is None:
        logger.info(
            f"Option {request.option_type.value} on tables {sorted(request.table_ids)} "
            f"no longer available for booking {booking_id}"
        )
        raise TablesUnavailableError(request.table_ids, booking_id=booking_id)

    updated = await service.execute_option(
        booking_id, option, request.confirmed, request.changed_by
    )
    return BookingResponse.model_validate(updated)


@router.post("/bookings/{booking_id}/check-in", response_model=BookingResponse)
async def check_in_booking(
    restaurant_id: int,
    booking_id: int,
    request: CheckInRequest,
    store: SeatingStore = Depends(get_seating_store),
):
    """Seat a booking after re-checking its tables are free"""
    await _get_restaurant_booking(store, restaurant_id, booking_id)
    booking = await AssignmentService(store).check_in(
        booking_id, request.table_ids, request.changed_by
    )
    return BookingResponse.model_validate(booking)


@router.post("/bookings/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    restaurant_id: int,
    booking_id: int,
    request: StatusUpdateRequest,
    store: SeatingStore = Depends(get_seating_store),
):
    await _get_restaurant_booking(store, restaurant_id, booking_id)
    booking = await AssignmentService(store).update_status(
        booking_id, request.status, request.changed_by, request.reason
    )
    return BookingResponse.model_validate(booking)


@router.post("/walk-ins/check", response_model=WalkInCheckResponse)
async def check_walk_in(
    restaurant_id: int,
    request: WalkInRequest,
    store: SeatingStore = Depends(get_seating_store),
):
    """Run the conflict check for a walk-in without seating it"""
    service = WalkInService(store)
    walk_in = service.start(_walk_in_draft(restaurant_id, request))
    result = await service.check(walk_in)
    return WalkInCheckResponse(
        state=walk_in.state.value,
        requires_confirmation=result.requires_confirmation,
        capacity=result.capacity,
        table_ids=[t.id for t in result.tables],
        conflicts=[c.to_dict() for c in result.conflicts],
        displaced_booking_ids=result.displaced_booking_ids,
        guest_name=result.guest_name,
        turn_time_minutes=result.turn_time_minutes,
    )


@router.post(
    "/walk-ins", response_model=BookingResponse, status_code=status.HTTP_201_CREATED
)
async def seat_walk_in(
    restaurant_id: int,
    request: WalkInRequest,
    store: SeatingStore = Depends(get_seating_store),
):
    """
    Seat a walk-in. Conflicts found by the check must be accepted with
    ``accept_conflicts`` and every displaced booking listed in
    ``acknowledged_booking_ids``.
    """
    booking = await WalkInService(store).process(
        _walk_in_draft(restaurant_id, request),
        acknowledged_booking_ids=request.acknowledged_booking_ids,
        accept_conflicts=request.accept_conflicts,
        changed_by=request.changed_by,
    )
    return BookingResponse.model_validate(booking)


@router.get("/conflicts", response_model=List[BookingConflictResponse])
async def list_conflicts(
    restaurant_id: int, store: SeatingStore = Depends(get_seating_store)
):
    return await DisplacementService(store).get_active_conflicts(restaurant_id)


@router.post("/conflicts/{conflict_id}/resolve", response_model=BookingConflictResponse)
async def resolve_conflict(
    restaurant_id: int,
    conflict_id: int,
    store: SeatingStore = Depends(get_seating_store),
):
    service = DisplacementService(store)
    active = await service.get_active_conflicts(restaurant_id)
    if conflict_id not in {c.id for c in active}:
        raise NotFoundError(
            f"Active booking conflict {conflict_id} not found in restaurant {restaurant_id}"
        )
    return await service.resolve_conflict(conflict_id)
