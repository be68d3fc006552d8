# backend/modules/seating/exceptions.py

"""Custom exceptions for table assignment and walk-in intake"""

from typing import Any, Dict, List, Optional, Sequence

from core.exceptions import ConflictError, ServiceUnavailableError, ValidationError


class SeatingValidationError(ValidationError):
    """Raised when a request is rejected before any store call"""

    def __init__(self, detail: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            detail=detail, error_code="SEATING_VALIDATION", context=context
        )


class ConfirmationRequiredError(ConflictError):
    """Raised when an operation needs explicit staff confirmation first"""

    def __init__(self, detail: str, items: Optional[List[Dict[str, Any]]] = None):
        self.items = items or []
        super().__init__(
            detail=detail,
            error_code="CONFIRMATION_REQUIRED",
            context={"confirmations": self.items},
        )


class TablesUnavailableError(ConflictError):
    """Raised when tables became occupied between option generation and commit"""

    def __init__(
        self,
        table_ids: Sequence[int],
        occupying_booking_id: Optional[int] = None,
        booking_id: Optional[int] = None,
    ):
        self.table_ids = list(table_ids)
        self.occupying_booking_id = occupying_booking_id
        self.booking_id = booking_id

        tables = ", ".join(str(t) for t in self.table_ids)
        detail = f"Tables no longer available: {tables}"
        if occupying_booking_id is not None:
            detail += f" (occupied by booking {occupying_booking_id})"
        if booking_id is not None:
            detail += f" for booking {booking_id}"
        detail += ". Recompute options and try again."

        super().__init__(
            detail=detail,
            error_code="TABLES_UNAVAILABLE",
            context={
                "table_ids": self.table_ids,
                "occupying_booking_id": occupying_booking_id,
                "booking_id": booking_id,
            },
            retryable=True,
        )


class InconsistentSwapError(ConflictError):
    """Raised when one half of a swap was applied and could not be restored"""

    def __init__(self, booking_a_id: int, booking_b_id: int, reason: str):
        self.booking_a_id = booking_a_id
        self.booking_b_id = booking_b_id
        super().__init__(
            detail=(
                f"Swap between booking {booking_a_id} and booking {booking_b_id} "
                f"left an inconsistent state: {reason}. Manual reconciliation required."
            ),
            error_code="SWAP_INCONSISTENT",
            context={"booking_ids": [booking_a_id, booking_b_id], "reason": reason},
        )


class SeatingStoreError(ServiceUnavailableError):
    """Raised when the backing store rejects a read or mutation"""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        super().__init__(
            detail=f"Store operation '{operation}' failed: {reason}",
            error_code="STORE_UNAVAILABLE",
            context={"operation": operation},
        )
