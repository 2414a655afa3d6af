"""Error kinds raised by the reservation engine.

All of them are recoverable and meant to be reported to the immediate caller.
"""

from datetime import date
from typing import Optional


class BookingError(Exception):
    """Base class for every engine error."""

    kind = "booking_error"


class ValidationError(BookingError):
    """User-correctable input problem. Never retried automatically."""

    kind = "validation_error"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class ConflictError(BookingError):
    """The slot was claimed by another reservation between view and commit."""

    kind = "conflict"

    def __init__(self, booking_date: date, time_slot: str):
        self.booking_date = booking_date
        self.time_slot = time_slot
        super().__init__(
            f"{time_slot} on {booking_date.isoformat()} is already booked, please choose another slot"
        )


class StoreUnavailableError(BookingError):
    """Transient failure talking to the booking store."""

    kind = "store_unavailable"


class TransitionError(BookingError):
    """The requested status change is not allowed from the current status."""

    kind = "invalid_transition"

    def __init__(self, current: str, requested: str, reason: Optional[str] = None):
        self.current = current
        self.requested = requested
        super().__init__(reason or f"cannot change status from {current} to {requested}")


class BookingNotFoundError(BookingError):
    kind = "not_found"

    def __init__(self, booking_id):
        self.booking_id = booking_id
        super().__init__(f"booking {booking_id} not found")
