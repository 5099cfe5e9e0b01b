"""
Error taxonomy for the reservation engine.

Domain outcomes (conflicts, validation) are expected and carry a stable
``code`` plus a message that is safe to show the customer. Infrastructure
failures keep their details in ``context`` for logging and expose only a
generic message.
"""

from typing import Any, Optional

GENERIC_RETRY_MESSAGE = "Could not complete booking, please retry"


class BookingError(Exception):
    """Base class for every error raised by the reservation engine."""

    code = "BOOKING_ERROR"
    user_message = GENERIC_RETRY_MESSAGE
    retryable = False

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.user_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


# ── Caller faults ────────────────────────────────────────────────────────


class BookingValidationError(BookingError):
    code = "VALIDATION_ERROR"
    user_message = "Invalid booking request"


class ServiceNotFoundError(BookingValidationError):
    code = "SERVICE_NOT_FOUND"
    user_message = "Service not found or inactive"


class BookingNotFoundError(BookingValidationError):
    code = "BOOKING_NOT_FOUND"
    user_message = "Booking not found"


class InvalidBookingStatusTransitionError(BookingValidationError):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, from_status: str, to_status: str, **context: Any):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition from {from_status} to {to_status}",
            **context,
        )


# ── Slot conflicts ───────────────────────────────────────────────────────


class BookingConflictError(BookingError):
    code = "BOOKING_CONFLICT"
    user_message = "Time slot is not available"


class TimeSlotUnavailableError(BookingConflictError):
    code = "TIME_SLOT_UNAVAILABLE"
    user_message = "Time slot no longer available"


class SlotLockedError(BookingConflictError):
    code = "SLOT_LOCKED"
    user_message = "This time slot is being processed, please try again shortly"
    retryable = True


# ── Infrastructure ───────────────────────────────────────────────────────


class BookingFailedError(BookingError):
    """Generic failure surfaced to callers when the cause must stay internal."""

    code = "BOOKING_FAILED"
    retryable = True


class ConfirmationCodeGenerationError(BookingError):
    code = "CONFIRMATION_CODE_GENERATION_FAILED"


class TransactionTimeoutError(BookingError):
    code = "TRANSACTION_TIMEOUT"
    retryable = True


class DatabaseUnavailableError(BookingError):
    """Ledger read failed at the driver level (locked, unreachable)."""

    code = "DATABASE_UNAVAILABLE"
    retryable = True


class CacheUnavailableError(BookingError):
    """Cache store unreachable. Never surfaced; the cache turns transparent."""

    code = "CACHE_UNAVAILABLE"


class LockUnavailableError(BookingError):
    """Lock store unreachable. Never surfaced; the transaction still guards writes."""

    code = "LOCK_UNAVAILABLE"
