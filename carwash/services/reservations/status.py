"""
Booking status workflow.

PENDING → CONFIRMED → IN_PROGRESS → COMPLETED
PENDING | CONFIRMED → CANCELLED
CONFIRMED | IN_PROGRESS → NO_SHOW

COMPLETED, CANCELLED and NO_SHOW are terminal.
"""

from ...errors import InvalidBookingStatusTransitionError
from ...models.tables import BookingStatus

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({
        BookingStatus.IN_PROGRESS,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    }),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.NO_SHOW}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}

# Bookings that may still be moved to another slot
RESCHEDULABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def is_transition_allowed(from_status, to_status) -> bool:
    return BookingStatus(to_status) in ALLOWED_TRANSITIONS[BookingStatus(from_status)]


def validate_transition(from_status, to_status) -> None:
    """
    Raises:
        InvalidBookingStatusTransitionError: transition not in the workflow
    """
    if not is_transition_allowed(from_status, to_status):
        raise InvalidBookingStatusTransitionError(
            BookingStatus(from_status).value,
            BookingStatus(to_status).value,
        )


def is_terminal(status) -> bool:
    return not ALLOWED_TRANSITIONS[BookingStatus(status)]
