# carwash/services/reservations/transaction.py
"""
Reservation transactions: the authoritative guard of the booking ledger.

Every write runs in one database transaction at the strictest isolation
the backend offers:
- PostgreSQL: SERIALIZABLE + SELECT ... FOR UPDATE on the overlapping rows
- SQLite:     BEGIN IMMEDIATE (see database.BEGIN_IMMEDIATE), writers are
              serialized from their first statement

Inside the transaction the slot is re-verified against the rows as they
are now, never against cached availability. Any failure rolls back; a
booking is never left half-written.
"""

import logging
import time
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Callable, Iterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from ...database import BEGIN_IMMEDIATE
from ...errors import (
    BookingError,
    BookingNotFoundError,
    BookingValidationError,
    ServiceNotFoundError,
    SlotLockedError,
    TimeSlotUnavailableError,
    TransactionTimeoutError,
)
from ...models.tables import (
    BookingStatus,
    BookingStatusHistory,
    Bookings,
    PaymentStatus,
)
from ...schemas.bookings import BookingCreate, BookingRead
from ..slots.availability import (
    find_overlapping_bookings,
    get_active_service,
    get_business_hours,
    get_holiday,
)
from ..slots.calculator import compute_slots, find_slot
from ..slots.config import BookingConfig, get_booking_config, minutes_to_time_str, slot_interval, slot_start_datetime
from .confirmation import generate_unique_confirmation_code
from .status import RESCHEDULABLE_STATUSES, validate_transition

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATEs
SERIALIZATION_FAILURE = "40001"
DEADLOCK_DETECTED = "40P01"
QUERY_CANCELED = "57014"


class ReservationTransactionManager:
    """Verifies and writes bookings inside serializable transactions."""

    def __init__(
        self,
        session_factory: sessionmaker,
        config: BookingConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.session_factory = session_factory
        self.config = config or get_booking_config()
        self.clock = clock

    # ── Transaction scope ────────────────────────────────────────────────

    @contextmanager
    def transaction(self, name: str) -> Iterator[Session]:
        """
        Serializable transaction with a wall-clock limit.

        Commits on normal exit, rolls back on any exception or when the
        limit was exceeded before commit.
        """
        timeout = self.config.transaction_timeout_seconds
        db = self.session_factory()
        started = time.monotonic()
        try:
            self._begin(db, timeout)
            yield db

            elapsed = time.monotonic() - started
            if elapsed > timeout:
                raise TransactionTimeoutError(
                    f"Transaction {name} exceeded {timeout}s",
                    elapsed=round(elapsed, 3),
                )
            db.commit()
        except DBAPIError as e:
            db.rollback()
            translated = self._translate_db_error(e, name)
            if translated is None:
                raise
            raise translated from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _begin(self, db: Session, timeout: float) -> None:
        bind = db.get_bind()
        if bind.dialect.name == "postgresql":
            db.connection(execution_options={"isolation_level": "SERIALIZABLE"})
            db.execute(text(f"SET LOCAL statement_timeout = {int(timeout * 1000)}"))
        else:
            # SQLite: the engine's begin hook turns this option into BEGIN IMMEDIATE
            db.connection(execution_options={BEGIN_IMMEDIATE: True})

    def _translate_db_error(self, error: DBAPIError, name: str) -> Optional[BookingError]:
        """Map driver errors to domain errors; None = unexpected, re-raise as is."""
        code = getattr(error.orig, "pgcode", None) or getattr(error.orig, "sqlstate", None)
        if code in (SERIALIZATION_FAILURE, DEADLOCK_DETECTED):
            logger.info(f"Transaction {name} lost a serialization race: {code}")
            return SlotLockedError(transaction=name, sqlstate=code)
        if code == QUERY_CANCELED or "database is locked" in str(error.orig):
            return TransactionTimeoutError(
                f"Transaction {name} timed out waiting for the database",
                transaction=name,
            )
        return None

    # ── Create ───────────────────────────────────────────────────────────

    def reserve(self, request: BookingCreate) -> BookingRead:
        """
        Verify the slot and insert a PENDING booking.

        Raises:
            ServiceNotFoundError: service missing or inactive
            TimeSlotUnavailableError: slot not offered or at capacity
            ConfirmationCodeGenerationError: no unique code after retries
            TransactionTimeoutError: wall-clock limit exceeded
        """
        with self.transaction("reserve") as db:
            service = get_active_service(db, request.service_id)
            if service is None:
                raise ServiceNotFoundError(service_id=request.service_id)

            end_time = self._verify_slot(db, service, request.date, request.start_time)

            code = generate_unique_confirmation_code(lambda c: _code_exists(db, c))

            booking = Bookings(
                service_id=service.id,
                date=request.date,
                start_time=request.start_time,
                end_time=end_time,
                duration_minutes=service.duration_minutes,
                price_cents=service.price_cents,
                status=BookingStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                customer_name=request.customer_name,
                customer_email=request.customer_email,
                customer_phone=request.customer_phone,
                vehicle_type=request.vehicle_type,
                license_plate=request.license_plate,
                notes=request.notes,
                confirmation_code=code,
            )
            db.add(booking)
            db.flush()

            db.add(BookingStatusHistory(
                booking_id=booking.id,
                from_status=None,
                to_status=BookingStatus.PENDING.value,
                changed_by=request.customer_email,
            ))
            db.flush()

            return BookingRead.model_validate(booking)

    # ── Status changes ───────────────────────────────────────────────────

    def transition(
        self,
        booking_id: int,
        new_status: BookingStatus,
        admin_notes: Optional[str] = None,
        reason: Optional[str] = None,
        changed_by: Optional[str] = None,
        customer_initiated: bool = False,
    ) -> BookingRead:
        """
        Move a booking to new_status if the workflow allows it.

        Raises:
            BookingNotFoundError
            InvalidBookingStatusTransitionError: nothing is written
            BookingValidationError: customer cancellation past the deadline
        """
        new_status = BookingStatus(new_status)

        with self.transaction("transition") as db:
            booking = _get_booking_for_update(db, booking_id)
            previous = booking.status
            validate_transition(previous, new_status)

            now = self.clock()
            if new_status == BookingStatus.CANCELLED:
                if customer_initiated:
                    self._check_cancellation_deadline(booking, now)
                booking.cancelled_at = now
                booking.cancel_reason = reason
            elif new_status == BookingStatus.COMPLETED:
                booking.completed_at = now

            if admin_notes:
                booking.admin_notes = admin_notes
            booking.status = new_status.value

            db.add(BookingStatusHistory(
                booking_id=booking.id,
                from_status=previous,
                to_status=new_status.value,
                changed_by=changed_by or ("customer" if customer_initiated else "system"),
                reason=reason,
            ))
            db.flush()

            logger.info(f"Booking {booking_id} status {previous} → {new_status.value}")
            return BookingRead.model_validate(booking)

    def _check_cancellation_deadline(self, booking: Bookings, now: datetime) -> None:
        deadline_hours = self.config.cancellation_deadline_hours
        starts_at = slot_start_datetime(booking.date, booking.start_time)
        if starts_at - now < timedelta(hours=deadline_hours):
            raise BookingValidationError(
                f"Cancellation deadline passed. Must cancel at least "
                f"{deadline_hours} hours in advance.",
                booking_id=booking.id,
            )

    # ── Reschedule ───────────────────────────────────────────────────────

    def reschedule(
        self,
        booking_id: int,
        new_date: date,
        new_start_time: str,
        changed_by: Optional[str] = None,
    ) -> tuple[BookingRead, date]:
        """
        Move a PENDING/CONFIRMED booking to another slot of the same service.

        Returns:
            (updated booking, previous date)
        """
        with self.transaction("reschedule") as db:
            booking = _get_booking_for_update(db, booking_id)
            if BookingStatus(booking.status) not in RESCHEDULABLE_STATUSES:
                raise BookingValidationError(
                    f"Booking in status {booking.status} cannot be rescheduled",
                    booking_id=booking_id,
                )

            service = get_active_service(db, booking.service_id)
            if service is None:
                raise ServiceNotFoundError(service_id=booking.service_id)

            end_time = self._verify_slot(
                db, service, new_date, new_start_time, exclude_booking_id=booking.id
            )

            previous_date = booking.date
            previous_slot = f"{booking.date.isoformat()} {booking.start_time}"
            booking.date = new_date
            booking.start_time = new_start_time
            booking.end_time = end_time
            booking.duration_minutes = service.duration_minutes

            db.add(BookingStatusHistory(
                booking_id=booking.id,
                from_status=booking.status,
                to_status=booking.status,
                changed_by=changed_by or "system",
                reason=f"Rescheduled from {previous_slot} to {new_date.isoformat()} {new_start_time}",
            ))
            db.flush()

            logger.info(
                f"Booking {booking_id} rescheduled: {previous_slot} → "
                f"{new_date.isoformat()} {new_start_time}"
            )
            return BookingRead.model_validate(booking), previous_date

    # ── Slot verification ────────────────────────────────────────────────

    def _verify_slot(
        self,
        db: Session,
        service,
        target_date: date,
        start_time: str,
        exclude_booking_id: int | None = None,
    ) -> str:
        """
        Re-check the slot against the live ledger. Returns its end time.

        Raises:
            TimeSlotUnavailableError: not offered that day, or at capacity
        """
        offered = compute_slots(
            service,
            target_date,
            get_business_hours(db, target_date),
            get_holiday(db, target_date),
            step_minutes=self.config.slot_step_minutes,
        )
        if find_slot(offered, start_time) is None:
            raise TimeSlotUnavailableError(
                service_id=service.id,
                date=target_date.isoformat(),
                time=start_time,
                reason="not_offered",
            )

        _, end = slot_interval(start_time, service.duration_minutes)
        end_time = minutes_to_time_str(end)

        overlapping = find_overlapping_bookings(
            db, service.id, target_date, start_time, end_time, exclude_booking_id
        )
        if len(overlapping) >= service.capacity:
            raise TimeSlotUnavailableError(
                service_id=service.id,
                date=target_date.isoformat(),
                time=start_time,
                reason="capacity",
                overlapping=len(overlapping),
            )
        return end_time


# ── Helpers ──────────────────────────────────────────────────────────────


def _code_exists(db: Session, code: str) -> bool:
    return db.query(Bookings.id).filter(Bookings.confirmation_code == code).first() is not None


def _get_booking_for_update(db: Session, booking_id: int) -> Bookings:
    booking = (
        db.query(Bookings)
        .filter(Bookings.id == booking_id)
        .with_for_update()
        .first()
    )
    if booking is None:
        raise BookingNotFoundError(booking_id=booking_id)
    return booking
