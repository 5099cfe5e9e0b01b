# carwash/services/reservations/service.py
"""
Reservation service: orchestrates one booking attempt.

    REQUESTED → LOCKED → VERIFYING → COMMITTED | CONFLICT → DONE
                                 (lock released on every exit path)

1. Validate the request (date window, start in the future)
2. Acquire the slot lock lock:booking:{date}:{time} (bounded wait)
3. Verify + insert inside a serializable transaction
4. Release the lock
5. Notify (fire-and-forget)

Domain outcomes (conflicts, validation) come back as BookingOutcome
values. Infrastructure failures are logged with the lock key and attempt
id and surface as a generic BookingFailedError.
"""

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Iterator, Optional, Union

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from ...errors import (
    BookingConflictError,
    BookingError,
    BookingFailedError,
    BookingNotFoundError,
    BookingValidationError,
    DatabaseUnavailableError,
    LockUnavailableError,
    SlotLockedError,
)
from ...models.tables import BookingStatus, Bookings, PaymentStatus, Services
from ...schemas.bookings import (
    BookingCreate,
    BookingFilters,
    BookingRead,
    DailyStats,
    ServiceRead,
)
from ...schemas.slots import TimeSlot
from ..events import EventNotifier
from ..slots.availability import calculate_service_availability
from ..slots.config import BookingConfig, get_booking_config, slot_start_datetime
from .locks import LockProvider, booking_lock_key
from .transaction import ReservationTransactionManager

logger = logging.getLogger(__name__)


@dataclass
class BookingOutcome:
    """Result of a write operation: a booking or a typed error."""
    booking: Optional[BookingRead] = None
    error: Optional[BookingError] = None
    attempt_id: Optional[str] = None
    # Set by reschedule: the date the booking moved away from
    previous_date: Optional[date] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_conflict(self) -> bool:
        return isinstance(self.error, BookingConflictError)


class ReservationService:
    """Booking engine without caching. Wrap with CachedReservationService."""

    def __init__(
        self,
        session_factory: sessionmaker,
        lock_provider: LockProvider | None = None,
        notifier: EventNotifier | None = None,
        config: BookingConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.session_factory = session_factory
        self.lock_provider = lock_provider
        self.notifier = notifier
        self.config = config or get_booking_config()
        self.clock = clock
        self.transactions = ReservationTransactionManager(session_factory, self.config, clock)

    # ── Availability ─────────────────────────────────────────────────────

    def check_availability(self, target_date: date, service_id: int) -> list[TimeSlot]:
        """
        Slots of a service on a date, computed from the ledger.

        Raises:
            BookingValidationError: date outside the booking window
            ServiceNotFoundError: service missing or inactive
        """
        self.validate_date(target_date)
        with self._read_session() as db:
            return calculate_service_availability(db, service_id, target_date, self.config)

    def validate_date(self, target_date: date) -> None:
        today = self.clock().date()
        if target_date < today:
            raise BookingValidationError("Date cannot be in the past", date=target_date.isoformat())
        if target_date > today + timedelta(days=self.config.horizon_days):
            raise BookingValidationError(
                f"Date cannot be more than {self.config.horizon_days} days ahead",
                date=target_date.isoformat(),
            )

    def _validate_start(self, target_date: date, start_time: str) -> None:
        self.validate_date(target_date)
        if slot_start_datetime(target_date, start_time) <= self.clock():
            raise BookingValidationError(
                "Start time must be in the future",
                date=target_date.isoformat(),
                time=start_time,
            )

    # ── Create ───────────────────────────────────────────────────────────

    def create_booking(self, request: BookingCreate) -> BookingOutcome:
        attempt_id = uuid.uuid4().hex[:12]

        try:
            self._validate_start(request.date, request.start_time)
        except BookingValidationError as e:
            return BookingOutcome(error=e, attempt_id=attempt_id)

        lock_key = booking_lock_key(request.date, request.start_time)
        lock_token = self._acquire_lock(lock_key, attempt_id)
        if lock_token is False:
            logger.info(f"Booking attempt {attempt_id}: {lock_key} is held, rejecting")
            return BookingOutcome(error=SlotLockedError(lock_key=lock_key), attempt_id=attempt_id)

        try:
            booking = self.transactions.reserve(request)
        except (BookingValidationError, BookingConflictError) as e:
            logger.info(f"Booking attempt {attempt_id} rejected: {e.code} {e.context}")
            return BookingOutcome(error=e, attempt_id=attempt_id)
        except BookingError as e:
            logger.error(
                f"Booking attempt {attempt_id} failed: {e.code} "
                f"lock_key={lock_key} context={e.context}"
            )
            return BookingOutcome(error=BookingFailedError(cause=e.code), attempt_id=attempt_id)
        except Exception:
            logger.exception(f"Booking attempt {attempt_id} failed unexpectedly, lock_key={lock_key}")
            return BookingOutcome(error=BookingFailedError(), attempt_id=attempt_id)
        finally:
            if lock_token:
                self._release_lock(lock_key, lock_token)

        logger.info(
            f"Booking created: booking_id={booking.id}, code={booking.confirmation_code}, "
            f"service_id={booking.service_id}, time={booking.date} {booking.start_time}"
        )
        if self.notifier is not None:
            self.notifier.notify_booking_created(booking)

        return BookingOutcome(booking=booking, attempt_id=attempt_id)

    # ── Status changes ───────────────────────────────────────────────────

    def update_booking_status(
        self,
        booking_id: int,
        new_status: BookingStatus,
        admin_notes: Optional[str] = None,
        changed_by: Optional[str] = None,
    ) -> BookingOutcome:
        return self._run_write(
            "update_status",
            lambda: self.transactions.transition(
                booking_id,
                new_status,
                admin_notes=admin_notes,
                changed_by=changed_by,
            ),
            booking_id=booking_id,
        )

    def cancel_booking(
        self,
        booking_id: int,
        reason: Optional[str] = None,
        customer_initiated: bool = False,
        changed_by: Optional[str] = None,
    ) -> BookingOutcome:
        return self._run_write(
            "cancel",
            lambda: self.transactions.transition(
                booking_id,
                BookingStatus.CANCELLED,
                reason=reason,
                changed_by=changed_by,
                customer_initiated=customer_initiated,
            ),
            booking_id=booking_id,
        )

    def _run_write(self, name: str, operation: Callable[[], BookingRead], booking_id: int) -> BookingOutcome:
        attempt_id = uuid.uuid4().hex[:12]
        try:
            booking = operation()
        except BookingValidationError as e:
            return BookingOutcome(error=e, attempt_id=attempt_id)
        except BookingError as e:
            logger.error(f"{name} failed for booking {booking_id}: {e.code} context={e.context}")
            return BookingOutcome(error=BookingFailedError(cause=e.code), attempt_id=attempt_id)
        except Exception:
            logger.exception(f"{name} failed unexpectedly for booking {booking_id}")
            return BookingOutcome(error=BookingFailedError(), attempt_id=attempt_id)

        if self.notifier is not None:
            self.notifier.notify_booking_status_changed(booking)
        return BookingOutcome(booking=booking, attempt_id=attempt_id)

    # ── Reschedule ───────────────────────────────────────────────────────

    def reschedule_booking(
        self,
        booking_id: int,
        new_date: date,
        new_start_time: str,
        changed_by: Optional[str] = None,
    ) -> BookingOutcome:
        attempt_id = uuid.uuid4().hex[:12]

        try:
            self._validate_start(new_date, new_start_time)
        except BookingValidationError as e:
            return BookingOutcome(error=e, attempt_id=attempt_id)

        lock_key = booking_lock_key(new_date, new_start_time)
        lock_token = self._acquire_lock(lock_key, attempt_id)
        if lock_token is False:
            return BookingOutcome(error=SlotLockedError(lock_key=lock_key), attempt_id=attempt_id)

        try:
            booking, previous_date = self.transactions.reschedule(
                booking_id, new_date, new_start_time, changed_by=changed_by
            )
        except (BookingValidationError, BookingConflictError) as e:
            return BookingOutcome(error=e, attempt_id=attempt_id)
        except BookingError as e:
            logger.error(
                f"Reschedule {attempt_id} of booking {booking_id} failed: {e.code} "
                f"lock_key={lock_key} context={e.context}"
            )
            return BookingOutcome(error=BookingFailedError(cause=e.code), attempt_id=attempt_id)
        except Exception:
            logger.exception(f"Reschedule {attempt_id} of booking {booking_id} failed, lock_key={lock_key}")
            return BookingOutcome(error=BookingFailedError(), attempt_id=attempt_id)
        finally:
            if lock_token:
                self._release_lock(lock_key, lock_token)

        if self.notifier is not None:
            self.notifier.notify_booking_rescheduled(booking)
        return BookingOutcome(booking=booking, attempt_id=attempt_id, previous_date=previous_date)

    # ── Locking ──────────────────────────────────────────────────────────

    def _acquire_lock(self, lock_key: str, attempt_id: str) -> Union[str, bool, None]:
        """
        Owner token = held, False = contended, None = no lock (not configured
        or store down); the transaction alone guards the slot in the last case.
        """
        if self.lock_provider is None:
            return None
        try:
            token = self.lock_provider.acquire(
                lock_key,
                self.config.lock_ttl_seconds,
                self.config.lock_wait_seconds,
            )
        except LockUnavailableError as e:
            logger.warning(
                f"Booking attempt {attempt_id}: lock store unavailable for {lock_key}, "
                f"relying on transaction isolation: {e}"
            )
            return None
        return token if token is not None else False

    def _release_lock(self, lock_key: str, token: str) -> None:
        try:
            self.lock_provider.release(lock_key, token)
        except Exception:
            logger.exception(f"Failed to release {lock_key}, it will expire")

    # ── Reads ────────────────────────────────────────────────────────────

    @contextmanager
    def _read_session(self) -> Iterator[Session]:
        """Plain session for reads; driver failures become DatabaseUnavailableError."""
        try:
            with self.session_factory() as db:
                yield db
        except DBAPIError as e:
            logger.error(f"Ledger read failed: {e.orig}")
            raise DatabaseUnavailableError(cause=str(e.orig)) from e

    def get_booking(self, booking_id: int) -> BookingRead:
        with self._read_session() as db:
            booking = db.get(Bookings, booking_id)
            if booking is None:
                raise BookingNotFoundError(booking_id=booking_id)
            return BookingRead.model_validate(booking)

    def get_booking_by_confirmation_code(self, code: str) -> BookingRead:
        with self._read_session() as db:
            booking = db.query(Bookings).filter(Bookings.confirmation_code == code.upper()).first()
            if booking is None:
                raise BookingNotFoundError(confirmation_code=code)
            return BookingRead.model_validate(booking)

    def list_bookings(self, filters: BookingFilters | None = None) -> list[BookingRead]:
        filters = filters or BookingFilters()
        with self._read_session() as db:
            query = db.query(Bookings)
            if filters.service_id is not None:
                query = query.filter(Bookings.service_id == filters.service_id)
            if filters.customer_email:
                query = query.filter(Bookings.customer_email == filters.customer_email.lower())
            if filters.status:
                query = query.filter(Bookings.status.in_([s.value for s in filters.status]))
            if filters.date_from:
                query = query.filter(Bookings.date >= filters.date_from)
            if filters.date_to:
                query = query.filter(Bookings.date <= filters.date_to)

            rows = (
                query.order_by(Bookings.date.desc(), Bookings.start_time.desc())
                .offset(filters.offset)
                .limit(filters.limit)
                .all()
            )
            return [BookingRead.model_validate(row) for row in rows]

    def list_active_services(self) -> list[ServiceRead]:
        with self._read_session() as db:
            rows = db.query(Services).filter(Services.is_active == 1).order_by(Services.id).all()
            return [ServiceRead.model_validate(row) for row in rows]

    def get_daily_stats(self, target_date: date) -> DailyStats:
        with self._read_session() as db:
            bookings = db.query(Bookings).filter(Bookings.date == target_date).all()

        def count(status: BookingStatus) -> int:
            return sum(1 for b in bookings if b.status == status.value)

        revenue = sum(b.price_cents for b in bookings if b.payment_status == PaymentStatus.PAID.value)
        total_value = sum(b.price_cents for b in bookings)

        return DailyStats(
            date=target_date,
            total=len(bookings),
            pending=count(BookingStatus.PENDING),
            confirmed=count(BookingStatus.CONFIRMED),
            completed=count(BookingStatus.COMPLETED),
            cancelled=count(BookingStatus.CANCELLED),
            no_show=count(BookingStatus.NO_SHOW),
            revenue_cents=revenue,
            average_booking_value_cents=total_value // len(bookings) if bookings else 0,
        )
