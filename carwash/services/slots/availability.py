# carwash/services/slots/availability.py
"""
Service availability from the booking ledger.

Loads the calculator inputs for (service, date) from the database:
- Service (duration, capacity, active flag)
- Business hours of the weekday
- Holiday on the date
- Active bookings of the service on the date

and runs compute_slots on them. No caching here; see CachedReservationService.
"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import ServiceNotFoundError
from ...models.tables import (
    INACTIVE_STATUSES,
    Bookings,
    BusinessHours,
    Holidays,
    Services,
)
from ...schemas.slots import TimeSlot
from .calculator import compute_slots
from .config import BookingConfig, get_booking_config


def calculate_service_availability(
    db: Session,
    service_id: int,
    target_date: date,
    config: BookingConfig | None = None,
) -> list[TimeSlot]:
    """
    Calculate slots for a service on a date, straight from the database.

    Raises:
        ServiceNotFoundError: service missing or inactive
    """
    config = config or get_booking_config()

    service = get_active_service(db, service_id)
    if service is None:
        raise ServiceNotFoundError(service_id=service_id)

    return compute_slots(
        service,
        target_date,
        get_business_hours(db, target_date),
        get_holiday(db, target_date),
        get_active_bookings(db, service_id, target_date),
        step_minutes=config.slot_step_minutes,
    )


# ── Database helpers ─────────────────────────────────────────────────────


def get_active_service(db: Session, service_id: int) -> Optional[Services]:
    """Get service by ID if it is active."""
    return db.query(Services).filter(
        Services.id == service_id,
        Services.is_active == 1,
    ).first()


def get_business_hours(db: Session, target_date: date) -> Optional[BusinessHours]:
    """Get business hours for the weekday of target_date."""
    return db.query(BusinessHours).filter(
        BusinessHours.day_of_week == target_date.weekday()
    ).first()


def get_holiday(db: Session, target_date: date) -> Optional[Holidays]:
    """Get holiday on target_date, if any."""
    return db.query(Holidays).filter(Holidays.date == target_date).first()


def get_active_bookings(db: Session, service_id: int, target_date: date) -> list[Bookings]:
    """Get bookings of a service on a date that still occupy capacity."""
    return (
        db.query(Bookings)
        .filter(
            Bookings.service_id == service_id,
            Bookings.date == target_date,
            Bookings.status.notin_(INACTIVE_STATUSES),
        )
        .order_by(Bookings.start_time)
        .all()
    )


def find_overlapping_bookings(
    db: Session,
    service_id: int,
    target_date: date,
    start_time: str,
    end_time: str,
    exclude_booking_id: int | None = None,
) -> list[Bookings]:
    """
    Active bookings overlapping [start_time, end_time), row-locked.

    "HH:MM" strings compare correctly as text, so the half-open overlap
    test a1 < b2 and b1 < a2 runs in the database. with_for_update()
    becomes SELECT ... FOR UPDATE where supported: a concurrent
    reservation touching the same rows blocks until this one ends.
    """
    query = db.query(Bookings).filter(
        Bookings.service_id == service_id,
        Bookings.date == target_date,
        Bookings.status.notin_(INACTIVE_STATUSES),
        Bookings.start_time < end_time,
        Bookings.end_time > start_time,
    )
    if exclude_booking_id is not None:
        query = query.filter(Bookings.id != exclude_booking_id)
    return query.with_for_update().all()
