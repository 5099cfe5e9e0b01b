# carwash/routers/bookings.py
# Bookings change only through the explicit POST actions: PATCH = 405, DELETE = 405

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..dependencies import get_reservation_service
from ..errors import BookingError
from ..models.tables import BookingStatus
from ..schemas.bookings import (
    BookingCancel,
    BookingCreate,
    BookingFilters,
    BookingRead,
    BookingReschedule,
    BookingStatusUpdate,
    DailyStats,
)
from ..services.reservations import BookingOutcome
from .http import http_error

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _unwrap(outcome: BookingOutcome) -> BookingRead:
    if not outcome.ok:
        raise http_error(outcome.error)
    return outcome.booking


# ── Read ────────────────────────────────────────────────────────────────


@router.get("/", response_model=list[BookingRead])
def list_bookings(
    service_id: int | None = None,
    customer_email: str | None = None,
    status_in: list[BookingStatus] | None = Query(None, alias="status"),
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service=Depends(get_reservation_service),
):
    filters = BookingFilters(
        service_id=service_id,
        customer_email=customer_email,
        status=status_in,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    try:
        return service.list_bookings(filters)
    except BookingError as e:
        raise http_error(e)


@router.get("/stats/daily", response_model=DailyStats)
def daily_stats(
    target_date: date = Query(..., alias="date"),
    service=Depends(get_reservation_service),
):
    try:
        return service.get_daily_stats(target_date)
    except BookingError as e:
        raise http_error(e)


@router.get("/code/{code}", response_model=BookingRead)
def get_booking_by_code(code: str, service=Depends(get_reservation_service)):
    try:
        return service.get_booking_by_confirmation_code(code)
    except BookingError as e:
        raise http_error(e)


@router.get("/{id}", response_model=BookingRead)
def get_booking(id: int, service=Depends(get_reservation_service)):
    try:
        return service.get_booking(id)
    except BookingError as e:
        raise http_error(e)


# ── Write ───────────────────────────────────────────────────────────────


@router.post("/", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    service=Depends(get_reservation_service),
):
    return _unwrap(service.create_booking(data))


@router.post("/{id}/status", response_model=BookingRead)
def update_status(
    id: int,
    data: BookingStatusUpdate,
    service=Depends(get_reservation_service),
):
    return _unwrap(service.update_booking_status(id, data.status, data.admin_notes, data.changed_by))


@router.post("/{id}/cancel", response_model=BookingRead)
def cancel_booking(
    id: int,
    data: BookingCancel,
    service=Depends(get_reservation_service),
):
    return _unwrap(service.cancel_booking(id, data.reason, data.customer_initiated))


@router.post("/{id}/reschedule", response_model=BookingRead)
def reschedule_booking(
    id: int,
    data: BookingReschedule,
    service=Depends(get_reservation_service),
):
    return _unwrap(service.reschedule_booking(id, data.date, data.start_time))


@router.patch("/{id}")
def patch_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )


@router.delete("/{id}")
def delete_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )
