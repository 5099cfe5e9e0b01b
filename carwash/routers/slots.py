# carwash/routers/slots.py
"""
Slots API endpoints.

GET  /slots/availability - slots of a service on a day (cached)
POST /slots/invalidate   - drop cached availability (admin)
GET  /slots/cache/health - cache counters
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_reservation_service
from ..errors import BookingError
from ..schemas.slots import (
    AvailabilityResponse,
    CacheHealthResponse,
    InvalidateRequest,
    InvalidateResponse,
)
from .http import http_error

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/availability", response_model=AvailabilityResponse)
def get_availability(
    service_id: int,
    target_date: date = Query(..., alias="date"),
    service=Depends(get_reservation_service),
):
    """Available start times of a service on a specific day."""
    try:
        slots = service.check_availability(target_date, service_id)
    except BookingError as e:
        raise http_error(e)

    return AvailabilityResponse(
        service_id=service_id,
        date=target_date,
        slots=slots,
        slot_step_minutes=service.config.slot_step_minutes,
    )


@router.post("/invalidate", response_model=InvalidateResponse)
def invalidate_availability(
    data: InvalidateRequest,
    service=Depends(get_reservation_service),
):
    if not hasattr(service, "invalidate_availability"):
        # Cache disabled: nothing to drop
        return InvalidateResponse(tags=[], deleted_keys=0)

    tags, deleted = service.invalidate_availability(data.service_id, data.dates)
    return InvalidateResponse(tags=tags, deleted_keys=deleted)


@router.get("/cache/health", response_model=CacheHealthResponse)
def cache_health(service=Depends(get_reservation_service)):
    if not hasattr(service, "cache_health"):
        return CacheHealthResponse(enabled=False)
    return CacheHealthResponse(enabled=True, **service.cache_health())
