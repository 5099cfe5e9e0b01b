# carwash/routers/http.py
"""Mapping of engine errors to HTTP responses."""

from fastapi import HTTPException, status

from ..errors import (
    BookingConflictError,
    BookingError,
    BookingNotFoundError,
    BookingValidationError,
    InvalidBookingStatusTransitionError,
    ServiceNotFoundError,
    SlotLockedError,
)

# Seconds a client should wait before retrying a locked slot
RETRY_AFTER_SECONDS = 1


def http_error(error: BookingError) -> HTTPException:
    detail = error.to_dict()

    if isinstance(error, (ServiceNotFoundError, BookingNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    if isinstance(error, InvalidBookingStatusTransitionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)
    if isinstance(error, BookingValidationError):
        return HTTPException(status_code=422, detail=detail)
    if isinstance(error, SlotLockedError):
        return HTTPException(
            status_code=status.HTTP_423_LOCKED,
            detail=detail,
            headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
        )
    if isinstance(error, BookingConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)

    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=detail,
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )
