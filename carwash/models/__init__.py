from .tables import (
    Base,
    BookingStatus,
    BookingStatusHistory,
    Bookings,
    BusinessHours,
    Holidays,
    INACTIVE_STATUSES,
    PaymentStatus,
    Services,
)

__all__ = [
    "Base",
    "BookingStatus",
    "BookingStatusHistory",
    "Bookings",
    "BusinessHours",
    "Holidays",
    "INACTIVE_STATUSES",
    "PaymentStatus",
    "Services",
]
