# carwash/services/reservations/__init__.py
"""
Reservation engine.

ReservationService: validate → slot lock → serializable transaction → notify
CachedReservationService: the same operations with cached reads
"""

from .cached import CachedReservationService
from .locks import LocalLockProvider, LockProvider, RedisLockProvider, booking_lock_key
from .service import BookingOutcome, ReservationService
from .transaction import ReservationTransactionManager

__all__ = [
    "BookingOutcome",
    "CachedReservationService",
    "LocalLockProvider",
    "LockProvider",
    "RedisLockProvider",
    "ReservationService",
    "ReservationTransactionManager",
    "booking_lock_key",
]
