# carwash/services/slots/__init__.py
"""
Slots calculation module.

compute_slots: pure slot calculation (business hours, holidays, capacity)
calculate_service_availability: same, with inputs loaded from the database
invalidator: cache tags of availability and booking read models
"""

from .config import BookingConfig, get_booking_config
from .calculator import compute_slots, find_slot
from .availability import calculate_service_availability
from .invalidator import availability_tags, invalidate_availability, invalidate_booking_caches

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "compute_slots",
    "find_slot",
    "calculate_service_availability",
    "availability_tags",
    "invalidate_availability",
    "invalidate_booking_caches",
]
