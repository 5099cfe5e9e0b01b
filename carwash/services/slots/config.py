# carwash/services/slots/config.py
"""
Booking configuration and clock helpers for slots calculation.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from functools import lru_cache


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for booking/slots system.

    Attributes:
        slot_step_minutes: Candidate start time step in minutes (15/30/60)
        horizon_days: How many days ahead bookings are accepted
        availability_ttl_seconds: Cache TTL for computed slot lists
        refresh_threshold_seconds: Remaining TTL that triggers background refresh
        lock_ttl_seconds: Expiry of a slot lock (safety net for crashed holders)
        lock_wait_seconds: How long a booking attempt waits for a held slot lock
        transaction_timeout_seconds: Wall-clock limit of a reservation transaction
        cancellation_deadline_hours: Customer cancellations must come this early
    """
    slot_step_minutes: int = 30  # 15 / 30 / 60
    horizon_days: int = 60
    availability_ttl_seconds: int = 300
    refresh_threshold_seconds: int = 60
    lock_ttl_seconds: int = 10
    lock_wait_seconds: float = 3.0
    transaction_timeout_seconds: float = 10.0
    cancellation_deadline_hours: int = 24

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes not in (15, 30, 60):
            raise ValueError(f"slot_step_minutes must be 15, 30, or 60, got {self.slot_step_minutes}")
        if self.lock_ttl_seconds <= 0:
            raise ValueError("lock_ttl_seconds must be positive")

    @classmethod
    def from_settings(cls, settings) -> "BookingConfig":
        return cls(
            availability_ttl_seconds=settings.availability_cache_ttl,
            refresh_threshold_seconds=settings.availability_refresh_threshold,
            lock_ttl_seconds=settings.lock_ttl_seconds,
            lock_wait_seconds=settings.lock_wait_seconds,
            transaction_timeout_seconds=settings.transaction_timeout_seconds,
            cancellation_deadline_hours=settings.cancellation_deadline_hours,
        )


@lru_cache
def get_booking_config() -> BookingConfig:
    """Get booking configuration built from application settings."""
    from ...config import settings

    return BookingConfig.from_settings(settings)


# ── Clock helpers ────────────────────────────────────────────────────────


def time_str_to_minutes(time_str: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    hour, minute = time_str.split(":")
    return int(hour) * 60 + int(minute)


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def slot_interval(start_time: str, duration_minutes: int) -> tuple[int, int]:
    """Half-open [start, end) interval in minutes for a slot."""
    start = time_str_to_minutes(start_time)
    return start, start + duration_minutes


def intervals_overlap(a: tuple[int, int], b: tuple[int, int]) -> bool:
    """Half-open overlap: [a1, a2) and [b1, b2) share an instant."""
    return a[0] < b[1] and b[0] < a[1]


def slot_start_datetime(target_date: date, start_time: str) -> datetime:
    """Naive datetime at which a slot starts."""
    return datetime.combine(target_date, datetime.min.time()) + timedelta(
        minutes=time_str_to_minutes(start_time)
    )
