# carwash/services/slots/invalidator.py
"""
Cache invalidation for availability.

Triggers (all over-invalidate on purpose, correctness before hit rate):
✓ Booking created → service:{id}, date:{d}, availability
✓ Booking cancelled / completed / any status change → same tags
✓ Booking rescheduled → tags of the old and of the new date
✓ Admin request → availability of a service and/or dates

Read models built on bookings (daily stats, booking lookups) also carry
the `stats` / `bookings` tags and are dropped with them.
"""

from datetime import date
from typing import Iterable

from ..cache import CacheService

AVAILABILITY_TAG = "availability"
STATS_TAG = "stats"
BOOKINGS_TAG = "bookings"


def service_tag(service_id: int) -> str:
    return f"service:{service_id}"


def date_tag(target_date: date) -> str:
    return f"date:{target_date.isoformat()}"


def availability_tags(service_id: int, target_date: date) -> list[str]:
    """Tags attached to a cached slot list."""
    return [service_tag(service_id), date_tag(target_date), AVAILABILITY_TAG]


def booking_write_tags(service_id: int, target_date: date) -> list[str]:
    """Tags to drop after any write to a booking of service on target_date."""
    return availability_tags(service_id, target_date) + [STATS_TAG, BOOKINGS_TAG]


def invalidate_booking_caches(
    cache: CacheService,
    service_id: int,
    dates: Iterable[date],
) -> int:
    """
    Invalidate everything derived from bookings of service on dates.

    Returns:
        Number of deleted cache keys
    """
    tags: list[str] = []
    for target_date in dates:
        for tag in booking_write_tags(service_id, target_date):
            if tag not in tags:
                tags.append(tag)
    return cache.invalidate_tags(tags)


def invalidate_availability(
    cache: CacheService,
    service_id: int | None = None,
    dates: list[date] | None = None,
) -> tuple[list[str], int]:
    """
    Manual invalidation of cached availability.

    Args:
        cache: cache service
        service_id: drop every entry of this service
        dates: drop every entry of these dates

    Both together drop the union. With neither, every availability
    entry is dropped.

    Returns:
        (tags used, number of deleted cache keys)
    """
    tags: list[str] = []
    if service_id is not None:
        tags.append(service_tag(service_id))
    if dates:
        tags.extend(date_tag(d) for d in dates)
    if not tags:
        tags.append(AVAILABILITY_TAG)
    return tags, cache.invalidate_tags(tags)

