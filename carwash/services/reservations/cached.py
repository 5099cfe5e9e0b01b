# carwash/services/reservations/cached.py
"""
Caching decorator around ReservationService.

Availability, daily stats and confirmation-code lookups are served
cache-aside. Writes go straight to the inner service; after a successful
write every entry derived from the touched service/date is dropped, so
the next read recomputes from the ledger.

The cache only ever serves reads. Booking verification happens inside
the inner service's transaction against the live rows.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from ...models.tables import BookingStatus
from ...schemas.bookings import BookingCreate, BookingFilters, BookingRead, DailyStats, ServiceRead
from ...schemas.slots import TimeSlot
from ..cache import CacheKey, CacheService, WarmupItem
from ..slots.config import BookingConfig
from ..slots.invalidator import (
    BOOKINGS_TAG,
    STATS_TAG,
    availability_tags,
    date_tag,
    invalidate_availability,
    invalidate_booking_caches,
)
from .service import BookingOutcome, ReservationService

logger = logging.getLogger(__name__)

STATS_TTL = 900
BOOKING_LOOKUP_TTL = 300


def availability_key(service_id: int, target_date: date) -> CacheKey:
    return CacheKey("availability", service_id, f"{target_date.isoformat()}:simple")


class CachedReservationService:
    """Same operations as ReservationService, with cached reads."""

    def __init__(
        self,
        inner: ReservationService,
        cache: CacheService,
        config: BookingConfig | None = None,
    ):
        self.inner = inner
        self.cache = cache
        self.config = config or inner.config

    # ── Availability ─────────────────────────────────────────────────────

    def check_availability(
        self,
        target_date: date,
        service_id: int,
        skip_cache: bool = False,
    ) -> list[TimeSlot]:
        # Validation errors must not be cached, raise them before the lookup
        self.inner.validate_date(target_date)

        rows = self.cache.get(
            availability_key(service_id, target_date),
            lambda: self._load_availability(target_date, service_id),
            ttl=self.config.availability_ttl_seconds,
            tags=availability_tags(service_id, target_date),
            skip_cache=skip_cache,
            refresh_threshold=self.config.refresh_threshold_seconds,
            background_refresh=True,
        )
        return [TimeSlot.model_validate(row) for row in rows]

    def _load_availability(self, target_date: date, service_id: int) -> list[dict]:
        slots = self.inner.check_availability(target_date, service_id)
        return [slot.model_dump() for slot in slots]

    def invalidate_availability(
        self,
        service_id: int | None = None,
        dates: list[date] | None = None,
    ) -> tuple[list[str], int]:
        tags, deleted = invalidate_availability(self.cache, service_id, dates)
        logger.info(f"Availability invalidated: tags={tags}, deleted={deleted}")
        return tags, deleted

    # ── Writes ───────────────────────────────────────────────────────────

    def create_booking(self, request: BookingCreate) -> BookingOutcome:
        outcome = self.inner.create_booking(request)
        if outcome.ok:
            invalidate_booking_caches(self.cache, outcome.booking.service_id, [outcome.booking.date])
        return outcome

    def update_booking_status(
        self,
        booking_id: int,
        new_status: BookingStatus,
        admin_notes: Optional[str] = None,
        changed_by: Optional[str] = None,
    ) -> BookingOutcome:
        outcome = self.inner.update_booking_status(booking_id, new_status, admin_notes, changed_by)
        self._after_write(outcome)
        return outcome

    def cancel_booking(
        self,
        booking_id: int,
        reason: Optional[str] = None,
        customer_initiated: bool = False,
        changed_by: Optional[str] = None,
    ) -> BookingOutcome:
        outcome = self.inner.cancel_booking(booking_id, reason, customer_initiated, changed_by)
        self._after_write(outcome)
        return outcome

    def reschedule_booking(
        self,
        booking_id: int,
        new_date: date,
        new_start_time: str,
        changed_by: Optional[str] = None,
    ) -> BookingOutcome:
        outcome = self.inner.reschedule_booking(booking_id, new_date, new_start_time, changed_by)
        self._after_write(outcome)
        return outcome

    def _after_write(self, outcome: BookingOutcome) -> None:
        if not outcome.ok:
            return
        booking = outcome.booking
        dates = [booking.date]
        if outcome.previous_date and outcome.previous_date != booking.date:
            dates.append(outcome.previous_date)
        invalidate_booking_caches(self.cache, booking.service_id, dates)

    # ── Reads ────────────────────────────────────────────────────────────

    def get_booking(self, booking_id: int) -> BookingRead:
        return self.inner.get_booking(booking_id)

    def get_booking_by_confirmation_code(self, code: str) -> BookingRead:
        code = code.upper()
        row = self.cache.get(
            CacheKey("booking", "code", code),
            lambda: self.inner.get_booking_by_confirmation_code(code).model_dump(mode="json"),
            ttl=BOOKING_LOOKUP_TTL,
            tags=(BOOKINGS_TAG,),
        )
        return BookingRead.model_validate(row)

    def list_bookings(self, filters: BookingFilters | None = None) -> list[BookingRead]:
        return self.inner.list_bookings(filters)

    def list_active_services(self) -> list[ServiceRead]:
        return self.inner.list_active_services()

    def get_daily_stats(self, target_date: date) -> DailyStats:
        row = self.cache.get(
            CacheKey("stats", "daily", target_date.isoformat()),
            lambda: self.inner.get_daily_stats(target_date).model_dump(mode="json"),
            ttl=STATS_TTL,
            tags=(STATS_TAG, date_tag(target_date)),
        )
        return DailyStats.model_validate(row)

    # ── Cache management ─────────────────────────────────────────────────

    def warmup_caches(self, days: int = 7) -> int:
        """
        Precompute availability of every active service for the next days.

        Returns:
            Number of entries stored
        """
        today = self.inner.clock().date()
        items = []
        for service in self.inner.list_active_services():
            for offset in range(days):
                target_date = today + timedelta(days=offset)
                items.append(WarmupItem(
                    key=availability_key(service.id, target_date),
                    loader=lambda d=target_date, s=service.id: self._load_availability(d, s),
                    ttl=self.config.availability_ttl_seconds,
                    tags=tuple(availability_tags(service.id, target_date)),
                ))

        logger.info(f"Warming availability cache: {len(items)} entries over {days} days")
        return self.cache.warmup(items)

    def cache_health(self) -> dict:
        return self.cache.health_stats()
