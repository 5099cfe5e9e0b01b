"""Tests for CachedReservationService: cached reads, invalidation on writes."""

from datetime import timedelta

import pytest

from carwash.errors import BookingValidationError, TimeSlotUnavailableError
from carwash.models.tables import BookingStatus
from carwash.services.cache import CacheService
from carwash.services.reservations import CachedReservationService
from carwash.services.reservations.cached import availability_key
from carwash.services.slots.calculator import find_slot
from carwash.services.slots.invalidator import availability_tags

from conftest import BOOKING_DATE, NOW, FailingStore, make_request


def cached_key(service_id, target_date=BOOKING_DATE):
    return str(availability_key(service_id, target_date))


class TestCachedAvailability:

    def test_second_read_is_served_from_cache(self, cached_service, service_id, cache_store):
        first = cached_service.check_availability(BOOKING_DATE, service_id)
        second = cached_service.check_availability(BOOKING_DATE, service_id)

        assert first == second
        assert cache_store.get(cached_key(service_id)) is not None
        stats = cached_service.cache_health()
        assert stats["hits"] == 1
        assert stats["misses"] == 1

    def test_entry_carries_ttl_and_tags(self, cached_service, service_id, cache_store):
        cached_service.check_availability(BOOKING_DATE, service_id)
        key = cached_key(service_id)

        assert 0 < cache_store.ttl(key) <= 300
        assert key in cache_store.keys_for_tag(f"service:{service_id}")
        assert key in cache_store.keys_for_tag(f"date:{BOOKING_DATE.isoformat()}")
        assert key in cache_store.keys_for_tag("availability")

    def test_validation_errors_are_not_cached(self, cached_service, service_id, cache_store):
        with pytest.raises(BookingValidationError):
            cached_service.check_availability(NOW.date() - timedelta(days=1), service_id)

        assert len(cache_store) == 0

    def test_failing_cache_gives_correct_slots(self, reservation_service, service_id, config):
        service = CachedReservationService(reservation_service, CacheService(FailingStore()), config)
        reservation_service.create_booking(make_request(service_id, "10:00"))

        slots = service.check_availability(BOOKING_DATE, service_id)

        assert len(slots) == 20
        assert find_slot(slots, "10:00").available is False
        assert find_slot(slots, "10:30").available is True

    def test_failing_cache_does_not_block_bookings(self, reservation_service, service_id, config):
        service = CachedReservationService(reservation_service, CacheService(FailingStore()), config)

        assert service.create_booking(make_request(service_id, "10:00")).ok
        assert isinstance(service.create_booking(make_request(service_id, "10:00")).error, TimeSlotUnavailableError)


class TestInvalidationOnWrites:

    def test_booking_invalidates_availability(self, cached_service, service_id):
        cached_service.check_availability(BOOKING_DATE, service_id)

        assert cached_service.create_booking(make_request(service_id, "10:00")).ok

        slots = cached_service.check_availability(BOOKING_DATE, service_id)
        assert find_slot(slots, "10:00").available is False

    def test_conflict_does_not_invalidate(self, cached_service, service_id, cache_store):
        cached_service.create_booking(make_request(service_id, "10:00"))
        cached_service.check_availability(BOOKING_DATE, service_id)

        outcome = cached_service.create_booking(make_request(service_id, "10:00"))

        assert outcome.is_conflict
        assert cache_store.get(cached_key(service_id)) is not None

    def test_cancellation_frees_slot_in_cached_view(self, cached_service, service_id):
        booking = cached_service.create_booking(make_request(service_id, "10:00")).booking
        cached_service.update_booking_status(booking.id, BookingStatus.CONFIRMED)
        cached_service.check_availability(BOOKING_DATE, service_id)

        assert cached_service.cancel_booking(booking.id, reason="Rain").ok

        slots = cached_service.check_availability(BOOKING_DATE, service_id)
        assert find_slot(slots, "10:00").available is True

    def test_reschedule_invalidates_both_dates(self, cached_service, service_id, cache_store):
        booking = cached_service.create_booking(make_request(service_id, "10:00")).booking
        new_date = BOOKING_DATE + timedelta(days=2)
        cached_service.check_availability(BOOKING_DATE, service_id)
        cached_service.check_availability(new_date, service_id)

        assert cached_service.reschedule_booking(booking.id, new_date, "09:00").ok

        assert cache_store.get(cached_key(service_id)) is None
        assert cache_store.get(cached_key(service_id, new_date)) is None
        old = cached_service.check_availability(BOOKING_DATE, service_id)
        new = cached_service.check_availability(new_date, service_id)
        assert find_slot(old, "10:00").available is True
        assert find_slot(new, "09:00").available is False

    def test_write_drops_every_availability_entry(self, cached_service, service_ids, cache_store):
        service_id = service_ids["single"]
        other_date = BOOKING_DATE + timedelta(days=5)
        cached_service.check_availability(other_date, service_id)
        cached_service.check_availability(BOOKING_DATE, service_ids["double"])

        cached_service.create_booking(make_request(service_id, "10:00"))

        assert cache_store.get(cached_key(service_id, other_date)) is None
        assert cache_store.get(cached_key(service_ids["double"])) is None
        assert find_slot(cached_service.check_availability(other_date, service_id), "10:00").available is True

    def test_load_racing_a_write_is_not_cached(self, cached_service, reservation_service, service_id, cache_store):
        stale = reservation_service.check_availability(BOOKING_DATE, service_id)

        def load_then_lose_race():
            # The write commits and invalidates while this read is in flight
            assert cached_service.create_booking(make_request(service_id, "10:00")).ok
            return [slot.model_dump() for slot in stale]

        cached_service.cache.get(
            availability_key(service_id, BOOKING_DATE),
            load_then_lose_race,
            tags=availability_tags(service_id, BOOKING_DATE),
        )

        assert cache_store.get(cached_key(service_id)) is None
        slots = cached_service.check_availability(BOOKING_DATE, service_id)
        assert find_slot(slots, "10:00").available is False


class TestCachedReads:

    def test_daily_stats_refresh_after_booking(self, cached_service, service_id):
        assert cached_service.get_daily_stats(BOOKING_DATE).total == 0

        cached_service.create_booking(make_request(service_id, "10:00"))

        assert cached_service.get_daily_stats(BOOKING_DATE).total == 1

    def test_confirmation_code_lookup_tracks_status(self, cached_service, service_id):
        booking = cached_service.create_booking(make_request(service_id, "10:00")).booking
        code = booking.confirmation_code

        assert cached_service.get_booking_by_confirmation_code(code).status == BookingStatus.PENDING

        cached_service.update_booking_status(booking.id, BookingStatus.CONFIRMED)

        assert cached_service.get_booking_by_confirmation_code(code).status == BookingStatus.CONFIRMED


class TestCacheManagement:

    def test_manual_invalidation_by_service(self, cached_service, service_ids, cache_store):
        cached_service.check_availability(BOOKING_DATE, service_ids["single"])
        cached_service.check_availability(BOOKING_DATE, service_ids["double"])

        tags, deleted = cached_service.invalidate_availability(service_id=service_ids["single"])

        assert tags == [f"service:{service_ids['single']}"]
        assert deleted == 1
        assert cache_store.get(cached_key(service_ids["double"])) is not None

    def test_manual_invalidation_of_everything(self, cached_service, service_ids, cache_store):
        cached_service.check_availability(BOOKING_DATE, service_ids["single"])
        cached_service.check_availability(BOOKING_DATE, service_ids["double"])

        tags, deleted = cached_service.invalidate_availability()

        assert tags == ["availability"]
        assert deleted == 2
        assert cached_service.invalidate_availability() == (["availability"], 0)

    def test_warmup_precomputes_every_active_service(self, cached_service, service_ids, cache_store):
        stored = cached_service.warmup_caches(days=3)

        assert stored == 6
        for service_id in service_ids.values():
            for offset in range(3):
                assert cache_store.get(cached_key(service_id, NOW.date() + timedelta(days=offset))) is not None
