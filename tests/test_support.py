"""Tests for event emission, ledger seeding, request schemas and settings."""

import json

import pytest
from pydantic import ValidationError
from redis.exceptions import ConnectionError as RedisConnectionError

from carwash.config import Settings
from carwash.models import BusinessHours, Services
from carwash.seed import DEFAULT_SERVICES, seed_defaults
from carwash.services.events import EventNotifier
from carwash.services.slots.config import BookingConfig

from conftest import make_request


class ListRedis:
    def __init__(self):
        self.lists: dict[str, list[str]] = {}

    def rpush(self, name, value):
        self.lists.setdefault(name, []).append(value)
        return len(self.lists[name])


class DownRedis:
    def rpush(self, name, value):
        raise RedisConnectionError("Connection refused")


class TestEventNotifier:

    def test_booking_created_event(self, reservation_service, service_id):
        redis = ListRedis()
        booking = reservation_service.create_booking(make_request(service_id)).booking

        assert EventNotifier(redis).notify_booking_created(booking) is True

        event = json.loads(redis.lists["events:p2p"][0])
        assert event["type"] == "booking_created"
        assert event["booking_id"] == booking.id
        assert event["confirmation_code"] == booking.confirmation_code
        assert event["date"] == booking.date.isoformat()
        assert "ts" in event

    def test_failures_never_raise(self, reservation_service, service_id):
        booking = reservation_service.create_booking(make_request(service_id)).booking

        assert EventNotifier(DownRedis()).notify_booking_status_changed(booking) is False


class TestSeed:

    def test_seed_is_idempotent(self, session_factory):
        with session_factory() as db:
            first = seed_defaults(db, "07:00", "20:00")
            second = seed_defaults(db)

            hours = db.query(BusinessHours).all()
            services = db.query(Services).count()

        assert first == {"business_hours": 7, "services": len(DEFAULT_SERVICES)}
        assert second == {"business_hours": 0, "services": 0}
        assert {(h.open_time, h.close_time) for h in hours} == {("07:00", "20:00")}
        assert services == len(DEFAULT_SERVICES)


class TestBookingSchema:

    def test_email_is_validated_and_lowercased(self):
        assert make_request(1, customer_email="Jane.Doe@Example.COM").customer_email == "jane.doe@example.com"

    @pytest.mark.parametrize("email", ["jane@", "jane doe@example.com", "@example.com", "jane@@example.com"])
    def test_malformed_email_is_rejected(self, email):
        with pytest.raises(ValidationError):
            make_request(1, customer_email=email)


class TestSettings:

    def test_booking_config_from_settings(self):
        settings = Settings(
            availability_cache_ttl=120,
            availability_refresh_threshold=30,
            lock_ttl_seconds=5,
            lock_wait_seconds=0.5,
            cancellation_deadline_hours=12,
        )

        config = BookingConfig.from_settings(settings)

        assert config.availability_ttl_seconds == 120
        assert config.refresh_threshold_seconds == 30
        assert config.lock_ttl_seconds == 5
        assert config.lock_wait_seconds == 0.5
        assert config.cancellation_deadline_hours == 12
        assert config.slot_step_minutes == 30

    def test_relative_sqlite_url_is_resolved(self):
        settings = Settings(database_url="sqlite:///./data/test.db")

        assert settings.resolved_database_url.startswith("sqlite:////")
        assert settings.resolved_database_url.endswith("/data/test.db")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CACHE_ENABLED", "false")
        monkeypatch.setenv("LOCK_WAIT_SECONDS", "1.5")

        settings = Settings()

        assert settings.cache_enabled is False
        assert settings.lock_wait_seconds == 1.5
