"""Shared test fixtures: temporary SQLite ledger, in-process lock and cache stores."""

from datetime import date, datetime

import pytest
from sqlalchemy.orm import sessionmaker

from carwash.database import create_db_engine, init_db
from carwash.errors import CacheUnavailableError
from carwash.models import BusinessHours, Services
from carwash.schemas.bookings import BookingCreate
from carwash.services.cache import CacheService, CacheStore, MemoryCacheStore
from carwash.services.reservations import (
    CachedReservationService,
    LocalLockProvider,
    ReservationService,
)
from carwash.services.slots.config import BookingConfig

# Tuesday morning; every test date below lies within the booking horizon
NOW = datetime(2030, 1, 1, 9, 0)
BOOKING_DATE = date(2030, 1, 10)


def fixed_clock() -> datetime:
    return NOW


class RecordingNotifier:
    """Stands in for EventNotifier, remembers what was emitted."""

    def __init__(self):
        self.events: list[tuple[str, int]] = []

    def notify_booking_created(self, booking):
        self.events.append(("created", booking.id))
        return True

    def notify_booking_status_changed(self, booking):
        self.events.append(("status_changed", booking.id))
        return True

    def notify_booking_rescheduled(self, booking):
        self.events.append(("rescheduled", booking.id))
        return True


class FailingStore(CacheStore):
    """Every operation fails the way an unreachable Redis does."""

    def get(self, key):
        raise CacheUnavailableError("down", key=key)

    def set(self, key, value, ttl, tags=()):
        raise CacheUnavailableError("down", key=key)

    def delete(self, *keys):
        raise CacheUnavailableError("down")

    def ttl(self, key):
        raise CacheUnavailableError("down", key=key)

    def keys_for_tag(self, tag):
        raise CacheUnavailableError("down", tag=tag)

    def invalidate_tag(self, tag):
        raise CacheUnavailableError("down", tag=tag)

    def ping(self):
        return False


def make_request(service_id: int, start_time: str = "10:00", target_date: date = BOOKING_DATE, **overrides) -> BookingCreate:
    data = {
        "service_id": service_id,
        "date": target_date,
        "start_time": start_time,
        "customer_name": "Jane Doe",
        "customer_email": "Jane@Example.com",
        "customer_phone": "+1 (555) 010-2030",
        "vehicle_type": "sedan",
        "license_plate": "ABC123",
    }
    data.update(overrides)
    return BookingCreate(**data)


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'ledger.db'}", busy_timeout=30)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def service_ids(session_factory):
    """
    Business hours 08:00-18:00 every day, plus two services:
    "single" (30 min, capacity 1) and "double" (60 min, capacity 2).
    """
    with session_factory() as db:
        for day in range(7):
            db.add(BusinessHours(day_of_week=day, open_time="08:00", close_time="18:00", is_open=1))
        single = Services(name="Basic wash", duration_minutes=30, price_cents=1500, capacity=1, is_active=1)
        double = Services(name="Full wash", duration_minutes=60, price_cents=3000, capacity=2, is_active=1)
        db.add_all([single, double])
        db.commit()
        return {"single": single.id, "double": double.id}


@pytest.fixture
def service_id(service_ids):
    return service_ids["single"]


@pytest.fixture
def config():
    return BookingConfig(lock_wait_seconds=10.0, transaction_timeout_seconds=30.0)


@pytest.fixture
def lock_provider():
    return LocalLockProvider()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def reservation_service(session_factory, service_ids, lock_provider, notifier, config):
    return ReservationService(
        session_factory,
        lock_provider=lock_provider,
        notifier=notifier,
        config=config,
        clock=fixed_clock,
    )


@pytest.fixture
def cache_store():
    return MemoryCacheStore()


@pytest.fixture
def cached_service(reservation_service, cache_store, config):
    cache = CacheService(cache_store, default_ttl=config.availability_ttl_seconds)
    return CachedReservationService(reservation_service, cache, config)
