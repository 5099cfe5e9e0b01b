# carwash/dependencies.py
"""
Wiring of the reservation engine.

build_reservation_service assembles the production stack:
ReservationService (Redis locks + event notifier) wrapped by
CachedReservationService (Redis cache store). With cache_enabled=False
the bare service is returned.
"""

import logging
from functools import lru_cache

from fastapi import Request

from .config import Settings, settings
from .database import SessionLocal
from .redis_client import redis_client
from .services.cache import CacheService, RedisCacheStore
from .services.events import EventNotifier
from .services.reservations import (
    CachedReservationService,
    RedisLockProvider,
    ReservationService,
)
from .services.slots.config import BookingConfig

logger = logging.getLogger(__name__)


def build_reservation_service(app_settings: Settings = settings):
    config = BookingConfig.from_settings(app_settings)
    service = ReservationService(
        SessionLocal,
        lock_provider=RedisLockProvider(redis_client),
        notifier=EventNotifier(redis_client),
        config=config,
    )
    if not app_settings.cache_enabled:
        logger.info("Availability cache disabled")
        return service

    cache = CacheService(RedisCacheStore(redis_client), default_ttl=config.availability_ttl_seconds)
    return CachedReservationService(service, cache, config)


@lru_cache
def get_default_reservation_service():
    return build_reservation_service()


def get_reservation_service(request: Request):
    """FastAPI dependency: the service attached to the app, or the default one."""
    service = getattr(request.app.state, "reservation_service", None)
    if service is None:
        service = get_default_reservation_service()
    return service
