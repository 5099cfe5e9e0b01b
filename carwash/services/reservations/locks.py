# carwash/services/reservations/locks.py
"""
Slot locks: mutual exclusion for one (date, time) slot while a booking
is being verified and written.

Key format: lock:booking:{date}:{HH:MM}

The lock is a fail-fast optimization and a cross-process aid. The database
transaction remains the final guard, so an expired lock is an expected
outcome, not an error.
"""

import logging
import threading
import time
import uuid
from datetime import date
from typing import Callable, Optional

from redis import Redis
from redis.exceptions import LockError, RedisError
from redis.lock import Lock

from ...errors import LockUnavailableError

logger = logging.getLogger(__name__)

KEY_PREFIX = "lock:booking"


def booking_lock_key(target_date: date, start_time: str) -> str:
    return f"{KEY_PREFIX}:{target_date.isoformat()}:{start_time}"


def new_lock_token() -> str:
    return uuid.uuid4().hex


class LockProvider:
    """Interface: atomic set-if-absent with expiry, plus owner-checked release."""

    def acquire(self, key: str, ttl_seconds: int, wait_seconds: float = 0.0) -> Optional[str]:
        """
        Take the lock for key.

        Args:
            key: lock key
            ttl_seconds: expiry of the lock (crash safety net)
            wait_seconds: how long to wait for a held lock; 0 = try once

        Returns:
            Owner token if this caller now holds the lock, None otherwise
        """
        raise NotImplementedError

    def release(self, key: str, token: str) -> None:
        """Best-effort release; a no-op unless token still owns key."""
        raise NotImplementedError


class RedisLockProvider(LockProvider):
    """
    Redis-backed lock using redis-py's Lock (SET NX PX with an owner token).

    Release only deletes the key while this owner still holds it, so a
    lock that expired and was taken by another attempt is left alone.
    """

    def __init__(self, redis: Redis):
        self.redis = redis
        # token → Lock
        self._held: dict[str, Lock] = {}
        self._guard = threading.Lock()

    def acquire(self, key: str, ttl_seconds: int, wait_seconds: float = 0.0) -> Optional[str]:
        lock = self.redis.lock(key, timeout=ttl_seconds, thread_local=False)
        token = new_lock_token()
        try:
            acquired = lock.acquire(
                blocking=wait_seconds > 0,
                blocking_timeout=wait_seconds if wait_seconds > 0 else None,
                token=token,
            )
        except RedisError as e:
            raise LockUnavailableError(str(e), key=key) from e

        if not acquired:
            return None
        with self._guard:
            self._held[token] = lock
        return token

    def release(self, key: str, token: str) -> None:
        with self._guard:
            lock = self._held.pop(token, None)
        if lock is None:
            return
        try:
            lock.release()
        except LockError:
            # LockNotOwnedError included: expired, possibly re-taken by someone else
            logger.info(f"Lock {key} expired before release")
        except RedisError as e:
            logger.warning(f"Failed to release lock {key}, it will expire: {e}")


class LocalLockProvider(LockProvider):
    """
    In-process lock map for single-instance deployments and tests.

    Same contract as the Redis provider: entries expire after their TTL,
    waiting is bounded and uses a condition variable, and release is a
    no-op for a token that no longer owns the key.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._cond = threading.Condition()
        # key → (token, expires_at)
        self._locks: dict[str, tuple[str, float]] = {}

    def acquire(self, key: str, ttl_seconds: int, wait_seconds: float = 0.0) -> Optional[str]:
        deadline = self._clock() + wait_seconds
        with self._cond:
            while True:
                now = self._clock()
                held = self._locks.get(key)
                if held is None or held[1] <= now:
                    token = new_lock_token()
                    self._locks[key] = (token, now + ttl_seconds)
                    return token
                if now >= deadline:
                    return None
                self._cond.wait(timeout=min(deadline, held[1]) - now)

    def release(self, key: str, token: str) -> None:
        with self._cond:
            held = self._locks.get(key)
            if held is None or held[0] != token:
                logger.info(f"Lock {key} expired before release")
                return
            del self._locks[key]
            self._cond.notify_all()

    def is_locked(self, key: str) -> bool:
        with self._cond:
            held = self._locks.get(key)
            return held is not None and held[1] > self._clock()
