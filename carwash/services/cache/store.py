# carwash/services/cache/store.py
"""
Key/value stores behind the cache-aside layer.

Both stores keep a tag index: tag → set of keys carrying it, so one event
("date X changed") can purge every related entry without enumerating keys.

RedisCacheStore
    value:  SET {key} {json} EX {ttl}
    tags:   Redis Set  cache:tag:{tag}  (members = cache keys)

MemoryCacheStore
    Single-process fallback with the same semantics. Tags are tracked per
    key, so invalidating one tag removes only that tag's keys.

Store failures surface as CacheUnavailableError; CacheService turns them
into a transparent cache.
"""

import logging
import threading
import time
from typing import Callable, Iterable, Optional, Set

from redis import Redis
from redis.exceptions import RedisError

from ...errors import CacheUnavailableError

logger = logging.getLogger(__name__)


class CacheStore:
    """Interface of a tag-aware key/value store with TTL."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str, ttl: int, tags: Iterable[str] = ()) -> None:
        raise NotImplementedError

    def delete(self, *keys: str) -> int:
        raise NotImplementedError

    def ttl(self, key: str) -> Optional[int]:
        """Remaining lifetime in seconds, None when the key is missing."""
        raise NotImplementedError

    def keys_for_tag(self, tag: str) -> Set[str]:
        raise NotImplementedError

    def invalidate_tag(self, tag: str) -> int:
        """Delete every key tagged with tag, then the tag itself."""
        raise NotImplementedError

    def ping(self) -> bool:
        raise NotImplementedError


class RedisCacheStore(CacheStore):
    """Redis storage wrapper: string values plus Set-based tag index."""

    TAG_PREFIX = "cache:tag"

    def __init__(self, redis: Redis, tag_ttl_seconds: int = 86400):
        self.redis = redis
        self.tag_ttl_seconds = tag_ttl_seconds

    def _tag_key(self, tag: str) -> str:
        return f"{self.TAG_PREFIX}:{tag}"

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, key: str) -> Optional[str]:
        try:
            value = self.redis.get(key)
        except RedisError as e:
            raise CacheUnavailableError(str(e), key=key) from e
        if isinstance(value, bytes):
            return value.decode()
        return value

    def ttl(self, key: str) -> Optional[int]:
        try:
            remaining = self.redis.ttl(key)
        except RedisError as e:
            raise CacheUnavailableError(str(e), key=key) from e
        # -2 = missing, -1 = no expiry
        if remaining is None or remaining == -2:
            return None
        return remaining

    def keys_for_tag(self, tag: str) -> Set[str]:
        try:
            members = self.redis.smembers(self._tag_key(tag))
        except RedisError as e:
            raise CacheUnavailableError(str(e), tag=tag) from e
        return {m.decode() if isinstance(m, bytes) else m for m in members}

    # ── Write ────────────────────────────────────────────────────────────

    def set(self, key: str, value: str, ttl: int, tags: Iterable[str] = ()) -> None:
        # Tag sets outlive every key they index
        tag_ttl = max(self.tag_ttl_seconds, ttl)
        try:
            pipe = self.redis.pipeline()
            pipe.set(key, value, ex=ttl)
            for tag in tags:
                tag_key = self._tag_key(tag)
                pipe.sadd(tag_key, key)
                pipe.expire(tag_key, tag_ttl)
            pipe.execute()
        except RedisError as e:
            raise CacheUnavailableError(str(e), key=key) from e

    # ── Delete ───────────────────────────────────────────────────────────

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return self.redis.delete(*keys)
        except RedisError as e:
            raise CacheUnavailableError(str(e), keys=list(keys)) from e

    def invalidate_tag(self, tag: str) -> int:
        tag_key = self._tag_key(tag)
        keys = self.keys_for_tag(tag)
        try:
            pipe = self.redis.pipeline()
            if keys:
                pipe.delete(*keys)
            pipe.delete(tag_key)
            results = pipe.execute()
        except RedisError as e:
            raise CacheUnavailableError(str(e), tag=tag) from e
        return results[0] if keys else 0

    def ping(self) -> bool:
        try:
            return bool(self.redis.ping())
        except RedisError:
            return False


class MemoryCacheStore(CacheStore):
    """In-process store for single-instance deployments and tests."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.RLock()
        # key → (value, expires_at, tags)
        self._entries: dict[str, tuple[str, float, frozenset[str]]] = {}
        self._tags: dict[str, set[str]] = {}

    def _live_entry(self, key: str):
        """Entry for key, dropping it first if it already expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry[1] <= self._clock():
            self._remove(key)
            return None
        return entry

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        for tag in entry[2]:
            keys = self._tags.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tags[tag]
        return True

    def _sweep(self) -> None:
        """Drop every expired entry, read or not."""
        now = self._clock()
        for key in [k for k, entry in self._entries.items() if entry[1] <= now]:
            self._remove(key)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live_entry(key)
            return entry[0] if entry else None

    def ttl(self, key: str) -> Optional[int]:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return None
            return int(entry[1] - self._clock())

    def keys_for_tag(self, tag: str) -> Set[str]:
        with self._lock:
            return set(self._tags.get(tag, ()))

    def set(self, key: str, value: str, ttl: int, tags: Iterable[str] = ()) -> None:
        with self._lock:
            self._sweep()
            self._remove(key)
            tag_set = frozenset(tags)
            self._entries[key] = (value, self._clock() + ttl, tag_set)
            for tag in tag_set:
                self._tags.setdefault(tag, set()).add(key)

    def delete(self, *keys: str) -> int:
        with self._lock:
            return sum(1 for key in keys if self._remove(key))

    def invalidate_tag(self, tag: str) -> int:
        with self._lock:
            self._sweep()
            keys = self._tags.pop(tag, set())
            return sum(1 for key in keys if self._remove(key))

    def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
