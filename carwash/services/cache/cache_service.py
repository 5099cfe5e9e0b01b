# carwash/services/cache/cache_service.py
"""
Cache-aside service with tag-based invalidation.

Read path:  get(key, loader) → store hit? return : loader() → store → return
Write path: callers invalidate tags after a successful write.

Each tag carries a generation that every invalidation bumps. A loaded
value is stored only if none of its tags moved while the loader ran, so a
read that started before a write cannot re-cache pre-write data.

The cache is advisory. Every store failure degrades to calling the loader
directly, so an unreachable store costs latency, never correctness.
"""

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Union

from ...errors import CacheUnavailableError
from .store import CacheStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheKey:
    """Composite key: {prefix}:{id}[:{suffix}]."""
    prefix: str
    id: Union[str, int]
    suffix: Optional[str] = None

    def __str__(self) -> str:
        if self.suffix:
            return f"{self.prefix}:{self.id}:{self.suffix}"
        return f"{self.prefix}:{self.id}"


@dataclass
class WarmupItem:
    key: Union[str, CacheKey]
    loader: Callable[[], Any]
    ttl: Optional[int] = None
    tags: tuple[str, ...] = ()


class CacheService:
    """JSON cache-aside layer over a CacheStore."""

    def __init__(
        self,
        store: CacheStore,
        default_ttl: int = 300,
        serialize: Callable[[Any], str] = json.dumps,
        deserialize: Callable[[str], Any] = json.loads,
    ):
        self.store = store
        self.default_ttl = default_ttl
        self._serialize = serialize
        self._deserialize = deserialize

        self._stats_lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "errors": 0, "background_refreshes": 0}

        self._refreshing: set[str] = set()
        self._refresh_lock = threading.Lock()

        # tag → invalidation counter
        self._generations: dict[str, int] = {}
        self._generation_lock = threading.Lock()

    @staticmethod
    def build_key(key: Union[str, CacheKey]) -> str:
        return str(key)

    def _count(self, name: str) -> None:
        with self._stats_lock:
            self._stats[name] += 1

    def _current_generations(self, tags: tuple[str, ...]) -> tuple[int, ...]:
        return tuple(self._generations.get(tag, 0) for tag in tags)

    def _snapshot(self, tags: Iterable[str]) -> tuple[int, ...]:
        """Generations of tags, taken before a loader runs."""
        with self._generation_lock:
            return self._current_generations(tuple(tags))

    def _store_loaded(
        self,
        cache_key: str,
        value: Any,
        ttl: Optional[int],
        tags: tuple[str, ...],
        generations: tuple[int, ...],
    ) -> bool:
        """Store a loaded value unless one of its tags was invalidated meanwhile."""
        with self._generation_lock:
            if self._current_generations(tags) != generations:
                logger.debug(f"Cache SET skipped, invalidated during load: {cache_key}")
                return False
            return self.set(cache_key, value, ttl=ttl, tags=tags)

    # ── Read ─────────────────────────────────────────────────────────────

    def get(
        self,
        key: Union[str, CacheKey],
        loader: Callable[[], Any],
        ttl: Optional[int] = None,
        tags: Iterable[str] = (),
        skip_cache: bool = False,
        refresh_threshold: Optional[int] = None,
        background_refresh: bool = False,
    ) -> Any:
        """
        Return the cached value for key, computing it with loader on a miss.

        Args:
            key: cache key
            loader: computes the value; its result must be JSON-serializable
            ttl: lifetime in seconds (default_ttl if omitted)
            tags: invalidation tags attached to the entry
            skip_cache: bypass the cache completely (read and write)
            refresh_threshold: remaining TTL below which a hit is refreshed
            background_refresh: refresh stale-ish hits on a background thread
        """
        if skip_cache:
            return loader()

        cache_key = self.build_key(key)
        ttl = ttl or self.default_ttl
        tags = tuple(tags)

        try:
            raw = self.store.get(cache_key)
        except CacheUnavailableError as e:
            self._count("errors")
            logger.warning(f"Cache unavailable on get {cache_key}, computing directly: {e}")
            return loader()

        if raw is not None:
            self._count("hits")
            logger.debug(f"Cache HIT: {cache_key}")
            if background_refresh and refresh_threshold:
                self._maybe_refresh(cache_key, loader, ttl, tags, refresh_threshold)
            return self._deserialize(raw)

        self._count("misses")
        logger.debug(f"Cache MISS: {cache_key}")

        generations = self._snapshot(tags)
        value = loader()
        if value is not None:
            self._store_loaded(cache_key, value, ttl, tags, generations)
        return value

    # ── Write ────────────────────────────────────────────────────────────

    def set(
        self,
        key: Union[str, CacheKey],
        value: Any,
        ttl: Optional[int] = None,
        tags: Iterable[str] = (),
    ) -> bool:
        cache_key = self.build_key(key)
        ttl = ttl or self.default_ttl
        try:
            self.store.set(cache_key, self._serialize(value), ttl, tags)
        except CacheUnavailableError as e:
            self._count("errors")
            logger.warning(f"Cache set failed for {cache_key}: {e}")
            return False
        logger.debug(f"Cache SET: {cache_key} (TTL: {ttl}s)")
        return True

    def delete(self, key: Union[str, CacheKey]) -> bool:
        cache_key = self.build_key(key)
        try:
            return self.store.delete(cache_key) > 0
        except CacheUnavailableError as e:
            self._count("errors")
            logger.warning(f"Cache delete failed for {cache_key}: {e}")
            return False

    def invalidate_tags(self, tags: Iterable[str]) -> int:
        """
        Delete every entry carrying any of tags.

        Unknown tags are a no-op and repeated invalidation is safe.

        Returns:
            Number of deleted cache keys
        """
        tags = tuple(tags)
        with self._generation_lock:
            for tag in tags:
                self._generations[tag] = self._generations.get(tag, 0) + 1

        total = 0
        for tag in tags:
            try:
                deleted = self.store.invalidate_tag(tag)
            except CacheUnavailableError as e:
                self._count("errors")
                logger.warning(f"Cache invalidation failed for tag {tag}: {e}")
                continue
            if deleted:
                logger.info(f"Cache invalidated by tag {tag}: {deleted} keys")
            total += deleted
        return total

    # ── Warmup / refresh ─────────────────────────────────────────────────

    def warmup(
        self,
        items: Iterable[WarmupItem],
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> int:
        """
        Populate entries ahead of traffic. Failed items are logged and skipped.

        Returns:
            Number of entries stored
        """
        items = list(items)
        stored = 0
        for index, item in enumerate(items, start=1):
            tags = tuple(item.tags)
            generations = self._snapshot(tags)
            try:
                value = item.loader()
            except Exception:
                logger.exception(f"Cache warmup item failed: {item.key}")
                continue
            if value is not None and self._store_loaded(
                self.build_key(item.key), value, item.ttl, tags, generations
            ):
                stored += 1
            if on_progress:
                on_progress(index, len(items))

        logger.info(f"Cache warmup finished: {stored}/{len(items)} entries")
        return stored

    def _maybe_refresh(
        self,
        cache_key: str,
        loader: Callable[[], Any],
        ttl: int,
        tags: tuple[str, ...],
        refresh_threshold: int,
    ) -> None:
        """Start a background refresh when the entry is close to expiry."""
        try:
            remaining = self.store.ttl(cache_key)
        except CacheUnavailableError:
            return
        if remaining is None or remaining >= refresh_threshold:
            return

        with self._refresh_lock:
            if cache_key in self._refreshing:
                return
            self._refreshing.add(cache_key)

        thread = threading.Thread(
            target=self._refresh,
            args=(cache_key, loader, ttl, tags),
            name=f"cache-refresh:{cache_key}",
            daemon=True,
        )
        thread.start()

    def _refresh(
        self,
        cache_key: str,
        loader: Callable[[], Any],
        ttl: int,
        tags: tuple[str, ...],
    ) -> None:
        generations = self._snapshot(tags)
        try:
            value = loader()
            if value is not None:
                self._store_loaded(cache_key, value, ttl, tags, generations)
            self._count("background_refreshes")
            logger.debug(f"Background cache refresh completed: {cache_key}")
        except Exception:
            logger.exception(f"Background cache refresh failed: {cache_key}")
        finally:
            with self._refresh_lock:
                self._refreshing.discard(cache_key)

    # ── Health ───────────────────────────────────────────────────────────

    def health_stats(self) -> dict:
        with self._stats_lock:
            stats = dict(self._stats)
        lookups = stats["hits"] + stats["misses"]
        stats["hit_rate"] = round(stats["hits"] / lookups, 4) if lookups else 0.0
        return stats
