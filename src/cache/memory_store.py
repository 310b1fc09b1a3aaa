# src/cache/memory_store.py — v1
"""In-process cache store (CACHE_BACKEND=memory) with TTL, tags and LRU eviction."""

from __future__ import annotations

import asyncio
import copy
import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Iterable
from typing import Any

from dealscope.cache.base_cache_store import BaseCacheStore
from dealscope.cache.models import CacheEntry, CacheStats

logger = logging.getLogger(__name__)


class MemoryCacheStore(BaseCacheStore):
    """LRU cache bounded by ``max_entries``.

    Reads refresh recency. Expired entries are dropped lazily on access.
    Values are deep-copied on the way in and out so callers cannot mutate
    what is cached.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        default_ttl_s: float | None = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._default_ttl_s = default_ttl_s
        self._clock = clock
        self._entries: OrderedDict[tuple[str, str], CacheEntry] = OrderedDict()
        self._tags: dict[str, set[tuple[str, str]]] = {}
        self._stats = CacheStats()
        self._lock = asyncio.Lock()

    async def get(self, namespace: str, key: str) -> Any | None:
        async with self._lock:
            entry = self._live_entry((namespace, key))
            if entry is None:
                self._stats.misses += 1
                return None
            self._entries.move_to_end((namespace, key))
            self._stats.hits += 1
            return copy.deepcopy(entry.value)

    async def set(
        self,
        namespace: str,
        key: str,
        value: Any,
        ttl_s: float | None = None,
        tags: Iterable[str] = (),
    ) -> None:
        if value is None:
            return
        ttl = self._default_ttl_s if ttl_s is None else ttl_s
        now = self._clock()
        entry = CacheEntry(
            namespace=namespace,
            key=key,
            value=copy.deepcopy(value),
            created_at=now,
            expires_at=now + ttl if ttl else None,
            tags=frozenset(tags),
        )
        async with self._lock:
            full_key = (namespace, key)
            self._remove(full_key)
            self._entries[full_key] = entry
            for tag in entry.tags:
                self._tags.setdefault(tag, set()).add(full_key)
            self._stats.sets += 1
            while len(self._entries) > self._max_entries:
                oldest = next(iter(self._entries))
                self._remove(oldest)
                self._stats.evictions += 1
                logger.debug("Evicted LRU cache entry %s:%s", *oldest)

    async def has(self, namespace: str, key: str) -> bool:
        async with self._lock:
            return self._live_entry((namespace, key)) is not None

    async def delete(self, namespace: str, key: str) -> bool:
        async with self._lock:
            return self._remove((namespace, key))

    async def invalidate_namespace(self, namespace: str) -> int:
        async with self._lock:
            keys = [k for k in self._entries if k[0] == namespace]
            for k in keys:
                self._remove(k)
        if keys:
            logger.debug("Invalidated %d entries in namespace '%s'", len(keys), namespace)
        return len(keys)

    async def invalidate_by_tag(self, tag: str) -> int:
        async with self._lock:
            keys = list(self._tags.get(tag, ()))
            for k in keys:
                self._remove(k)
            self._tags.pop(tag, None)
        if keys:
            logger.debug("Invalidated %d entries tagged '%s'", len(keys), tag)
        return len(keys)

    async def stats(self) -> CacheStats:
        async with self._lock:
            return self._stats.model_copy(update={"entries": len(self._entries)})

    async def close(self) -> None:
        async with self._lock:
            self._entries.clear()
            self._tags.clear()

    def _live_entry(self, full_key: tuple[str, str]) -> CacheEntry | None:
        entry = self._entries.get(full_key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            self._remove(full_key)
            return None
        return entry

    def _remove(self, full_key: tuple[str, str]) -> bool:
        entry = self._entries.pop(full_key, None)
        if entry is None:
            return False
        for tag in entry.tags:
            members = self._tags.get(tag)
            if members is not None:
                members.discard(full_key)
                if not members:
                    del self._tags[tag]
        return True
