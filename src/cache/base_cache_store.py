# src/cache/base_cache_store.py — v2
"""Abstract cache store interface.

Entries live in a namespace, optionally expire after a TTL and carry tags
for group invalidation (``deal:<id>`` drops everything cached for a deal).
Stores are constructed explicitly and passed to whoever needs them; there
is no process-wide instance. ``None`` is never cached.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from dealscope.cache.models import CacheStats

logger = logging.getLogger(__name__)


def deal_tag(deal_id: str) -> str:
    return f"deal:{deal_id}"


class BaseCacheStore(ABC):
    """Unified interface for cache storage backends."""

    @abstractmethod
    async def get(self, namespace: str, key: str) -> Any | None:
        """Return the cached value, or None when missing or expired."""

    @abstractmethod
    async def set(
        self,
        namespace: str,
        key: str,
        value: Any,
        ttl_s: float | None = None,
        tags: Iterable[str] = (),
    ) -> None:
        """Store a value. ``ttl_s=None`` uses the store's default TTL."""

    @abstractmethod
    async def has(self, namespace: str, key: str) -> bool:
        """True when a live entry exists. Does not count as a hit."""

    @abstractmethod
    async def delete(self, namespace: str, key: str) -> bool:
        """Remove one entry. Returns whether it existed."""

    @abstractmethod
    async def invalidate_namespace(self, namespace: str) -> int:
        """Drop every entry in a namespace. Returns the number removed."""

    @abstractmethod
    async def invalidate_by_tag(self, tag: str) -> int:
        """Drop every entry carrying ``tag``. Returns the number removed."""

    @abstractmethod
    async def stats(self) -> CacheStats:
        """Hit/miss counters and, where cheap, the entry count."""

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""

    async def invalidate_deal(self, deal_id: str) -> int:
        return await self.invalidate_by_tag(deal_tag(deal_id))

    async def get_or_compute(
        self,
        namespace: str,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        ttl_s: float | None = None,
        tags: Iterable[str] = (),
    ) -> Any:
        """Return the cached value or compute, store and return it.

        Errors raised by ``compute`` propagate and nothing is stored.
        """
        cached = await self.get(namespace, key)
        if cached is not None:
            return cached
        value = await compute()
        if value is not None:
            await self.set(namespace, key, value, ttl_s=ttl_s, tags=tags)
        else:
            logger.debug("Not caching None for %s:%s", namespace, key)
        return value
