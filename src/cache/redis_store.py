# src/cache/redis_store.py — v2
"""Redis-based cache store (CACHE_BACKEND=redis).

Suitable for multi-instance deployments. Values are stored as JSON with the
TTL applied through ``SET ... EX``. Namespace and tag membership are kept in
Redis sets so group invalidation does not need a key scan.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Iterable
from typing import Any

import redis.asyncio as redis

from dealscope.cache.base_cache_store import BaseCacheStore
from dealscope.cache.models import CacheStats

logger = logging.getLogger(__name__)


class RedisCacheStore(BaseCacheStore):
    """Redis-backed cache store.

    Args:
        client: An existing ``redis.asyncio.Redis``; built from ``redis_url``
            when omitted.
    """

    def __init__(
        self,
        redis_url: str = "",
        *,
        prefix: str = "dealscope:",
        default_ttl_s: float | None = 300,
        client: redis.Redis | None = None,
    ) -> None:
        if client is None:
            if not redis_url:
                raise ValueError("redis_url is required when no client is given")
            client = redis.Redis.from_url(redis_url, decode_responses=True)
        self._client = client
        self._prefix = prefix
        self._default_ttl_s = default_ttl_s
        self._stats = CacheStats()

    def _key(self, namespace: str, key: str) -> str:
        return f"{self._prefix}{namespace}:{key}"

    def _ns_index(self, namespace: str) -> str:
        return f"{self._prefix}__ns__:{namespace}"

    def _tag_index(self, tag: str) -> str:
        return f"{self._prefix}__tag__:{tag}"

    async def get(self, namespace: str, key: str) -> Any | None:
        raw = await self._client.get(self._key(namespace, key))
        if raw is None:
            self._stats.misses += 1
            return None
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Dropping undecodable cache entry %s:%s: %s", namespace, key, exc)
            await self.delete(namespace, key)
            self._stats.misses += 1
            return None
        self._stats.hits += 1
        return value

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
        full_key = self._key(namespace, key)
        payload = json.dumps(value, default=str)

        async with self._client.pipeline(transaction=True) as pipe:
            if ttl:
                pipe.set(full_key, payload, ex=max(1, math.ceil(ttl)))
            else:
                pipe.set(full_key, payload)
            pipe.sadd(self._ns_index(namespace), full_key)
            for tag in tags:
                pipe.sadd(self._tag_index(tag), full_key)
            await pipe.execute()
        self._stats.sets += 1

    async def has(self, namespace: str, key: str) -> bool:
        return bool(await self._client.exists(self._key(namespace, key)))

    async def delete(self, namespace: str, key: str) -> bool:
        full_key = self._key(namespace, key)
        removed = await self._client.delete(full_key)
        await self._client.srem(self._ns_index(namespace), full_key)
        return bool(removed)

    async def invalidate_namespace(self, namespace: str) -> int:
        return await self._drop_index(self._ns_index(namespace))

    async def invalidate_by_tag(self, tag: str) -> int:
        return await self._drop_index(self._tag_index(tag))

    async def _drop_index(self, index_key: str) -> int:
        members = await self._client.smembers(index_key)
        removed = 0
        if members:
            removed = await self._client.delete(*members)
        await self._client.delete(index_key)
        return int(removed)

    async def stats(self) -> CacheStats:
        return self._stats.model_copy()

    async def close(self) -> None:
        await self._client.aclose()
