# src/cache/cache_factory.py — v3
"""Factory for cache store instantiation."""

from __future__ import annotations

from dealscope.cache.base_cache_store import BaseCacheStore
from dealscope.config.settings import Settings


def create_cache_store(settings: Settings | None = None) -> BaseCacheStore:
    """Instantiate the configured cache backend.

    Each call returns a new store; callers own its lifetime and close it.
    """
    settings = settings or Settings()

    if settings.cache_backend == "memory":
        from dealscope.cache.memory_store import MemoryCacheStore

        return MemoryCacheStore(
            max_entries=settings.cache_max_entries,
            default_ttl_s=settings.cache_default_ttl_s,
        )

    if settings.cache_backend == "redis":
        from dealscope.cache.redis_store import RedisCacheStore

        return RedisCacheStore(
            redis_url=settings.cache_redis_url,
            prefix=settings.cache_key_prefix,
            default_ttl_s=settings.cache_default_ttl_s,
        )

    raise ValueError(f"Unsupported cache backend: {settings.cache_backend!r}")
