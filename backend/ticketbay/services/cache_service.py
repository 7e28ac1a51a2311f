"""
Redis caching service for catalog listings.

CACHING STRATEGY
================

What we cache:
  - Catalog listing responses (paginated, JSON-serialized)
  - Cache key pattern: "catalog:list:type={type}&page={page}&size={size}"

Why:
  - Browsing the catalog is the most frequent read
  - Listings change only when items are published/edited or when a booking
    moves a capacity count

Invalidation strategy:
  - On booking, cancellation, publish, resize or delete: delete every
    "catalog:list:*" key (SCAN + DELETE)
  - TTL-based expiry as safety net (REDIS_CACHE_TTL)

What we never cache:
  - Seat maps and capacity counters. A stale seat map shows a held seat as
    free; the hold would then fail, which is correct but a poor experience,
    and a stale counter is worse. These are always read from the database.

Redis is optional: when disabled or unreachable every call degrades to a
miss / no-op and the API keeps working.
"""

import json
from typing import Optional

import redis.asyncio as redis

from ticketbay.core.config import get_settings
from ticketbay.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

CATALOG_LIST_PREFIX = "catalog:list:"

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis connection. Returns None if Redis is disabled."""
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("redis_connected", url=settings.REDIS_URL)
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            _redis_client = None
            return None

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def _make_catalog_list_key(item_type: Optional[str], page: int, page_size: int) -> str:
    return f"{CATALOG_LIST_PREFIX}type={item_type or 'all'}&page={page}&size={page_size}"


async def get_cached_catalog(item_type: Optional[str], page: int, page_size: int) -> Optional[dict]:
    """Retrieve cached catalog list response."""
    client = await get_redis()
    if not client:
        return None

    key = _make_catalog_list_key(item_type, page, page_size)
    try:
        data = await client.get(key)
        if data:
            logger.debug("cache_hit", key=key)
            return json.loads(data)
        logger.debug("cache_miss", key=key)
    except Exception as e:
        logger.error("cache_get_error", key=key, error=str(e))

    return None


async def set_cached_catalog(
    item_type: Optional[str],
    page: int,
    page_size: int,
    data: dict,
) -> None:
    """Cache catalog list response with TTL."""
    client = await get_redis()
    if not client:
        return

    key = _make_catalog_list_key(item_type, page, page_size)
    try:
        await client.setex(key, settings.REDIS_CACHE_TTL, json.dumps(data, default=str))
        logger.debug("cache_set", key=key, ttl=settings.REDIS_CACHE_TTL)
    except Exception as e:
        logger.error("cache_set_error", key=key, error=str(e))


async def invalidate_catalog_cache() -> None:
    """
    Invalidate all cached catalog listings.
    Uses SCAN to find and delete all keys matching the prefix.
    """
    client = await get_redis()
    if not client:
        return

    try:
        deleted = 0
        async for key in client.scan_iter(match=f"{CATALOG_LIST_PREFIX}*", count=100):
            await client.delete(key)
            deleted += 1
        logger.info("cache_invalidated", keys_deleted=deleted)
    except Exception as e:
        logger.error("cache_invalidation_error", error=str(e))


async def get_cache_stats() -> dict:
    """Get Redis cache statistics for monitoring."""
    client = await get_redis()
    if not client:
        return {"status": "disabled"}

    try:
        info = await client.info("stats")
        keyspace = await client.info("keyspace")
        hits = info.get("keyspace_hits", 0)
        misses = info.get("keyspace_misses", 0)
        return {
            "status": "connected",
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
            "keys": keyspace,
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}
