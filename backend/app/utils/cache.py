"""Redis caching utilities for LeadDesk.

Provides a decorator and helpers for caching expensive reads (chiefly the
resolved permission snapshot) in Redis, shared across backend instances.
Redis is an accelerator only: every failure falls back to the uncached
call, and `settings.cache_enabled = False` bypasses it entirely.
"""

import functools
import hashlib
import inspect
import json
import logging
from datetime import date, datetime
from typing import Any, Callable, Optional

import redis.asyncio as redis
from pydantic import BaseModel

from app.config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get or create the shared Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=50,
        )
    return _redis_client


async def close_redis():
    """Close Redis connection (call on app shutdown)."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def cache_key(*args, **kwargs) -> str:
    """Deterministic hash of simple call arguments."""
    if not args and not kwargs:
        return "default"

    key_data = json.dumps({"args": args, "kwargs": kwargs}, sort_keys=True)
    return hashlib.md5(key_data.encode()).hexdigest()


def _serialize(result: Any) -> Any:
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if isinstance(result, list) and result and isinstance(result[0], BaseModel):
        return [item.model_dump(mode="json") for item in result]
    return result


def cached(
    ttl: int = 300,
    prefix: str = "cache",
    key_builder: Optional[Callable[..., str]] = None,
    model: Optional[type[BaseModel]] = None,
):
    """Decorator to cache async function results in Redis.

    Args:
        ttl: Time-to-live in seconds.
        prefix: Key namespace, used when no key_builder is given.
        key_builder: Builds the full key from the call's args/kwargs; may be
            a coroutine function (e.g. to read a version counter).
        model: Pydantic model to rebuild cached values into, so hits and
            misses return the same type.

    Example:
        @cached(ttl=300, key_builder=lambda db, user_id: f"perms:{user_id}",
                model=UserPermissions)
        async def cached_resolve(db, user_id): ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            if not settings.cache_enabled:
                return await func(*args, **kwargs)

            if key_builder:
                key = None
            else:
                # Positional args are usually injected sessions; keep simple kwargs only
                cache_kwargs = {}
                for k, v in kwargs.items():
                    if k.startswith("_"):
                        continue
                    if isinstance(v, (int, str, bool, float, type(None))):
                        cache_kwargs[k] = v
                    elif isinstance(v, (date, datetime)):
                        cache_kwargs[k] = v.isoformat()
                key = f"{prefix}:{func.__name__}:{cache_key(**cache_kwargs)}"

            try:
                if key is None:
                    # Async builders may read version counters from Redis
                    key = key_builder(*args, **kwargs)
                    if inspect.isawaitable(key):
                        key = await key
                redis_client = await get_redis()
                cached_value = await redis_client.get(key)
            except redis.RedisError as e:
                logger.warning(f"Redis error (falling back to uncached): {e}")
                return await func(*args, **kwargs)

            if cached_value:
                logger.debug(f"Cache HIT: {key}")
                data = json.loads(cached_value)
                return model.model_validate(data) if model else data

            logger.debug(f"Cache MISS: {key}")
            result = await func(*args, **kwargs)

            try:
                await redis_client.setex(key, ttl, json.dumps(_serialize(result)))
            except redis.RedisError as e:
                logger.warning(f"Failed to store cache key {key}: {e}")

            return result

        return wrapper

    return decorator


async def invalidate_cache(pattern: str) -> int:
    """Delete cache keys matching a pattern; returns how many were removed.

    Example:
        await invalidate_cache("perms:*")  # every user's permission snapshot
    """
    if not settings.cache_enabled:
        return 0
    try:
        redis_client = await get_redis()
        keys = []
        async for key in redis_client.scan_iter(match=pattern):
            keys.append(key)

        if keys:
            await redis_client.delete(*keys)
            logger.info(f"Invalidated {len(keys)} cache keys matching {pattern}")
        return len(keys)
    except redis.RedisError as e:
        logger.warning(f"Failed to invalidate cache: {e}")
        return 0


async def bump_version(key: str) -> int | None:
    """Increment a version counter that key builders fold into their keys.

    Entries written under the old version become unreachable even if a
    slow reader stores them after the bump. Returns the new version, or
    None when the cache is off or Redis failed.
    """
    if not settings.cache_enabled:
        return None
    try:
        redis_client = await get_redis()
        return await redis_client.incr(key)
    except redis.RedisError as e:
        logger.warning(f"Failed to bump cache version {key}: {e}")
        return None


async def get_versions(*keys: str) -> list[int]:
    """Current values of version counters (0 when unset).

    Raises redis.RedisError; inside a `cached` key builder that falls back
    to the uncached call.
    """
    redis_client = await get_redis()
    values = await redis_client.mget(*keys)
    return [int(value or 0) for value in values]
