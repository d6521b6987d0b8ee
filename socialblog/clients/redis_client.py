"""
Redis client wrapper.

Responsibilities:
  • Rendered views: HASH keyed by view:{path}
                      field = query variant (e.g. "page=1&limit=10")
                      value = JSON payload served for that variant

Read endpoints fill the hashes; repositories drop whole hashes through the
view invalidator after a mutation, so every variant of a path goes stale at
once. The cache is best-effort: any Redis failure is logged and treated as a
miss.
"""
import json
import logging
from typing import Any, Iterable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from socialblog.config import settings

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None

VIEW_KEY = "view:{path}"


async def init_redis() -> None:
    global _redis
    _redis = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        decode_responses=True,
    )
    await _redis.ping()
    logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
    _redis = None


def set_redis(client: Optional[aioredis.Redis]) -> None:
    """Install an already-built client (tests, scripts)."""
    global _redis
    _redis = client


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialised; call init_redis() at startup")
    return _redis


def view_key(path: str) -> str:
    return VIEW_KEY.format(path=path)


# ─────────────────────── Rendered View Cache (HASH) ───────────────────────

async def get_cached_view(path: str, variant: str = "") -> Optional[Any]:
    try:
        raw = await get_redis().hget(view_key(path), variant)
    except (RuntimeError, RedisError) as exc:
        logger.warning("View cache read failed (path=%s): %s", path, exc)
        return None
    if raw is None:
        return None
    return json.loads(raw)


async def cache_view(path: str, payload: Any, variant: str = "") -> None:
    try:
        r = get_redis()
        pipe = r.pipeline()
        pipe.hset(view_key(path), variant, json.dumps(payload))
        pipe.expire(view_key(path), settings.view_cache_ttl)
        await pipe.execute()
    except (RuntimeError, RedisError) as exc:
        logger.warning("View cache write failed (path=%s): %s", path, exc)


async def drop_views(paths: Iterable[str]) -> int:
    """Delete the cached hashes for ``paths``; returns how many existed."""
    keys = [view_key(p) for p in paths]
    if not keys:
        return 0
    return await get_redis().delete(*keys)
