"""
View invalidation hook.

After a mutation the repositories announce which logical views went stale.
The call never fails from the caller's point of view: a broken cache only
means readers keep seeing the old payload until its TTL runs out.
"""
import logging
from typing import Protocol

from redis.exceptions import RedisError

from socialblog.clients import redis_client
from socialblog.telemetry import INVALIDATION_FAILURES_TOTAL

logger = logging.getLogger(__name__)

HOME = "/"
PROFILE = "/profile"


def profile_path(user_id: str) -> str:
    return f"/profile/{user_id}"


def post_path(post_id: str) -> str:
    return f"/post/{post_id}"


class ViewInvalidator(Protocol):
    async def invalidate(self, *paths: str) -> None:
        ...


class RedisViewInvalidator:
    """Drops the cached view hashes for each path."""

    async def invalidate(self, *paths: str) -> None:
        unique = list(dict.fromkeys(paths))
        try:
            dropped = await redis_client.drop_views(unique)
        except (RuntimeError, RedisError) as exc:
            INVALIDATION_FAILURES_TOTAL.inc()
            logger.warning("View invalidation failed for %s: %s", unique, exc)
            return
        logger.debug("Invalidated %d cached view(s) for %s", dropped, unique)

