"""
Redis client wrapper.

Responsibilities:
  • Interest profiles — HASH keyed by it:{user_id}
                        field = tag, value = affinity weight (float)

Profiles are created lazily on the first interaction that touches a tag and
are never expired: the weight cap is the only bound on their growth.
The interest-profile updater writes them; the interest candidate
generator reads them during feed composition.
"""
import logging
from typing import Callable, Optional

import redis.asyncio as aioredis
from redis.exceptions import WatchError

from bulletin_feed.config import settings

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None


async def init_redis() -> None:
    global _redis
    _redis = aioredis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        decode_responses=True,
    )
    await _redis.ping()
    logger.info("Redis connected at %s:%s", settings.redis_host, settings.redis_port)


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialised — call init_redis() at startup")
    return _redis


# ─────────────────────── Interest Profile (HASH) ──────────────────────────

PROFILE_KEY = "it:{user_id}"


async def get_interest_profile(user_id: str) -> dict[str, float]:
    """Return the user's tag → weight map ({} when no profile exists yet)."""
    r = get_redis()
    raw = await r.hgetall(PROFILE_KEY.format(user_id=user_id))
    return {tag: float(weight) for tag, weight in raw.items()}


async def save_interest_profile(user_id: str, weights: dict[str, float]) -> None:
    """Write (merge) tag weights into the user's profile."""
    if not weights:
        return
    r = get_redis()
    await r.hset(
        PROFILE_KEY.format(user_id=user_id),
        mapping={tag: str(weight) for tag, weight in weights.items()},
    )


async def update_interest_weights(
    user_id: str,
    tags: list[str],
    update: Callable[[dict[str, float]], dict[str, float]],
) -> dict[str, float]:
    """
    Read-modify-write of the weights of tags, safe against concurrent writers.

    update() gets the current weights (missing tags read as 0) and returns the
    new ones. The profile is WATCHed between the read and the MULTI/EXEC
    write; if another writer touched it in between, the whole step reruns on
    fresh values.
    """
    if not tags:
        return {}
    r = get_redis()
    key = PROFILE_KEY.format(user_id=user_id)
    async with r.pipeline(transaction=True) as pipe:
        while True:
            try:
                await pipe.watch(key)
                values = await pipe.hmget(key, tags)
                current = {
                    tag: float(v) if v is not None else 0.0
                    for tag, v in zip(tags, values)
                }
                updated = update(current)
                pipe.multi()
                pipe.hset(key, mapping={tag: str(w) for tag, w in updated.items()})
                await pipe.execute()
                return updated
            except WatchError:
                logger.debug("Profile %s changed during update, retrying", key)
