"""
Redis client wrapper.

Responsibilities:
  • Pair score cache  — STRING (JSON) keyed by
                        tss:pair:{a}@{gen_a}:{b}@{gen_b}:{category}
                        with a < b (canonical, order-independent)
  • Generations       — STRING (int) keyed by tss:gen:{user_id}:{category}
                        INCR on every note write of that user in that
                        category; old pair keys become unreachable and
                        expire through their TTL.
  • Batch lock        — STRING keyed by tss:batch:lock (SET NX EX)

Matching service reads/writes the score cache; the note-event worker and the
/internal/note-events hook bump generations.
"""
import json
import logging
from typing import Optional

import redis.asyncio as aioredis

from taste_api.config import settings

logger = logging.getLogger(__name__)

_redis: Optional[aioredis.Redis] = None

BATCH_LOCK_KEY = "tss:batch:lock"


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


def set_redis(client: Optional[aioredis.Redis]) -> None:
    """Install an already-built client (workers, tests)."""
    global _redis
    _redis = client


def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialised — call init_redis() at startup")
    return _redis


def canonical_pair(user_a: str, user_b: str) -> tuple[str, str]:
    return (user_a, user_b) if user_a <= user_b else (user_b, user_a)


def _gen_key(user_id: str, category: str) -> str:
    return f"tss:gen:{user_id}:{category}"


# ─────────────────────── Pair Score Cache ─────────────────────────────────

async def pair_key(user_a: str, user_b: str, category: str) -> str:
    """
    Resolve the cache key of a pair under the current generations.
    Resolve once per computation so a result computed before an invalidation
    is written under the orphaned key, never under the fresh one.
    """
    r = get_redis()
    a, b = canonical_pair(user_a, user_b)
    gen_a, gen_b = await r.mget(_gen_key(a, category), _gen_key(b, category))
    return f"tss:pair:{a}@{gen_a or 0}:{b}@{gen_b or 0}:{category}"


async def get_pair_score(key: str) -> dict | None:
    r = get_redis()
    raw = await r.get(key)
    if raw:
        return json.loads(raw)
    return None


async def set_pair_score(key: str, payload: dict, ttl: int | None = None) -> None:
    r = get_redis()
    await r.set(key, json.dumps(payload), ex=ttl or settings.tss_cache_ttl)


async def invalidate_user_category(user_id: str, category: str) -> int:
    """Orphan every cached pair score of `user_id` in `category`."""
    r = get_redis()
    return await r.incr(_gen_key(user_id, category))


# ─────────────────────── Batch Lock ───────────────────────────────────────

async def acquire_batch_lock(ttl: int | None = None) -> bool:
    r = get_redis()
    return bool(await r.set(BATCH_LOCK_KEY, "1", ex=ttl or settings.tss_batch_lock_ttl, nx=True))


async def release_batch_lock() -> None:
    r = get_redis()
    await r.delete(BATCH_LOCK_KEY)
