"""
Hybrid in-memory + Redis rate limiting for the public token endpoints

Counters live in process memory and are synced to Redis every few seconds,
so most checks cost no Redis round trip.
"""

import logging
import os
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request, status

from .config import RATE_LIMIT_ENABLED

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None

# {key: {'count': int, 'reset_time': int, 'last_redis_sync': int}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()

MEMORY_CACHE_SYNC_INTERVAL = 10
MEMORY_CACHE_CLEANUP_INTERVAL = 60
last_cleanup_time = 0


def _redis_url() -> str:
    url = os.getenv("REDIS_URL")
    if url:
        return url
    host = os.getenv("REDIS_HOST", "localhost")
    port = os.getenv("REDIS_PORT", "6379")
    db = os.getenv("REDIS_DB", "0")
    password = os.getenv("REDIS_PASSWORD")
    scheme = "rediss" if os.getenv("REDIS_SSL", "false").lower() == "true" else "redis"
    auth = f":{password}@" if password else ""
    return f"{scheme}://{auth}{host}:{port}/{db}"


def get_redis_client() -> redis.Redis:
    """Get or create the shared Redis client"""
    global redis_client

    if redis_client is None:
        url = _redis_url()
        masked = url.split("@")[-1] if "@" in url else url
        logger.info(f"📡 Connecting to Redis for rate limiting: {masked}")
        try:
            client = redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=15,
                socket_timeout=30,
                retry_on_timeout=True,
                health_check_interval=30,
                max_connections=20,
            )
            client.ping()
        except redis.RedisError as e:
            logger.error(f"❌ Failed to connect to Redis: {e}")
            raise
        redis_client = client
        logger.info("Redis connected successfully")

    return redis_client


def cleanup_expired_cache():
    """Remove expired entries from memory cache"""
    global last_cleanup_time
    current_time = int(time.time())

    if current_time - last_cleanup_time < MEMORY_CACHE_CLEANUP_INTERVAL:
        return

    with cache_lock:
        expired_keys = [k for k, v in memory_cache.items() if current_time >= v.get("reset_time", 0)]
        for k in expired_keys:
            del memory_cache[k]

    if expired_keys:
        logger.debug(f"🧹 Cleaned up {len(expired_keys)} expired rate limit entries")
    last_cleanup_time = current_time


def _load_entry(key: str, window_seconds: int, client: redis.Redis, current_time: int) -> dict:
    """Seed a memory entry from Redis so limits survive process restarts"""
    try:
        redis_count = client.get(key)
        redis_ttl = client.ttl(key)
    except redis.RedisError as e:
        logger.warning(f"⚠️ Failed to load from Redis, using memory only: {e}")
        redis_count, redis_ttl = None, -1

    if redis_count and redis_ttl > 0:
        return {"count": int(redis_count), "reset_time": current_time + redis_ttl, "last_redis_sync": current_time}
    return {"count": 0, "reset_time": current_time + window_seconds, "last_redis_sync": current_time}


def check_rate_limit(key: str, limit: int, window_seconds: int, client: redis.Redis) -> tuple[bool, int, int]:
    """Fixed-window check. Returns (is_allowed, current_count, ttl_seconds)."""
    current_time = int(time.time())
    cleanup_expired_cache()

    with cache_lock:
        entry = memory_cache.get(key)
        if entry is None:
            entry = memory_cache[key] = _load_entry(key, window_seconds, client, current_time)

        if current_time >= entry["reset_time"]:
            entry.update(count=0, reset_time=current_time + window_seconds, last_redis_sync=0)

        is_allowed = entry["count"] < limit
        if is_allowed:
            entry["count"] += 1

        if current_time - entry.get("last_redis_sync", 0) >= MEMORY_CACHE_SYNC_INTERVAL:
            try:
                client.set(key, entry["count"], ex=window_seconds)
                entry["last_redis_sync"] = current_time
            except redis.RedisError as e:
                logger.warning(f"⚠️ Failed to sync to Redis: {e}")

        return is_allowed, entry["count"], max(0, entry["reset_time"] - current_time)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def rate_limit_dependency(request: Request, limit: int, window_seconds: int, key_prefix: str):
    """Per-IP (and per-token when the route has one) limit, fail closed when Redis is down"""
    if not RATE_LIMIT_ENABLED:
        return

    token = request.path_params.get("token")
    key = f"{key_prefix}:{client_ip(request)}" + (f":{token}" if token else "")

    try:
        is_allowed, current_count, ttl = check_rate_limit(key, limit, window_seconds, get_redis_client())
    except redis.RedisError as e:
        logger.error(f"❌ Rate limiting error: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limiting service temporarily unavailable",
        ) from e

    if not is_allowed:
        logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after": ttl,
            },
            headers={"Retry-After": str(ttl)},
        )

    request.state.rate_limit_remaining = limit - current_count


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit"):
    """
    Build a rate limit dependency:

        request_alternate_limit = create_rate_limiter(limit=10, window_seconds=3600, key_prefix="request_alternate")

        @router.post("/i/{token}/request-alternate")
        async def request_alternate(..., _: None = Depends(request_alternate_limit)):
            ...
    """

    async def rate_limiter(request: Request):
        return await rate_limit_dependency(request, limit, window_seconds, key_prefix)

    return rate_limiter
