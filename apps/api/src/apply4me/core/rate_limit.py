"""
Rate Limiting

Sliding-window limits for admin actions (deadline sweep, manual payment
verification). Uses the shared Redis client when connected and falls back to
a per-process in-memory window otherwise.
"""

import logging
import time

from fastapi import HTTPException, status

from apply4me.core.redis import get_redis_client

logger = logging.getLogger(__name__)

# key -> request timestamps inside the current window
_memory_store: dict[str, list[float]] = {}


class RateLimitExceeded(HTTPException):
    """HTTP 429 raised when a caller exceeds its action budget."""

    def __init__(self, limit: int, window_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "RATE_LIMIT_EXCEEDED",
                "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after_seconds": window_seconds,
            },
            headers={"Retry-After": str(window_seconds)},
        )


async def _check_redis(client, key: str, limit: int, window_seconds: int) -> bool:
    now = time.time()

    pipe = client.pipeline()
    pipe.zremrangebyscore(key, 0, now - window_seconds)
    pipe.zcard(key)
    pipe.zadd(key, {str(now): now})
    pipe.expire(key, window_seconds)
    results = await pipe.execute()

    return results[1] < limit


def _check_memory(key: str, limit: int, window_seconds: int) -> bool:
    now = time.time()
    window = [ts for ts in _memory_store.get(key, []) if ts > now - window_seconds]

    if len(window) >= limit:
        _memory_store[key] = window
        return False

    window.append(now)
    _memory_store[key] = window
    return True


async def check_rate_limit(key: str, limit: int, window_seconds: int) -> bool:
    """
    Record a request against ``key`` and report whether it is allowed.

    Args:
        key: Limit key, e.g. "admin:mark_expired:<admin_id>"
        limit: Maximum requests in the window
        window_seconds: Window length

    Returns:
        True if the request is within the limit
    """
    client = get_redis_client()

    if client is not None:
        try:
            return await _check_redis(client, key, limit, window_seconds)
        except Exception as e:
            logger.warning(f"Redis rate limit check failed, using memory: {e}")

    return _check_memory(key, limit, window_seconds)


async def enforce_admin_rate_limit(
    admin_id: object,
    action: str,
    limit: int,
    window_seconds: int,
) -> None:
    """
    Raise ``RateLimitExceeded`` when an admin exceeds the budget for ``action``.
    """
    key = f"admin:{action}:{admin_id}"

    if not await check_rate_limit(key, limit, window_seconds):
        logger.warning(
            f"Rate limit exceeded for admin {admin_id} on action '{action}': "
            f"{limit}/{window_seconds}s"
        )
        raise RateLimitExceeded(limit, window_seconds)


__all__ = [
    "RateLimitExceeded",
    "check_rate_limit",
    "enforce_admin_rate_limit",
]
