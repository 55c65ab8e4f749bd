"""Redis client for email deduplication and per-user rate limiting

Every cache call goes through try_or_default(): the cache is an optimisation
for suppressing repeats, so when Redis is slow or down we fail OPEN and keep
sending.
"""
import logging
import time
from typing import Any, Callable, Optional, TypeVar

import redis

from mailflow.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Lazy initialization - no connection at import time
_client = None

SENT_KEY_PREFIX = "email:sent:"
RATE_LIMIT_KEY_PREFIX = "ratelimit:"

# Increment a counter and set its TTL only when the key is new (fixed window)
INCREMENT_WITH_TTL_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return count
"""


def get_redis_client():
    """Get or create the cache Redis client (lazy initialization)

    This prevents connection attempts during import, allowing mocks to be applied first.
    """
    global _client
    if _client is None:
        _client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_CONNECT_TIMEOUT
        )
    return _client


def try_or_default(operation: Callable[[], T], default: T, description: str) -> T:
    """Run a cache operation, returning default if the cache is unavailable"""
    try:
        return operation()
    except (redis.RedisError, OSError) as e:
        logger.warning(f"Redis unavailable during {description}, failing open: {e}")
        return default


def get_value(key: str) -> Optional[str]:
    return get_redis_client().get(key)


def set_value_with_ttl(key: str, value: Any, ttl_seconds: int) -> None:
    get_redis_client().setex(key, ttl_seconds, value)


def increment_with_ttl(key: str, ttl_seconds: int) -> int:
    """Atomically increment a counter, setting the TTL on the first increment"""
    count = get_redis_client().eval(INCREMENT_WITH_TTL_SCRIPT, 1, key, ttl_seconds)
    return int(count)


def _sent_key(user_id: str, email_type: str) -> str:
    return f"{SENT_KEY_PREFIX}{user_id}:{email_type}"


def was_email_sent_recently(user_id: str, email_type: str, window_hours: Optional[int] = None) -> bool:
    """Check the dedup marker for (user, email type)

    Returns False when the cache is unavailable.
    """
    window_hours = window_hours or settings.DEDUP_WINDOW_HOURS

    def check() -> bool:
        last_sent = get_value(_sent_key(user_id, email_type))
        if not last_sent:
            return False
        try:
            last_sent_ms = int(last_sent)
        except ValueError:
            logger.warning(f"Ignoring corrupt dedup marker for {user_id}/{email_type}: {last_sent!r}")
            return False
        return (time.time() * 1000) - last_sent_ms < window_hours * 60 * 60 * 1000

    return try_or_default(check, False, f"dedup check for {user_id}/{email_type}")


def mark_email_as_sent(user_id: str, email_type: str, ttl_hours: Optional[int] = None) -> None:
    """Write the dedup marker (best effort)"""
    ttl_hours = ttl_hours or settings.DEDUP_WINDOW_HOURS
    try_or_default(
        lambda: set_value_with_ttl(_sent_key(user_id, email_type), str(int(time.time() * 1000)), ttl_hours * 60 * 60),
        None,
        f"dedup marker write for {user_id}/{email_type}"
    )


def check_rate_limit(identifier: str, limit: Optional[int] = None, window_seconds: Optional[int] = None) -> dict:
    """Count a send against a fixed-window rate limit

    Returns:
        dict with 'allowed' and 'remaining'. Allowed when the cache is unavailable.
    """
    limit = limit or settings.RATE_LIMIT_MAX_EMAILS
    window_seconds = window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS
    key = f"{RATE_LIMIT_KEY_PREFIX}{identifier}"

    current = try_or_default(lambda: increment_with_ttl(key, window_seconds), None, f"rate limit check for {identifier}")
    if current is None:
        return {"allowed": True, "remaining": limit}

    return {"allowed": current <= limit, "remaining": max(0, limit - current)}


def get_rate_limit_count(identifier: str) -> int:
    """Get current rate limit count"""
    count = try_or_default(lambda: get_value(f"{RATE_LIMIT_KEY_PREFIX}{identifier}"), None, "rate limit read")
    return int(count) if count else 0


def ping() -> bool:
    """Check cache connectivity"""
    return try_or_default(lambda: bool(get_redis_client().ping()), False, "ping")
