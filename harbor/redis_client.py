# Shared Redis connection for checkout locks and rate limiting.
# Opt-in via REDIS_ENABLED; every caller must cope with get_redis() returning None.
import logging
import os
from typing import Optional

_logger = logging.getLogger("harbor.redis")

_TRUTHY = {"1", "true", "t", "yes", "y", "on"}

_client = None
# Set once a connection attempt has been made; a failed attempt is not retried in-process
_attempted = False


def is_redis_enabled() -> bool:
    return (os.getenv("REDIS_ENABLED") or "false").strip().lower() in _TRUTHY


def redis_url() -> str:
    return os.getenv("REDIS_URL", "redis://localhost:6379/0")


def get_redis():
    """
    Lazily connect and return the Redis client, or None.

    None means Redis is disabled, unreachable, or failed earlier in this process;
    locks and rate limits then fail open so checkout keeps working without Redis.
    """
    global _client, _attempted
    if not is_redis_enabled():
        return None
    if _client is not None or _attempted:
        return _client

    _attempted = True
    url = redis_url()
    try:
        import redis  # type: ignore

        client = redis.Redis.from_url(
            url,
            socket_timeout=0.25,
            socket_connect_timeout=0.25,
            retry_on_timeout=False,
            health_check_interval=0,
        )
        client.ping()
    except Exception as exc:
        _logger.warning("Redis unavailable at %s, continuing without it: %s", url, exc)
        return None

    _client = client
    _logger.info("Connected to Redis at %s", url)
    return _client


def reset_redis(client: Optional[object] = None) -> None:
    """Drop the cached connection (or install a given client); used by tests."""
    global _client, _attempted
    _client = client
    _attempted = client is not None
