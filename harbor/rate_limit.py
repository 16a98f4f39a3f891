# Redis-backed fixed-window rate limiter for the money-moving endpoints.
# - Per-IP counters, keyed rl:v1:ip:{ip}:{scope}, with a TTL-based window.
# - Fail-open if Redis is unavailable so checkout keeps working in dev or outages.
import os
import logging
from typing import Callable, Literal, Optional

from fastapi import Request, HTTPException, status

from .redis_client import get_redis

logger = logging.getLogger("harbor.rate_limit")

Scope = Literal["checkout", "coupon", "payment"]

_DEFAULT_LIMITS = {
    "checkout": 30,  # RATE_LIMIT_CHECKOUT_PER_WINDOW
    "coupon": 10,  # RATE_LIMIT_COUPON_PER_WINDOW; keeps code guessing slow
    "payment": 5,  # RATE_LIMIT_PAYMENT_PER_WINDOW
}


def _to_int(val: Optional[str], default: int) -> int:
    try:
        return int(val) if val is not None else default
    except ValueError:
        return default


def _window_seconds() -> int:
    return _to_int(os.getenv("RATE_LIMIT_WINDOW_SECONDS"), 60)


def _limit_for_scope(scope: Scope) -> int:
    return _to_int(os.getenv(f"RATE_LIMIT_{scope.upper()}_PER_WINDOW"), _DEFAULT_LIMITS[scope])


def _client_ip(request: Request) -> str:
    # Remote address only; X-Forwarded-For is not trusted here
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit(scope: Scope) -> Callable[[Request], None]:
    """
    FastAPI dependency enforcing a per-IP cap for one scope.

    The first hit in a window sets the key's TTL; later hits share that expiry.
    Over the cap, responds 429 with a retry_after taken from the remaining TTL.
    """
    window = _window_seconds()
    limit = _limit_for_scope(scope)

    def _dependency(request: Request) -> None:
        r = get_redis()
        if r is None:
            return

        ip = _client_ip(request)
        key = f"rl:v1:ip:{ip}:{scope}"
        try:
            current = r.incr(key, amount=1)
            if current == 1:
                r.expire(key, window)
            if current > limit:
                ttl = r.ttl(key)
                retry_after = ttl if isinstance(ttl, int) and ttl > 0 else window
                detail = {
                    "error": "rate_limited",
                    "message": "Too many requests, try again shortly",
                    "scope": scope,
                    "limit": limit,
                    "window_seconds": window,
                    "retry_after": retry_after,
                }
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail=detail,
                    headers={"Retry-After": str(retry_after)},
                )
        except HTTPException:
            raise
        except Exception as exc:
            logger.warning("Rate limit fail-open (scope=%s, ip=%s): %s", scope, ip, exc)

    return _dependency
