# Per-listing checkout lock backed by Redis SET NX PX.
# Held from the final availability check through booking insertion so two guests
# cannot both pay for the same nights; fails open when Redis is down.
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Iterator
from uuid import uuid4

from .payments import PAYPAL_TIMEOUT_SECONDS
from .redis_client import get_redis

logger = logging.getLogger("harbor.locks")

# Settlement makes up to three sequential PayPal calls while holding the lock
# (token refresh, capture, payout), each with an httpx timeout of PAYPAL_TIMEOUT_SECONDS.
PROCESSOR_CALLS_PER_CHECKOUT = 3
LOCK_MARGIN_SECONDS = 15


def default_checkout_lock_ttl_ms(timeout_seconds: float = PAYPAL_TIMEOUT_SECONDS) -> int:
    return int((PROCESSOR_CALLS_PER_CHECKOUT * timeout_seconds + LOCK_MARGIN_SECONDS) * 1000)


CHECKOUT_LOCK_TTL_MS = int(os.getenv("CHECKOUT_LOCK_TTL_MS") or default_checkout_lock_ttl_ms())

# Delete the key only if it still holds our token
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""


@contextmanager
def redis_try_lock(key: str, ttl_ms: int = 5000) -> Iterator[bool]:
    """
    Best-effort distributed lock.

    Yields True when acquired or when Redis is unavailable (fail-open), False
    when another process holds the key. Release is token-checked so an expired
    lock re-acquired by someone else is never deleted by us.
    """
    r = get_redis()
    if r is None:
        yield True
        return

    token = uuid4().hex
    try:
        acquired = bool(r.set(key, token, nx=True, px=ttl_ms))
    except Exception as exc:
        logger.warning("Lock acquire failed open (key=%s): %s", key, exc)
        yield True
        return

    try:
        yield acquired
    finally:
        if acquired:
            try:
                r.eval(_RELEASE_SCRIPT, 1, key, token)
            except Exception as exc:
                # TTL will clear it
                logger.debug("Lock release failed (key=%s): %s", key, exc)


def checkout_lock_key(listing_id: int) -> str:
    return f"lock:checkout:listing:{listing_id}"


@contextmanager
def listing_checkout_lock(listing_id: int, ttl_ms: int = CHECKOUT_LOCK_TTL_MS) -> Iterator[bool]:
    with redis_try_lock(checkout_lock_key(listing_id), ttl_ms=ttl_ms) as locked:
        yield locked
