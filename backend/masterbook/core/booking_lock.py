"""
Per-provider booking lock.

Validate-then-write booking sequences for one provider must not interleave.
Inside a process this is a per-provider ``threading.Lock``; when a Redis URL
is configured, a ``SET NX EX`` key additionally serializes worker processes.
Both waits are bounded: a request that cannot get the lock in time fails
with 409 instead of blocking.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Dict, Iterator, Optional

from redis import Redis

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings
from .exceptions import ConflictException
from .ulid_helper import generate_ulid

logger = logging.getLogger(__name__)

_LOCAL_LOCKS: Dict[str, threading.Lock] = {}
_LOCAL_LOCKS_GUARD = threading.Lock()

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()

_REDIS_POLL_SECONDS = 0.05

# Delete the key only while it still holds our token
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def _lock_key(provider_id: str) -> str:
    return f"masterbook:lock:provider:{provider_id}:booking"


def _local_lock(provider_id: str) -> threading.Lock:
    with _LOCAL_LOCKS_GUARD:
        lock = _LOCAL_LOCKS.get(provider_id)
        if lock is None:
            lock = threading.Lock()
            _LOCAL_LOCKS[provider_id] = lock
        return lock


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if not settings.booking_lock_redis_url:
        return None
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.booking_lock_redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("booking_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def _acquire_redis(client: Redis, provider_id: str, token: str, deadline: float) -> Optional[bool]:
    """
    Poll ``SET NX EX`` until acquired or the deadline passes.

    Returns:
        True when acquired, False on timeout, None when Redis failed
    """
    key = _lock_key(provider_id)
    while True:
        try:
            if client.set(key, token, nx=True, ex=settings.booking_lock_ttl_seconds):
                return True
        except Exception as exc:
            logger.warning(
                "booking_lock_redis_acquire_failed",
                extra={"provider_id": provider_id, "error": str(exc), "error_type": type(exc).__name__},
            )
            return None
        if time.monotonic() >= deadline:
            return False
        time.sleep(_REDIS_POLL_SECONDS)


def _release_redis(client: Redis, provider_id: str, token: str) -> None:
    key = _lock_key(provider_id)
    try:
        client.eval(_RELEASE_SCRIPT, 1, key, token)
    except Exception as exc:
        logger.warning(
            "booking_lock_redis_release_failed",
            extra={"provider_id": provider_id, "error": str(exc), "error_type": type(exc).__name__},
        )


def _lock_timeout(provider_id: str) -> ConflictException:
    prometheus_metrics.inc_lock_contention()
    logger.warning("booking_lock_timeout", extra={"provider_id": provider_id})
    return ConflictException(
        "Another booking for this master is in progress, please retry",
        code="BOOKING_IN_PROGRESS",
        details={"provider_id": provider_id},
    )


@contextmanager
def provider_booking_lock(provider_id: str, timeout: Optional[float] = None) -> Iterator[None]:
    """
    Hold the booking lock for ``provider_id`` for the duration of the block.

    Raises:
        ConflictException: If the lock is not obtained within ``timeout``
    """
    wait = settings.booking_lock_timeout_seconds if timeout is None else timeout
    deadline = time.monotonic() + wait
    local = _local_lock(provider_id)

    if not local.acquire(timeout=wait):
        raise _lock_timeout(provider_id)

    client = _get_sync_redis()
    token = generate_ulid()
    redis_held = False
    try:
        if client is not None:
            acquired = _acquire_redis(client, provider_id, token, deadline)
            if acquired is False:
                raise _lock_timeout(provider_id)
            redis_held = bool(acquired)
        yield
    finally:
        if redis_held and client is not None:
            _release_redis(client, provider_id, token)
        local.release()
