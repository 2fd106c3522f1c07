"""
Cross-process mutex for periodic sweeps.

A sweep takes a Redis ``SET NX EX`` key before it starts, so two workers
(or a worker and a standalone scheduler) never run the same sweep at once.
If Redis cannot be reached the lock fails open: the sweep runs anyway, and
the conditional updates in the repository keep concurrent runs safe.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Iterator, Optional

from redis import Redis

from app.core.config import settings
from app.core.metrics import SWEEP_LOCK_OPERATIONS_TOTAL

logger = logging.getLogger(__name__)

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()


def _lock_key(name: str) -> str:
    return f"tutorly:lock:sweep:{name}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            client.ping()
        except Exception as exc:
            logger.warning("sweep_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def acquire_sweep_lock(name: str, ttl_s: int) -> bool:
    client = _get_sync_redis()
    if client is None:
        SWEEP_LOCK_OPERATIONS_TOTAL.labels(operation="acquire", outcome="redis_unavailable").inc()
        return True
    try:
        acquired = bool(client.set(_lock_key(name), str(time.time()), nx=True, ex=ttl_s))
    except Exception as exc:
        SWEEP_LOCK_OPERATIONS_TOTAL.labels(operation="acquire", outcome="error").inc()
        logger.warning(
            "sweep_lock_acquire_failed",
            extra={"sweep": name, "error": str(exc), "error_type": type(exc).__name__},
        )
        return True
    SWEEP_LOCK_OPERATIONS_TOTAL.labels(
        operation="acquire", outcome="success" if acquired else "blocked"
    ).inc()
    return acquired


def release_sweep_lock(name: str) -> None:
    client = _get_sync_redis()
    if client is None:
        SWEEP_LOCK_OPERATIONS_TOTAL.labels(operation="release", outcome="redis_unavailable").inc()
        return
    try:
        client.delete(_lock_key(name))
        SWEEP_LOCK_OPERATIONS_TOTAL.labels(operation="release", outcome="success").inc()
    except Exception as exc:
        SWEEP_LOCK_OPERATIONS_TOTAL.labels(operation="release", outcome="error").inc()
        logger.warning(
            "sweep_lock_release_failed",
            extra={"sweep": name, "error": str(exc), "error_type": type(exc).__name__},
        )


@contextmanager
def sweep_lock(name: str, ttl_s: Optional[int] = None) -> Iterator[bool]:
    """Yield True if this process owns the sweep, False if another holder does."""
    ttl = ttl_s if ttl_s is not None else settings.lesson_completion_lock_ttl_seconds
    acquired = acquire_sweep_lock(name, ttl_s=ttl)
    try:
        yield acquired
    finally:
        if acquired:
            release_sweep_lock(name)
