"""
Run-once lease for the scheduled passes.

Celery beat fires every pass each minute regardless of whether the previous run
finished. Each pass takes a Redis lock named after itself before doing any work;
a run that cannot take it returns immediately.
"""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import redis

from app.core.config import PASS_LOCK_TIMEOUT_SECONDS, REDIS_URL

logger = logging.getLogger(__name__)

LOCK_PREFIX = "crm:pass-lock:"

_redis_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.Redis.from_url(REDIS_URL)
    return _redis_client


@contextmanager
def run_once(pass_name: str, timeout: int = PASS_LOCK_TIMEOUT_SECONDS, client: Optional[redis.Redis] = None) -> Iterator[bool]:
    """Yields True when this caller holds the lease for `pass_name`, False when another run does."""
    lock = (client or get_redis()).lock(f"{LOCK_PREFIX}{pass_name}", timeout=timeout, blocking=False)
    if not lock.acquire(blocking=False):
        logger.warning(f"[PASS_LOCK] '{pass_name}' is still running elsewhere, skipping this tick")
        yield False
        return

    try:
        yield True
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError:
            logger.warning(f"[PASS_LOCK] Lease for '{pass_name}' expired before the pass finished")
