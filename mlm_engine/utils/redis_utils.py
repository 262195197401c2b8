"""
Redis helpers for the batch jobs.

The broker talks to Redis on its own; this module only adds a run lock that
keeps two workers from running the same batch at once.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from loguru import logger

from mlm_engine.config.settings import settings

LOCK_PREFIX = "mlm_engine:lock:"


def get_redis_client() -> redis.Redis:
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password,
        db=settings.redis_db,
        decode_responses=True,
    )


def get_redis_url_masked() -> str:
    """Redis URL for log lines, password replaced by ``****``."""
    auth = ":****@" if settings.redis_password else ""
    return f"redis://{auth}{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"


@asynccontextmanager
async def job_lock(name: str, timeout: int) -> AsyncIterator[bool]:
    """
    Non-blocking run lock for a batch job.

    Yields True when the lock was taken; False when another worker holds
    it and the caller should skip this run. The lock expires after
    ``timeout`` seconds if the worker dies.

    Example:
        async with job_lock("daily_roi", timeout=600) as acquired:
            if acquired:
                await RoiService(session, config).pay_daily_roi()
    """
    client = get_redis_client()
    lock = client.lock(f"{LOCK_PREFIX}{name}", timeout=timeout, blocking=False)
    try:
        acquired = await lock.acquire()
        if not acquired:
            logger.info(f"Job {name} is already running, skipping")
        try:
            yield acquired
        finally:
            if acquired:
                await lock.release()
    finally:
        await client.aclose()
