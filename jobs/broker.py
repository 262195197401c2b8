"""
Dramatiq broker for the batch jobs.

Import this module before any ``jobs.tasks`` module so the actors bind to the
Redis broker. The broker's default middleware (age and time limits, retries,
shutdown notifications) stays in place; retries and limits are set per actor.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import CurrentMessage
from loguru import logger

from mlm_engine.config.settings import settings
from mlm_engine.utils.redis_utils import get_redis_url_masked

# Polling actors drop messages older than this; a newer one is already queued.
POLL_MESSAGE_MAX_AGE_MS = settings.referral_poll_interval_seconds * 3 * 1000

broker = RedisBroker(
    host=settings.redis_host,
    port=settings.redis_port,
    password=settings.redis_password or None,
    db=settings.redis_db,
)
broker.add_middleware(CurrentMessage())

dramatiq.set_broker(broker)

logger.info(f"Dramatiq broker ready on {get_redis_url_masked()}")
