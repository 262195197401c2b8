"""Auto-block task for users who miss the activation window."""

import dramatiq
from loguru import logger

from jobs.async_runner import run_async
from jobs.utils import task_context
from mlm_engine.config.settings import settings
from mlm_engine.services.activation import AutoBlockService


@dramatiq.actor(max_retries=3, time_limit=300_000)  # 5 min
def auto_block_expired_users() -> None:
    """Block PENDING_ACTIVATION users whose activation window has expired."""
    try:
        result = run_async(_auto_block_async())
        if result["blocked"]:
            logger.info(f"Auto-block: {result['blocked']} users blocked")
    except Exception as e:
        logger.exception(f"Auto-block failed: {e}")


async def _auto_block_async() -> dict:
    async with task_context() as (session, config):
        service = AutoBlockService(
            session, config, batch_size=settings.auto_block_batch_size
        )
        report = await service.run_auto_block()
        return report.to_dict()
