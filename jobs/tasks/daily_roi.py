"""
Daily ROI task.

Scheduled Monday-Friday; a run on any other day pays nothing. Guarded by a
Redis run lock so two workers never walk the same activations.
"""

import dramatiq
from loguru import logger

from jobs.async_runner import run_async
from jobs.utils import task_context
from mlm_engine.config.settings import settings
from mlm_engine.services.roi import RoiService
from mlm_engine.utils.redis_utils import job_lock


@dramatiq.actor(max_retries=3, time_limit=1_800_000)  # 30 min
def distribute_daily_roi() -> None:
    """Pay due ROI days for all investor activations."""
    logger.info("Starting daily ROI distribution...")
    try:
        result = run_async(_distribute_daily_roi_async())
        if result is None:
            return
        logger.info(
            f"Daily ROI complete: {result['daysPaid']} days paid, "
            f"total {result['totalPaid']}, {result['errors']} errors"
        )
    except Exception as e:
        logger.exception(f"Daily ROI distribution failed: {e}")


async def _distribute_daily_roi_async() -> dict | None:
    async with job_lock("daily_roi", timeout=1800) as acquired:
        if not acquired:
            return None
        async with task_context() as (session, config):
            service = RoiService(session, config, batch_size=settings.referral_batch_size)
            report = await service.pay_daily_roi()
            return report.to_dict()
