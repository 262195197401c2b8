"""Weekly payout task (Mondays)."""

import dramatiq
from loguru import logger

from jobs.async_runner import run_async
from jobs.utils import task_context
from mlm_engine.services.payout import PayoutSweepService
from mlm_engine.utils.redis_utils import job_lock


@dramatiq.actor(max_retries=0, time_limit=1_800_000)  # 30 min
def process_weekly_payouts() -> None:
    """Create payout requests from wallet balances when auto payouts are on."""
    try:
        result = run_async(_process_weekly_payouts_async())
        if result is None:
            return
        if not result["enabled"]:
            logger.info("Weekly payouts are disabled, nothing to do")
            return
        logger.info(
            f"Weekly payouts: {result['created']} created, "
            f"gross {result['totalGross']}, charges {result['totalCharges']}"
        )
    except Exception as e:
        logger.exception(f"Weekly payouts failed: {e}")


async def _process_weekly_payouts_async() -> dict | None:
    async with job_lock("weekly_payouts", timeout=1800) as acquired:
        if not acquired:
            return None
        async with task_context() as (session, config):
            report = await PayoutSweepService(session, config).run_weekly_payouts()
            return report.to_dict()
