"""
Referral income tasks.

Polls activations whose referral income has not been processed yet. Runs
every ``REFERRAL_POLL_INTERVAL_SECONDS``; a run with nothing pending is a
single count query.
"""

import dramatiq
from loguru import logger

from jobs.async_runner import run_async
from jobs.broker import POLL_MESSAGE_MAX_AGE_MS
from jobs.utils import task_session
from mlm_engine.config.settings import settings
from mlm_engine.repositories.activation_repository import ActivationRepository
from mlm_engine.services.config_service import ConfigService
from mlm_engine.services.referral import PendingReferralProcessor


@dramatiq.actor(max_retries=0, time_limit=600_000, max_age=POLL_MESSAGE_MAX_AGE_MS)
def process_pending_referral_income(force: bool = False) -> None:
    """
    Distribute referral income for pending activations.

    Args:
        force: Re-examine processed activations as well
    """
    try:
        result = run_async(_process_pending_referral_income_async(force))
        if result["processed"] or result["errors"]:
            logger.info(
                f"Referral income run: {result['processed']} processed, "
                f"{result['skipped']} skipped, {result['errors']} errors"
            )
    except Exception as e:
        logger.exception(f"Referral income run failed: {e}")


async def _process_pending_referral_income_async(force: bool) -> dict:
    async with task_session() as session:
        if not force and await ActivationRepository(session).count_pending_referral() == 0:
            return {"processed": 0, "skipped": 0, "errors": 0}

        config = await ConfigService(session).get_snapshot()
        processor = PendingReferralProcessor(
            session, config, batch_size=settings.referral_batch_size
        )
        report = await processor.process_all(force=force)
        return report.to_dict()
