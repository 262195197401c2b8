"""Wallet sync task: reconcile wallet balances with the ledger."""

import dramatiq
from loguru import logger

from jobs.async_runner import run_async
from jobs.broker import POLL_MESSAGE_MAX_AGE_MS
from jobs.utils import task_session
from mlm_engine.config.settings import settings
from mlm_engine.services.wallet import WalletSyncService


@dramatiq.actor(max_retries=0, time_limit=900_000, max_age=POLL_MESSAGE_MAX_AGE_MS)
def sync_wallet_balances() -> None:
    """Create missing wallets and repair balances that drifted from the ledger."""
    try:
        result = run_async(_sync_wallet_balances_async())
        if result["created"] or result["updated"] or result["errors"]:
            logger.warning(
                f"Wallet sync: {result['created']} created, "
                f"{result['updated']} repaired, {len(result['errors'])} errors"
            )
    except Exception as e:
        logger.exception(f"Wallet sync failed: {e}")


async def _sync_wallet_balances_async() -> dict:
    async with task_session() as session:
        service = WalletSyncService(session, batch_size=settings.wallet_sync_batch_size)
        report = await service.sync_wallet_balances()
        return report.to_dict()
