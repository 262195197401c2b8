"""
Wallet balance sync.

Batch job body: creates missing wallets and repairs wallets that drifted
from their ledger. Safe to run concurrently with postings.
"""

from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.settings import settings
from mlm_engine.repositories.user_repository import UserRepository
from mlm_engine.services.base_service import BaseService
from mlm_engine.services.wallet.ledger import WalletLedger


@dataclass
class WalletSyncReport:
    synced: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "synced": self.synced,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
        }


class WalletSyncService(BaseService):
    """Reconcile every wallet against the ledger, chunk by chunk."""

    def __init__(self, session: AsyncSession, batch_size: int | None = None) -> None:
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.ledger = WalletLedger(session)
        self.batch_size = batch_size or settings.wallet_sync_batch_size

    async def sync_wallet_balances(self) -> WalletSyncReport:
        report = WalletSyncReport()
        last_id = 0

        while True:
            user_ids = await self.user_repo.find_ids_after(last_id, self.batch_size)
            if not user_ids:
                break

            for user_id in user_ids:
                try:
                    result = await self.ledger.reconcile(user_id)
                except Exception as e:
                    await self.session.rollback()
                    self.logger.error(
                        "Wallet sync failed for user",
                        extra={"user_id": user_id, "error": str(e)},
                    )
                    report.errors.append(f"{user_id}: {e}")
                    continue

                report.synced += 1
                report.created += int(result.created)
                report.updated += int(result.updated)
                report.skipped += int(result.skipped)
                await self.session.commit()

            last_id = user_ids[-1]

        self.logger.info("Wallet sync finished", extra=report.to_dict())
        return report
