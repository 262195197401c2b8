"""
Pending referral income processor.

Batch job body behind ``process_all_pending_referral_income``: walks
activations in keyset chunks and commits after each one, so a crash or a
concurrent run loses at most the activation in flight.
"""

from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.admin_config import ConfigSnapshot
from mlm_engine.config.settings import settings
from mlm_engine.models.activation import Activation
from mlm_engine.repositories.activation_repository import ActivationRepository
from mlm_engine.services.base_service import BaseService
from mlm_engine.services.referral.engine import ReferralIncomeEngine
from mlm_engine.utils.exceptions import ConfigurationError
from mlm_engine.utils.money import ZERO


@dataclass
class ReferralRunReport:
    """Aggregated result of one processing run."""

    processed: int = 0
    skipped: int = 0
    errors: int = 0
    repaired: int = 0
    total_credited: Decimal = ZERO
    skip_reasons: Counter = field(default_factory=Counter)
    error_details: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "processed": self.processed,
            "skipped": self.skipped,
            "errors": self.errors,
            "repaired": self.repaired,
            "totalCredited": str(self.total_credited),
            "skipReasons": dict(self.skip_reasons),
            "errorDetails": self.error_details,
        }


class PendingReferralProcessor(BaseService):
    """Runs the referral engine over pending (or, forced, all) activations."""

    def __init__(
        self,
        session: AsyncSession,
        config: ConfigSnapshot,
        batch_size: int | None = None,
    ) -> None:
        super().__init__(session)
        self.config = config
        self.batch_size = batch_size or settings.referral_batch_size
        self.activation_repo = ActivationRepository(session)
        self.engine = ReferralIncomeEngine(session, config)

    async def process_all(self, force: bool = False) -> ReferralRunReport:
        """
        Process activations chunk by chunk.

        Args:
            force: Re-examine processed activations too (admin only)

        Returns:
            Run report with counts and skip reasons
        """
        report = ReferralRunReport()
        last_id = 0

        while True:
            activations = await self.activation_repo.find_for_referral_run(
                last_id, self.batch_size, include_processed=force
            )
            if not activations:
                break

            activation_ids = [activation.id for activation in activations]
            for activation_id in activation_ids:
                activation = await self.session.get(
                    Activation, activation_id, populate_existing=True
                )
                if activation is not None:
                    await self._process_one(activation, force, report)
            last_id = activation_ids[-1]

        self.logger.info(
            "Referral income run finished",
            extra={**report.to_dict(), "force": force},
        )
        return report

    async def _process_one(
        self, activation: Activation, force: bool, report: ReferralRunReport
    ) -> None:
        activation_id = activation.id
        try:
            outcome = await self.engine.process_activation(activation, force=force)
            await self.session.commit()
        except ConfigurationError as e:
            await self.session.rollback()
            await self._record_error(activation_id, e.message)
            report.errors += 1
            report.error_details.append(
                {"activationId": activation_id, "error": e.message, "code": e.code}
            )
            return
        except Exception as e:
            await self.session.rollback()
            self.logger.exception(
                "Referral income failed for activation",
                extra={"activation_id": activation_id},
            )
            await self._record_error(activation_id, f"{type(e).__name__}: {e}")
            report.errors += 1
            report.error_details.append({"activationId": activation_id, "error": str(e)})
            return

        report.repaired += outcome.repaired
        report.total_credited += outcome.total_credited
        if outcome.skip_reason is not None:
            report.skipped += 1
            report.skip_reasons[outcome.skip_reason] += 1
        else:
            report.processed += 1

    async def _record_error(self, activation_id: int, message: str) -> None:
        """Store the failure on the activation; it stays pending."""
        await self.session.execute(
            update(Activation)
            .where(Activation.id == activation_id)
            .values(referral_last_error=message[:2000])
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
