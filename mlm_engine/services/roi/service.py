"""
Daily ROI service.

Pays investors a daily percent of their activation amount for every
working day (Monday-Friday) after activation, up to the configured number
of working days. Missed days are caught up on the next run.

Each paid day is keyed ``{activation_id}:{day}`` in the ledger and advances
``roi_days_paid`` with a conditional update, so a day is paid at most once.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.admin_config import ConfigSnapshot
from mlm_engine.models.activation import Activation
from mlm_engine.models.enums import IncomeType, LedgerSource, UserStatus
from mlm_engine.repositories.activation_repository import ActivationRepository
from mlm_engine.repositories.user_repository import UserRepository
from mlm_engine.services.base_service import BaseService
from mlm_engine.services.cap.tracker import CapTracker
from mlm_engine.services.wallet.ledger import WalletLedger
from mlm_engine.utils.datetime_utils import count_working_days, ensure_utc, utc_now
from mlm_engine.utils.exceptions import CapReachedError
from mlm_engine.utils.money import ZERO, percent_of, quantize


@dataclass
class RoiRunReport:
    """Summary of one ROI run."""

    activations: int = 0
    days_paid: int = 0
    completed: int = 0
    errors: int = 0
    total_paid: Decimal = ZERO
    skip_reasons: Counter = field(default_factory=Counter)

    def to_dict(self) -> dict:
        return {
            "activations": self.activations,
            "daysPaid": self.days_paid,
            "completed": self.completed,
            "errors": self.errors,
            "totalPaid": str(self.total_paid),
            "skipReasons": dict(self.skip_reasons),
        }


class RoiService(BaseService):
    """Credits daily ROI for investor activations."""

    def __init__(
        self, session: AsyncSession, config: ConfigSnapshot, batch_size: int = 100
    ) -> None:
        super().__init__(session)
        self.config = config
        self.batch_size = batch_size
        self.activation_repo = ActivationRepository(session)
        self.user_repo = UserRepository(session)
        self.cap_tracker = CapTracker(session)
        self.ledger = WalletLedger(session)

    async def pay_daily_roi(self, now: datetime | None = None) -> RoiRunReport:
        """Pay every due ROI day; commits per activation."""
        now = now or utc_now()
        report = RoiRunReport()

        if ensure_utc(now).weekday() >= 5:
            report.skip_reasons["nonWorkingDay"] += 1
            return report

        last_id = 0
        while True:
            batch = await self.activation_repo.find_roi_candidates(last_id, self.batch_size)
            if not batch:
                break
            last_id = batch[-1].id

            for activation in batch:
                report.activations += 1
                try:
                    paid, amount, reason, completed = await self._pay_activation(
                        activation, now
                    )
                    await self.session.commit()
                except Exception as e:
                    await self.session.rollback()
                    report.errors += 1
                    self.logger.error(
                        f"ROI payment failed for activation {activation.id}: {e}",
                        extra={"activation_id": activation.id},
                    )
                    continue

                report.days_paid += paid
                report.total_paid += amount
                if reason:
                    report.skip_reasons[reason] += 1
                if completed:
                    report.completed += 1

            if len(batch) < self.batch_size:
                break

        self.logger.info(
            "Daily ROI run finished",
            extra={
                "activations": report.activations,
                "days_paid": report.days_paid,
                "total_paid": str(report.total_paid),
                "errors": report.errors,
            },
        )
        return report

    async def _pay_activation(
        self, activation: Activation, now: datetime
    ) -> tuple[int, Decimal, str | None, bool]:
        """
        Pay the due days of one activation.

        Returns:
            Tuple of (days_paid, amount_paid, skip_reason, completed)
        """
        await self.session.refresh(activation)
        rule = self.config.income_rules.rule_for_amount(quantize(activation.amount))
        max_days = rule.max_working_days
        if activation.roi_days_paid >= max_days:
            await self._mark_completed(activation)
            return 0, ZERO, None, True

        daily_amount = percent_of(activation.amount, rule.daily_percent)
        if daily_amount <= ZERO:
            return 0, ZERO, "zeroAmount", False

        user = await self.user_repo.get_by_id(activation.user_id)
        if user is None or user.status != UserStatus.ACTIVE_INVESTOR.value:
            return 0, ZERO, "notActiveInvestor", False

        due = min(count_working_days(ensure_utc(activation.activated_at), now), max_days)
        last_day = activation.roi_days_paid
        paid = 0
        total = ZERO
        reason = None

        for day in range(last_day + 1, due + 1):
            try:
                async with self.session.begin_nested():
                    advanced = await self.session.execute(
                        update(Activation)
                        .where(Activation.id == activation.id)
                        .where(Activation.roi_days_paid == day - 1)
                        .values(
                            roi_days_paid=day,
                            roi_completed=day >= max_days,
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if advanced.rowcount == 0:
                        # Paid by a concurrent run
                        break
                    await self.cap_tracker.reserve(
                        activation.user_id,
                        daily_amount,
                        IncomeType.DAILY_ROI.value,
                        self.config.renewals,
                    )
                    await self.ledger.credit(
                        activation.user_id,
                        daily_amount,
                        LedgerSource.DAILY_ROI.value,
                        f"{activation.id}:{day}",
                        income_type=IncomeType.DAILY_ROI.value,
                        description=f"Daily ROI day {day} of {max_days}",
                        meta={"activation_id": activation.id, "day": day},
                    )
            except CapReachedError:
                reason = "capReached"
                break
            paid += 1
            last_day = day
            total += daily_amount

        return paid, total, reason, last_day >= max_days

    async def _mark_completed(self, activation: Activation) -> None:
        if activation.roi_completed:
            return
        await self.session.execute(
            update(Activation)
            .where(Activation.id == activation.id)
            .values(roi_completed=True)
            .execution_options(synchronize_session=False)
        )
