"""
Weekly payout sweep.

Turns wallet balances into payout requests with admin charges deducted.
Runs only when both ``enableWeeklyPayouts`` and ``autoProcessPayouts`` are
on. Every created request debits the gross amount like a user withdrawal
and can be reviewed, rejected or paid through the same state machine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.admin_config import ConfigSnapshot
from mlm_engine.models.enums import FeeType, LedgerSource, WithdrawalStatus
from mlm_engine.models.withdrawal import WithdrawalRequest
from mlm_engine.repositories.user_repository import UserRepository
from mlm_engine.repositories.wallet_repository import WalletRepository
from mlm_engine.repositories.withdrawal_repository import WithdrawalRepository
from mlm_engine.services.base_service import BaseService
from mlm_engine.services.cap.tracker import is_withdrawal_blocked
from mlm_engine.services.wallet.ledger import WalletLedger
from mlm_engine.utils.datetime_utils import utc_now
from mlm_engine.utils.exceptions import InsufficientFundsError
from mlm_engine.utils.money import ZERO, percent_of, quantize


PAYOUT_ORIGIN = "payout_sweep"


@dataclass
class PayoutSweepReport:
    """Summary of one payout sweep."""

    enabled: bool = True
    created: int = 0
    skipped: int = 0
    errors: int = 0
    total_gross: Decimal = ZERO
    total_charges: Decimal = ZERO
    withdrawal_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "created": self.created,
            "skipped": self.skipped,
            "errors": self.errors,
            "totalGross": str(self.total_gross),
            "totalCharges": str(self.total_charges),
        }


class PayoutSweepService(BaseService):
    """Creates weekly payout requests from wallet balances."""

    def __init__(
        self, session: AsyncSession, config: ConfigSnapshot, batch_size: int = 200
    ) -> None:
        super().__init__(session)
        self.config = config
        self.batch_size = batch_size
        self.user_repo = UserRepository(session)
        self.wallet_repo = WalletRepository(session)
        self.withdrawal_repo = WithdrawalRepository(session)
        self.ledger = WalletLedger(session)

    async def run_weekly_payouts(self, now: datetime | None = None) -> PayoutSweepReport:
        payouts = self.config.payouts
        if not payouts.enable_weekly_payouts or not payouts.auto_process_payouts:
            return PayoutSweepReport(enabled=False)

        now = now or utc_now()
        report = PayoutSweepReport()
        min_balance = max(quantize(payouts.min_payout_amount), Decimal("0.01"))
        last_id = 0

        while True:
            user_ids = await self.wallet_repo.find_user_ids_with_balance(
                min_balance, last_id, self.batch_size
            )
            if not user_ids:
                break
            last_id = user_ids[-1]

            for user_id in user_ids:
                try:
                    withdrawal = await self._create_payout(user_id, now)
                    await self.session.commit()
                except InsufficientFundsError:
                    # Balance spent between the scan and the debit
                    await self.session.rollback()
                    report.skipped += 1
                    continue
                except Exception as e:
                    await self.session.rollback()
                    report.errors += 1
                    self.logger.error(
                        f"Payout sweep failed for user {user_id}: {e}",
                        extra={"user_id": user_id},
                    )
                    continue
                if withdrawal is None:
                    report.skipped += 1
                    continue
                report.created += 1
                report.total_gross += quantize(withdrawal.amount)
                report.total_charges += quantize(withdrawal.fee)
                report.withdrawal_ids.append(withdrawal.id)

            if len(user_ids) < self.batch_size:
                break

        self.logger.info(
            "Weekly payout sweep finished",
            extra={
                "created": report.created,
                "skipped": report.skipped,
                "errors": report.errors,
                "total_gross": str(report.total_gross),
            },
        )
        return report

    async def _create_payout(
        self, user_id: int, now: datetime
    ) -> WithdrawalRequest | None:
        payouts = self.config.payouts
        user = await self.user_repo.get_by_id(user_id)
        if user is None or user.withdrawal_blocked or not user.is_active_member:
            return None
        if is_withdrawal_blocked(user, self.config.renewals):
            return None
        if await self.withdrawal_repo.has_open_request(user_id):
            return None

        gross = await self.ledger.get_balance(user_id)
        if payouts.max_payout_amount > ZERO:
            gross = min(gross, quantize(payouts.max_payout_amount))
        charges = percent_of(gross, payouts.admin_charges_percent)
        if gross <= ZERO or charges >= gross:
            return None

        withdrawal = await self.withdrawal_repo.create(
            user_id=user_id,
            amount=gross,
            fee=charges,
            net_amount=gross - charges,
            fee_type=FeeType.PERCENT.value,
            method=payouts.payout_method,
            origin=PAYOUT_ORIGIN,
            status=WithdrawalStatus.REQUESTED.value,
            created_at=now,
        )
        await self.ledger.debit(
            user_id,
            gross,
            LedgerSource.WITHDRAWAL.value,
            str(withdrawal.id),
            description=f"Weekly payout #{withdrawal.id}",
            meta={"admin_charges": str(charges), "net_amount": str(gross - charges)},
        )

        return withdrawal
