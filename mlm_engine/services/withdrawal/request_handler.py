"""
Withdrawal request handling module.

Creates withdrawal requests: validation, fee calculation and the gross
debit, all in one transaction.
"""

import asyncio
import random
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.admin_config import ConfigSnapshot
from mlm_engine.models.enums import LedgerSource, WithdrawalStatus
from mlm_engine.models.user import User
from mlm_engine.models.withdrawal import WithdrawalRequest
from mlm_engine.repositories.admin_config_repository import AuditLogRepository
from mlm_engine.repositories.withdrawal_repository import WithdrawalRepository
from mlm_engine.services.base_service import BaseService
from mlm_engine.services.wallet.ledger import WalletLedger
from mlm_engine.services.withdrawal.validator import WithdrawalValidator
from mlm_engine.utils.datetime_utils import utc_now
from mlm_engine.utils.exceptions import NotFoundError, RateLimitError
from mlm_engine.utils.money import calculate_fee, quantize


# Retries when the user row is locked by a concurrent request
MAX_RETRIES = 3
RETRY_DELAY_BASE = 0.2  # seconds


class WithdrawalRequestHandler(BaseService):
    """Handles withdrawal request creation and validation."""

    def __init__(self, session: AsyncSession, config: ConfigSnapshot) -> None:
        super().__init__(session)
        self.config = config
        self.validator = WithdrawalValidator(session, config)
        self.withdrawal_repo = WithdrawalRepository(session)
        self.audit_repo = AuditLogRepository(session)
        self.ledger = WalletLedger(session)

    async def request_withdrawal(
        self,
        user_id: int,
        amount: Decimal,
        method: str,
        payout_details: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> WithdrawalRequest:
        """
        Create a withdrawal request and debit the gross amount.

        Args:
            user_id: Requesting user
            amount: Gross amount; the fee is retained from it
            method: Payout method (bank, upi, ...)
            payout_details: Account details for the payout
            now: Request time, defaults to the current time

        Returns:
            Committed withdrawal request in ``requested`` state

        Raises:
            MLMError subclasses from validation or the debit
        """
        amount = quantize(amount)
        now = now or utc_now()

        for attempt in range(MAX_RETRIES):
            try:
                withdrawal = await self._create(user_id, amount, method, payout_details, now)
                await self.session.commit()
                return withdrawal
            except OperationalError:
                await self.session.rollback()
                if attempt == MAX_RETRIES - 1:
                    raise RateLimitError(
                        "Another request is being processed, try again shortly"
                    )
                delay = RETRY_DELAY_BASE * (2 ** attempt) + random.uniform(0, 0.1)
                self.logger.warning(
                    f"Withdrawal lock conflict, retry {attempt + 1}/{MAX_RETRIES}",
                    extra={"user_id": user_id, "delay": delay},
                )
                await asyncio.sleep(delay)
            except Exception:
                await self.session.rollback()
                raise

        raise RateLimitError("Another request is being processed, try again shortly")

    async def _create(
        self,
        user_id: int,
        amount: Decimal,
        method: str,
        payout_details: dict[str, Any] | None,
        now: datetime,
    ) -> WithdrawalRequest:
        # Serializes requests of one user (open-request and limit checks)
        result = await self.session.execute(
            select(User).where(User.id == user_id).with_for_update(nowait=True)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)

        withdrawals = self.config.withdrawals
        fee_value = withdrawals.fee_percent if withdrawals.use_percent_fee else withdrawals.fee_flat
        fee = calculate_fee(amount, withdrawals.fee_type.value, fee_value)
        balance = await self.ledger.get_balance(user.id)

        validation = await self.validator.validate_withdrawal_request(
            user, amount, method, fee, balance, now, payout_details=payout_details
        )
        validation.raise_for_error()

        withdrawal = await self.withdrawal_repo.create(
            user_id=user.id,
            amount=amount,
            fee=fee,
            net_amount=amount - fee,
            fee_type=withdrawals.fee_type.value,
            method=method,
            payout_details=payout_details,
            status=WithdrawalStatus.REQUESTED.value,
            created_at=now,
        )
        await self.ledger.debit(
            user.id,
            amount,
            LedgerSource.WITHDRAWAL.value,
            str(withdrawal.id),
            description=f"Withdrawal request #{withdrawal.id}",
            meta={"fee": str(fee), "net_amount": str(amount - fee), "method": method},
        )
        await self.audit_repo.record(
            "withdrawal_requested",
            user_id=user.id,
            performed_by=user.id,
            withdrawal_id=withdrawal.id,
            amount=str(amount),
            fee=str(fee),
        )

        self.logger.info(
            "Withdrawal requested",
            extra={
                "withdrawal_id": withdrawal.id,
                "user_id": user.id,
                "amount": str(amount),
                "fee": str(fee),
                "method": method,
            },
        )
        return withdrawal
