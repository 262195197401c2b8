"""
User-to-user transfer service.

Sender debit and recipient credit happen in one transaction; the sender's
wallet row is locked first so concurrent transfers from one sender queue up
behind each other for the cooldown and daily-count checks.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.admin_config import ConfigSnapshot
from mlm_engine.config.settings import settings
from mlm_engine.models.enums import LedgerSource, TransferStatus, UserStatus
from mlm_engine.models.transfer import UserTransfer
from mlm_engine.models.user import User
from mlm_engine.repositories.admin_config_repository import AuditLogRepository
from mlm_engine.repositories.transfer_repository import TransferRepository
from mlm_engine.repositories.user_repository import UserRepository
from mlm_engine.repositories.wallet_repository import WalletRepository
from mlm_engine.services.base_service import BaseService, transaction
from mlm_engine.services.wallet.ledger import WalletLedger
from mlm_engine.utils.datetime_utils import ensure_utc, start_of_day, utc_now
from mlm_engine.utils.exceptions import (
    FeatureDisabledError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
)
from mlm_engine.utils.money import ZERO, calculate_fee, quantize


BLOCKED_STATUSES = (UserStatus.AUTO_BLOCKED.value, UserStatus.BLOCKED.value)


class TransferService(BaseService):
    """Moves wallet balance between users."""

    def __init__(self, session: AsyncSession, config: ConfigSnapshot) -> None:
        super().__init__(session)
        self.config = config
        self.user_repo = UserRepository(session)
        self.wallet_repo = WalletRepository(session)
        self.transfer_repo = TransferRepository(session)
        self.audit_repo = AuditLogRepository(session)
        self.ledger = WalletLedger(session)

    def calculate_fee(self, amount: Decimal) -> Decimal:
        features = self.config.features
        if not features.enable_transfer_fee:
            return ZERO
        return calculate_fee(amount, features.transfer_fee_type.value, features.transfer_fee_value)

    @transaction
    async def create_transfer(
        self,
        sender: User,
        recipient_id: int,
        amount: Decimal,
        note: str | None = None,
        now: datetime | None = None,
    ) -> UserTransfer:
        """
        Transfer ``amount`` from ``sender`` to ``recipient_id``.

        The sender is debited ``amount``; the recipient receives
        ``amount - fee``.
        """
        features = self.config.features
        amount = quantize(amount)
        now = now or utc_now()

        if settings.emergency_stop_transfers:
            raise FeatureDisabledError("Transfers are temporarily suspended")
        if not features.enable_user_transfers:
            raise FeatureDisabledError("User transfers are disabled")
        if recipient_id == sender.id:
            raise InvalidRequestError("You cannot transfer to yourself")
        if amount <= ZERO:
            raise InvalidAmountError("Transfer amount must be positive")
        if amount < features.transfer_min_amount:
            raise InvalidAmountError(f"Minimum transfer amount is {features.transfer_min_amount}")
        if amount > features.transfer_max_amount:
            raise InvalidAmountError(f"Maximum transfer amount is {features.transfer_max_amount}")

        if sender.status in BLOCKED_STATUSES:
            raise PermissionDeniedError("Your account is blocked")
        if features.require_kyc_for_transfers and not sender.kyc_verified:
            raise PermissionDeniedError("KYC verification is required for transfers")
        if features.require_email_verified_for_transfers and not sender.email_verified:
            raise PermissionDeniedError("Verify your email before sending transfers")

        recipient = await self.user_repo.get_by_id(recipient_id)
        if recipient is None:
            raise NotFoundError("Recipient not found")
        if recipient.status in BLOCKED_STATUSES:
            raise InvalidRequestError("Recipient account is blocked")
        if not features.enable_transfer_to_unverified_users and not recipient.email_verified:
            raise InvalidRequestError("Recipient account is not verified")

        wallet = await self.wallet_repo.lock_by_user_id(sender.id)
        if wallet is None:
            raise InsufficientFundsError("Insufficient wallet balance")

        await self._check_rate_limits(sender.id, now)

        fee = self.calculate_fee(amount)
        if fee >= amount:
            raise InvalidAmountError("Transfer fee exceeds the amount")

        transfer = await self.transfer_repo.create(
            sender_id=sender.id,
            recipient_id=recipient.id,
            amount=amount,
            fee=fee,
            net_amount=amount - fee,
            note=note,
            status=TransferStatus.COMPLETED.value,
            created_at=now,
        )
        await self.ledger.debit(
            sender.id,
            amount,
            LedgerSource.TRANSFER_OUT.value,
            str(transfer.id),
            description=f"Transfer to {recipient.uid}",
            meta={"recipient_id": recipient.id, "fee": str(fee)},
        )
        await self.ledger.credit(
            recipient.id,
            amount - fee,
            LedgerSource.TRANSFER_IN.value,
            str(transfer.id),
            description=f"Transfer from {sender.uid}",
            meta={"sender_id": sender.id},
        )
        await self.audit_repo.record(
            "transfer_completed",
            user_id=sender.id,
            performed_by=sender.id,
            transfer_id=transfer.id,
            recipient_id=recipient.id,
            amount=str(amount),
            fee=str(fee),
        )

        self.logger.info(
            "Transfer completed",
            extra={
                "transfer_id": transfer.id,
                "sender_id": sender.id,
                "recipient_id": recipient.id,
                "amount": str(amount),
                "fee": str(fee),
            },
        )
        return transfer

    async def _check_rate_limits(self, sender_id: int, now: datetime) -> None:
        features = self.config.features

        cooldown = features.transfer_cooldown_minutes
        if cooldown > 0:
            last = ensure_utc(await self.transfer_repo.get_last_sent_at(sender_id))
            if last is not None and now - last < timedelta(minutes=cooldown):
                raise RateLimitError(f"Please wait {cooldown} minutes between transfers")

        daily_limit = features.transfer_daily_limit
        if daily_limit > 0:
            sent_today = await self.transfer_repo.count_sent_since(sender_id, start_of_day(now))
            if sent_today >= daily_limit:
                raise RateLimitError(f"Daily transfer limit reached ({daily_limit})")
