"""
Admin wallet adjustment.

Signed manual credit or debit with an audit record.
"""

from decimal import Decimal
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.enums import IncomeType, LedgerSource
from mlm_engine.models.user import User
from mlm_engine.repositories.admin_config_repository import AuditLogRepository
from mlm_engine.repositories.user_repository import UserRepository
from mlm_engine.services.base_service import BaseService, transaction
from mlm_engine.services.wallet.ledger import LedgerPosting, WalletLedger
from mlm_engine.utils.exceptions import (
    InvalidAmountError,
    NotFoundError,
    PermissionDeniedError,
)
from mlm_engine.utils.money import ZERO, quantize


class WalletAdjustmentService(BaseService):
    """Admin-initiated balance corrections."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.audit_repo = AuditLogRepository(session)
        self.ledger = WalletLedger(session)

    @transaction
    async def adjust_user_wallet(
        self,
        admin: User,
        target_user_id: int,
        amount: Decimal,
        adjustment_type: str,
        description: str,
        admin_note: str | None = None,
        reference: str | None = None,
    ) -> LedgerPosting:
        """
        Apply a signed adjustment.

        Positive amounts credit, negative amounts debit. ``reference`` makes
        the call idempotent; without one every call is a new adjustment.
        """
        if not admin.is_admin:
            raise PermissionDeniedError("Admin access required")

        amount = quantize(amount)
        if amount == ZERO:
            raise InvalidAmountError("Adjustment amount must not be zero")

        target = await self.user_repo.get_by_id(target_user_id)
        if target is None:
            raise NotFoundError("User not found", user_id=target_user_id)

        source_id = reference or uuid4().hex
        meta = {
            "adjustment_type": adjustment_type,
            "admin_id": admin.id,
            "admin_note": admin_note,
        }
        if amount > ZERO:
            posting = await self.ledger.credit(
                target.id,
                amount,
                LedgerSource.ADMIN_ADJUSTMENT.value,
                source_id,
                income_type=IncomeType.ADMIN_ADJUSTMENT.value,
                description=description,
                meta=meta,
            )
        else:
            posting = await self.ledger.debit(
                target.id,
                -amount,
                LedgerSource.ADMIN_ADJUSTMENT.value,
                source_id,
                description=description,
                meta=meta,
            )

        await self.audit_repo.record(
            "wallet_adjusted",
            user_id=target.id,
            performed_by=admin.id,
            amount=str(amount),
            adjustment_type=adjustment_type,
            description=description,
            admin_note=admin_note,
            reference=source_id,
            replayed=posting.replayed,
        )
        self.logger.info(
            "Wallet adjusted by admin",
            extra={"user_id": target.id, "admin_id": admin.id, "amount": str(amount)},
        )
        return posting
