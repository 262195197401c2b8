"""
Withdrawal lifecycle handling module.

State machine:
    requested -> under_review -> approved -> paid
    requested | under_review | approved -> rejected   (gross refunded)
    requested -> cancelled                            (gross refunded, by user)

Every transition is a conditional UPDATE on the current status, so two
reviewers acting at once cannot both succeed.
"""

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.enums import LedgerSource, WithdrawalStatus
from mlm_engine.models.user import User
from mlm_engine.models.withdrawal import WithdrawalRequest
from mlm_engine.repositories.admin_config_repository import AuditLogRepository
from mlm_engine.repositories.withdrawal_repository import WithdrawalRepository
from mlm_engine.services.base_service import BaseService, transaction
from mlm_engine.services.wallet.ledger import WalletLedger
from mlm_engine.utils.datetime_utils import utc_now
from mlm_engine.utils.exceptions import (
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
)
from mlm_engine.utils.money import quantize


ALLOWED_TRANSITIONS: dict[WithdrawalStatus, tuple[WithdrawalStatus, ...]] = {
    WithdrawalStatus.UNDER_REVIEW: (WithdrawalStatus.REQUESTED,),
    WithdrawalStatus.APPROVED: (WithdrawalStatus.UNDER_REVIEW,),
    WithdrawalStatus.PAID: (WithdrawalStatus.APPROVED,),
    WithdrawalStatus.REJECTED: (
        WithdrawalStatus.REQUESTED,
        WithdrawalStatus.UNDER_REVIEW,
        WithdrawalStatus.APPROVED,
    ),
    WithdrawalStatus.CANCELLED: (WithdrawalStatus.REQUESTED,),
}

REFUNDED_STATUSES = (WithdrawalStatus.REJECTED, WithdrawalStatus.CANCELLED)


class WithdrawalLifecycleHandler(BaseService):
    """Handles withdrawal review, payment, rejection and cancellation."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.withdrawal_repo = WithdrawalRepository(session)
        self.audit_repo = AuditLogRepository(session)
        self.ledger = WalletLedger(session)

    @transaction
    async def review(
        self,
        withdrawal_id: int,
        new_status: WithdrawalStatus,
        admin: User,
        note: str | None = None,
        payout_reference: str | None = None,
    ) -> WithdrawalRequest:
        """Admin transition (under_review, approved, paid, rejected)."""
        if not admin.is_admin:
            raise PermissionDeniedError("Admin access required")
        if new_status == WithdrawalStatus.CANCELLED:
            raise InvalidStateTransitionError("Only the owner can cancel a withdrawal")
        return await self._transition(
            withdrawal_id, new_status, admin.id, note=note, payout_reference=payout_reference
        )

    @transaction
    async def cancel(self, withdrawal_id: int, user: User) -> WithdrawalRequest:
        """Owner cancels a request that is still ``requested``."""
        withdrawal = await self.withdrawal_repo.get_by_id(withdrawal_id)
        if withdrawal is None or withdrawal.user_id != user.id:
            raise NotFoundError("Withdrawal request not found")
        return await self._transition(withdrawal_id, WithdrawalStatus.CANCELLED, user.id)

    async def _transition(
        self,
        withdrawal_id: int,
        new_status: WithdrawalStatus,
        performed_by: int,
        note: str | None = None,
        payout_reference: str | None = None,
    ) -> WithdrawalRequest:
        sources = [status.value for status in ALLOWED_TRANSITIONS[new_status]]
        values: dict = {
            "status": new_status.value,
            "reviewed_by": performed_by,
            "updated_at": utc_now(),
        }
        if note is not None:
            values["admin_note"] = note
        if payout_reference is not None:
            values["payout_reference"] = payout_reference

        result = await self.session.execute(
            update(WithdrawalRequest)
            .where(WithdrawalRequest.id == withdrawal_id)
            .where(WithdrawalRequest.status.in_(sources))
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        withdrawal = await self.withdrawal_repo.get_by_id(withdrawal_id)
        if withdrawal is None:
            raise NotFoundError("Withdrawal request not found", withdrawal_id=withdrawal_id)
        if result.rowcount == 0:
            raise InvalidStateTransitionError(
                f"Cannot move withdrawal from {withdrawal.status} to {new_status.value}",
                withdrawal_id=withdrawal_id,
            )

        if new_status in REFUNDED_STATUSES:
            await self.ledger.credit(
                withdrawal.user_id,
                quantize(withdrawal.amount),
                LedgerSource.WITHDRAWAL_REVERSAL.value,
                str(withdrawal.id),
                description=f"Withdrawal #{withdrawal.id} {new_status.value}, amount returned",
            )

        await self.audit_repo.record(
            f"withdrawal_{new_status.value}",
            user_id=withdrawal.user_id,
            performed_by=performed_by,
            withdrawal_id=withdrawal.id,
            amount=str(quantize(withdrawal.amount)),
            note=note,
        )
        self.logger.info(
            "Withdrawal status changed",
            extra={
                "withdrawal_id": withdrawal.id,
                "status": new_status.value,
                "performed_by": performed_by,
            },
        )
        return withdrawal
