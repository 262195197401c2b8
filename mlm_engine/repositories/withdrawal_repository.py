"""
Withdrawal repository.

Data access layer for WithdrawalRequest model.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.enums import OPEN_WITHDRAWAL_STATUSES, WithdrawalStatus
from mlm_engine.models.withdrawal import WithdrawalRequest
from mlm_engine.repositories.base import BaseRepository


class WithdrawalRepository(BaseRepository[WithdrawalRequest]):
    """Withdrawal request repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize withdrawal repository."""
        super().__init__(WithdrawalRequest, session)

    async def has_open_request(self, user_id: int) -> bool:
        """True when the user has a requested, under_review or approved request."""
        stmt = (
            select(func.count())
            .select_from(WithdrawalRequest)
            .where(WithdrawalRequest.user_id == user_id)
            .where(WithdrawalRequest.status.in_(OPEN_WITHDRAWAL_STATUSES))
        )
        result = await self.session.execute(stmt)
        return (result.scalar() or 0) > 0

    async def count_since(self, user_id: int, since: datetime) -> int:
        """Requests created since a moment, cancelled ones excluded."""
        stmt = (
            select(func.count())
            .select_from(WithdrawalRequest)
            .where(WithdrawalRequest.user_id == user_id)
            .where(WithdrawalRequest.created_at >= since)
            .where(WithdrawalRequest.status != WithdrawalStatus.CANCELLED.value)
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def get_last_request_at(self, user_id: int) -> datetime | None:
        stmt = (
            select(func.max(WithdrawalRequest.created_at))
            .where(WithdrawalRequest.user_id == user_id)
            .where(WithdrawalRequest.status != WithdrawalStatus.CANCELLED.value)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
