"""
Transfer repository.

Data access layer for UserTransfer model.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.transfer import UserTransfer
from mlm_engine.repositories.base import BaseRepository


class TransferRepository(BaseRepository[UserTransfer]):
    """User transfer repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize transfer repository."""
        super().__init__(UserTransfer, session)

    async def count_sent_since(self, sender_id: int, since: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(UserTransfer)
            .where(UserTransfer.sender_id == sender_id)
            .where(UserTransfer.created_at >= since)
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def get_last_sent_at(self, sender_id: int) -> datetime | None:
        stmt = select(func.max(UserTransfer.created_at)).where(
            UserTransfer.sender_id == sender_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
