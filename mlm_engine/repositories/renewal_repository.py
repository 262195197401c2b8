"""
Renewal repository.

Data access layer for Renewal model.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.renewal import Renewal
from mlm_engine.repositories.base import BaseRepository


class RenewalRepository(BaseRepository[Renewal]):
    """Renewal repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize renewal repository."""
        super().__init__(Renewal, session)

    async def get_for_cycle(self, user_id: int, cap_cycle: int) -> Renewal | None:
        return await self.get_by(user_id=user_id, cap_cycle=cap_cycle)

    async def get_by_payment_reference(self, payment_reference: str) -> Renewal | None:
        return await self.get_by(payment_reference=payment_reference)
