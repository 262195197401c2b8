"""
Level qualification.

A beneficiary may earn at a level only if they have enough active direct
referrals for the rule covering that level.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.admin_config import ReferralIncomeConfig
from mlm_engine.repositories.user_repository import UserRepository


class QualificationChecker:
    """
    Checks qualification rules.

    Direct counts are cached for one activation; call ``reset`` before the
    next so directs gained in between are seen.
    """

    def __init__(self, session: AsyncSession, config: ReferralIncomeConfig) -> None:
        self.config = config
        self.user_repo = UserRepository(session)
        self._directs: dict[int, int] = {}

    def reset(self) -> None:
        self._directs.clear()

    async def active_directs(self, user_id: int) -> int:
        if user_id not in self._directs:
            self._directs[user_id] = await self.user_repo.count_active_directs(user_id)
        return self._directs[user_id]

    async def is_qualified(self, user_id: int, level: int) -> bool:
        required = self.config.required_directs(level)
        if required <= 0:
            return True
        return await self.active_directs(user_id) >= required
