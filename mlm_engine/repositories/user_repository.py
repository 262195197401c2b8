"""
User repository.

Data access layer for User model.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.enums import ACTIVE_USER_STATUSES, UserStatus
from mlm_engine.models.user import User
from mlm_engine.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """User repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)

    async def get_by_uid(self, uid: str) -> User | None:
        """
        Get user by external uid.

        Args:
            uid: Authentication uid

        Returns:
            User or None
        """
        return await self.get_by(uid=uid)

    async def get_by_referral_code(self, code: str) -> User | None:
        """
        Get user by referral code (case-insensitive).

        Args:
            code: Referral code as typed by the user

        Returns:
            User or None
        """
        stmt = select(User).where(
            func.upper(User.referral_code) == code.strip().upper()
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        """Get user by email (case-insensitive); oldest account on duplicates."""
        stmt = (
            select(User)
            .where(func.lower(User.email) == email.strip().lower())
            .order_by(User.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def lock(self, user_id: int) -> User | None:
        """Load a user with a row lock (SELECT ... FOR UPDATE)."""
        stmt = select(User).where(User.id == user_id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_active_directs(self, user_id: int) -> int:
        """
        Count direct referrals with an active status.

        Args:
            user_id: Upline user ID

        Returns:
            Number of active direct referrals
        """
        stmt = (
            select(func.count())
            .select_from(User)
            .where(User.referrer_id == user_id)
            .where(User.status.in_(ACTIVE_USER_STATUSES))
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def find_expired_pending_ids(
        self, window_started_before: datetime, limit: int
    ) -> list[int]:
        """
        IDs of users still pending activation whose window started before
        the given moment.
        """
        stmt = (
            select(User.id)
            .where(User.status == UserStatus.PENDING_ACTIVATION.value)
            .where(User.activation_window_started_at <= window_started_before)
            .order_by(User.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_ids_after(self, last_id: int, limit: int) -> list[int]:
        """Keyset page of user IDs for batch jobs."""
        stmt = (
            select(User.id)
            .where(User.id > last_id)
            .order_by(User.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
