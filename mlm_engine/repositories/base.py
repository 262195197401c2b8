"""
Base repository.

Lookups and inserts shared by all repositories. Balances, counters and
status changes are never written through here: services change them with
conditional UPDATE statements.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Repository over one mapped model.

    Example:
        class RenewalRepository(BaseRepository[Renewal]):
            def __init__(self, session: AsyncSession):
                super().__init__(Renewal, session)
    """

    def __init__(self, model: type[ModelType], session: AsyncSession) -> None:
        self.model = model
        self.session = session

    async def get_by_id(self, id: Any) -> ModelType | None:
        """Entity by primary key, from the identity map when loaded."""
        return await self.session.get(self.model, id)

    async def get_by(self, **filters: Any) -> ModelType | None:
        """
        Single entity matching column filters.

        Only use with filters that hit a unique key (uid, referral code,
        payment reference, user + cycle).
        """
        stmt = select(self.model).filter_by(**filters)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, **data: Any) -> ModelType:
        """
        Insert an entity and flush it so its id and defaults are set.

        Unique key violations surface here as ``IntegrityError``; callers
        that rely on a key for idempotency wrap this in a savepoint.
        """
        entity = self.model(**data)
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def count(self, **filters: Any) -> int:
        stmt = select(func.count()).select_from(self.model)
        if filters:
            stmt = stmt.filter_by(**filters)
        result = await self.session.execute(stmt)
        return result.scalar() or 0
