"""
Wallet repository.

Data access layer for Wallet and LedgerEntry models. Balance changes are
not done here; see ``mlm_engine.services.wallet``.
"""

from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.enums import LedgerDirection
from mlm_engine.models.ledger_entry import LedgerEntry
from mlm_engine.models.wallet import Wallet
from mlm_engine.repositories.base import BaseRepository


class WalletRepository(BaseRepository[Wallet]):
    """Wallet repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize wallet repository."""
        super().__init__(Wallet, session)

    async def lock_by_user_id(self, user_id: int) -> Wallet | None:
        """Load a wallet with a row lock."""
        stmt = select(Wallet).where(Wallet.user_id == user_id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_balance(self, user_id: int) -> Decimal:
        """Current available balance, zero when the wallet does not exist."""
        stmt = select(Wallet.available_balance).where(Wallet.user_id == user_id)
        result = await self.session.execute(stmt)
        balance = result.scalar_one_or_none()
        return Decimal(str(balance)) if balance is not None else Decimal("0")

    async def find_user_ids_with_balance(
        self, min_balance: Decimal, after_user_id: int, limit: int
    ) -> list[int]:
        """Keyset page of user IDs whose balance is at least ``min_balance``."""
        stmt = (
            select(Wallet.user_id)
            .where(Wallet.user_id > after_user_id)
            .where(Wallet.available_balance >= min_balance)
            .where(Wallet.available_balance > 0)
            .order_by(Wallet.user_id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class LedgerRepository(BaseRepository[LedgerEntry]):
    """Ledger entry repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize ledger repository."""
        super().__init__(LedgerEntry, session)

    async def get_by_source(
        self,
        user_id: int,
        direction: str,
        source_type: str,
        source_id: str,
    ) -> LedgerEntry | None:
        """Entry posted for a source, if any."""
        return await self.get_by(
            user_id=user_id,
            direction=direction,
            source_type=source_type,
            source_id=source_id,
        )

    async def get_totals(self, user_id: int) -> tuple[Decimal, Decimal]:
        """
        Sum of credits and debits for a user.

        Returns:
            Tuple of (total_credits, total_debits)
        """
        credit = LedgerDirection.CREDIT.value
        debit = LedgerDirection.DEBIT.value
        stmt = select(
            func.coalesce(
                func.sum(case((LedgerEntry.direction == credit, LedgerEntry.amount), else_=0)),
                0,
            ),
            func.coalesce(
                func.sum(case((LedgerEntry.direction == debit, LedgerEntry.amount), else_=0)),
                0,
            ),
        ).where(LedgerEntry.user_id == user_id)
        result = await self.session.execute(stmt)
        credits, debits = result.one()
        return Decimal(str(credits)), Decimal(str(debits))
