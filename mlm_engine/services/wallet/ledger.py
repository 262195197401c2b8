"""
Wallet ledger.

Every balance change goes through ``credit`` or ``debit``: one conditional
UPDATE on the wallet row plus one ledger entry, inside a savepoint. The
ledger entry's unique source key turns replays into no-ops.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.enums import LedgerDirection
from mlm_engine.models.ledger_entry import LedgerEntry
from mlm_engine.models.wallet import Wallet
from mlm_engine.repositories.wallet_repository import LedgerRepository, WalletRepository
from mlm_engine.services.base_service import BaseService
from mlm_engine.utils.datetime_utils import utc_now
from mlm_engine.utils.exceptions import InsufficientFundsError, InvalidAmountError
from mlm_engine.utils.money import ZERO, quantize


@dataclass(frozen=True)
class LedgerPosting:
    """Outcome of a credit or debit."""

    entry_id: int | None
    amount: Decimal
    balance_after: Decimal
    replayed: bool = False


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of reconciling one wallet against its ledger."""

    user_id: int
    created: bool
    updated: bool
    skipped: bool
    balance: Decimal


class WalletLedger(BaseService):
    """Credits, debits and reconciliation of user wallets."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.wallet_repo = WalletRepository(session)
        self.ledger_repo = LedgerRepository(session)

    async def ensure_wallet(self, user_id: int) -> bool:
        """
        Create the user's wallet if it does not exist.

        Returns:
            True if a wallet was created
        """
        existing = await self.session.execute(
            select(Wallet.id).where(Wallet.user_id == user_id)
        )
        if existing.scalar_one_or_none() is not None:
            return False

        try:
            async with self.session.begin_nested():
                self.session.add(Wallet(user_id=user_id))
        except IntegrityError:
            # Created concurrently
            return False
        return True

    async def get_balance(self, user_id: int) -> Decimal:
        return quantize(await self.wallet_repo.get_balance(user_id))

    async def credit(
        self,
        user_id: int,
        amount: Decimal,
        source_type: str,
        source_id: str,
        income_type: str | None = None,
        description: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> LedgerPosting:
        """
        Credit a wallet once per (user, source_type, source_id).

        Raises:
            InvalidAmountError: amount is not positive
        """
        amount = quantize(amount)
        if amount <= ZERO:
            raise InvalidAmountError("Credit amount must be positive", amount=str(amount))

        await self.ensure_wallet(user_id)
        stmt = (
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .values(
                available_balance=Wallet.available_balance + amount,
                total_credited=Wallet.total_credited + amount,
                updated_at=utc_now(),
            )
            .returning(Wallet.available_balance)
        )
        return await self._post(
            stmt,
            user_id=user_id,
            direction=LedgerDirection.CREDIT.value,
            amount=amount,
            source_type=source_type,
            source_id=source_id,
            income_type=income_type,
            description=description,
            meta=meta,
        )

    async def debit(
        self,
        user_id: int,
        amount: Decimal,
        source_type: str,
        source_id: str,
        description: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> LedgerPosting:
        """
        Debit a wallet with an atomic ``available_balance >= amount`` guard.

        Raises:
            InvalidAmountError: amount is not positive
            InsufficientFundsError: balance is lower than amount
        """
        amount = quantize(amount)
        if amount <= ZERO:
            raise InvalidAmountError("Debit amount must be positive", amount=str(amount))

        stmt = (
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .where(Wallet.available_balance >= amount)
            .values(
                available_balance=Wallet.available_balance - amount,
                total_debited=Wallet.total_debited + amount,
                updated_at=utc_now(),
            )
            .returning(Wallet.available_balance)
        )
        return await self._post(
            stmt,
            user_id=user_id,
            direction=LedgerDirection.DEBIT.value,
            amount=amount,
            source_type=source_type,
            source_id=source_id,
            income_type=None,
            description=description,
            meta=meta,
        )

    async def _post(
        self,
        stmt: Any,
        *,
        user_id: int,
        direction: str,
        amount: Decimal,
        source_type: str,
        source_id: str,
        income_type: str | None,
        description: str | None,
        meta: dict[str, Any] | None,
    ) -> LedgerPosting:
        existing = await self.ledger_repo.get_by_source(
            user_id, direction, source_type, source_id
        )
        if existing is not None:
            return self._replay(existing)

        try:
            async with self.session.begin_nested():
                result = await self.session.execute(stmt)
                balance_after = result.scalar_one_or_none()
                if balance_after is None:
                    raise InsufficientFundsError(
                        "Insufficient wallet balance",
                        required=str(amount),
                        available=str(await self.get_balance(user_id)),
                    )

                entry = LedgerEntry(
                    user_id=user_id,
                    direction=direction,
                    amount=amount,
                    source_type=source_type,
                    source_id=source_id,
                    income_type=income_type,
                    balance_after=quantize(balance_after),
                    description=description,
                    meta=meta,
                )
                self.session.add(entry)
                await self.session.flush()
        except IntegrityError:
            existing = await self.ledger_repo.get_by_source(
                user_id, direction, source_type, source_id
            )
            if existing is None:
                raise
            return self._replay(existing)

        self.logger.info(
            f"Wallet {direction}",
            extra={
                "user_id": user_id,
                "amount": str(amount),
                "source_type": source_type,
                "source_id": source_id,
                "balance_after": str(entry.balance_after),
            },
        )
        return LedgerPosting(
            entry_id=entry.id,
            amount=amount,
            balance_after=entry.balance_after,
        )

    def _replay(self, entry: LedgerEntry) -> LedgerPosting:
        self.logger.debug(
            "Ledger replay ignored",
            extra={
                "user_id": entry.user_id,
                "source_type": entry.source_type,
                "source_id": entry.source_id,
            },
        )
        return LedgerPosting(
            entry_id=entry.id,
            amount=quantize(entry.amount),
            balance_after=quantize(entry.balance_after),
            replayed=True,
        )

    async def reconcile(self, user_id: int) -> ReconcileResult:
        """
        Bring a wallet in line with its ledger.

        The expected balance is sum(credits) - sum(debits). Drift is repaired
        with an UPDATE guarded on the balance that was observed, so a
        concurrent posting makes this a skip instead of an overwrite.
        """
        created = await self.ensure_wallet(user_id)
        credits, debits = await self.ledger_repo.get_totals(user_id)
        expected = quantize(credits - debits)

        observed_row = await self.session.execute(
            select(Wallet.available_balance).where(Wallet.user_id == user_id)
        )
        observed = observed_row.scalar_one()
        if quantize(observed) == expected:
            return ReconcileResult(user_id, created, updated=False, skipped=False, balance=expected)

        if expected < ZERO:
            self.logger.error(
                "Ledger totals are negative, wallet left unchanged",
                extra={"user_id": user_id, "credits": str(credits), "debits": str(debits)},
            )
            return ReconcileResult(user_id, created, updated=False, skipped=True, balance=quantize(observed))

        result = await self.session.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .where(Wallet.available_balance == observed)
            .values(
                available_balance=expected,
                total_credited=quantize(credits),
                total_debited=quantize(debits),
                updated_at=utc_now(),
            )
        )
        if result.rowcount == 0:
            return ReconcileResult(user_id, created, updated=False, skipped=True, balance=quantize(observed))

        self.logger.warning(
            "Wallet drift repaired",
            extra={
                "user_id": user_id,
                "observed": str(observed),
                "expected": str(expected),
            },
        )
        return ReconcileResult(user_id, created, updated=True, skipped=False, balance=expected)
