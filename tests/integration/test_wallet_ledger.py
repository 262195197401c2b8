"""Integration tests for the wallet ledger, adjustments and wallet sync."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select, update

from mlm_engine.models.enums import LedgerSource, UserRole
from mlm_engine.models.ledger_entry import LedgerEntry
from mlm_engine.models.wallet import Wallet
from mlm_engine.services.wallet import WalletAdjustmentService, WalletSyncService
from mlm_engine.services.wallet.ledger import WalletLedger
from mlm_engine.utils.exceptions import (
    InsufficientFundsError,
    InvalidAmountError,
    PermissionDeniedError,
)


pytestmark = pytest.mark.integration


class TestWalletLedger:
    """Credits, debits and replays."""

    @pytest.mark.asyncio
    async def test_credit_creates_wallet(self, session, make_user, balance_of):
        user = await make_user()
        posting = await WalletLedger(session).credit(
            user.id, Decimal("250"), LedgerSource.ADMIN_ADJUSTMENT.value, "grant-1"
        )
        await session.commit()

        assert posting.replayed is False
        assert posting.balance_after == Decimal("250.00")
        assert await balance_of(user) == Decimal("250.00")

    @pytest.mark.asyncio
    async def test_replayed_credit_is_a_no_op(self, session, make_user, balance_of):
        """The same (user, source) is credited once."""
        user = await make_user()
        ledger = WalletLedger(session)
        first = await ledger.credit(user.id, Decimal("100"), LedgerSource.DAILY_ROI.value, "7:1")
        second = await ledger.credit(user.id, Decimal("100"), LedgerSource.DAILY_ROI.value, "7:1")
        await session.commit()

        assert second.replayed is True
        assert second.entry_id == first.entry_id
        assert await balance_of(user) == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_debit_more_than_balance(self, session, make_user, fund, balance_of):
        user = await make_user()
        await fund(user, Decimal("100"))
        user_id = user.id

        with pytest.raises(InsufficientFundsError):
            await WalletLedger(session).debit(
                user_id, Decimal("150"), LedgerSource.WITHDRAWAL.value, "1"
            )
        await session.commit()

        assert await balance_of(user) == Decimal("100.00")
        count = await session.scalar(
            select(func.count()).select_from(LedgerEntry).where(LedgerEntry.user_id == user_id)
        )
        assert count == 1

    @pytest.mark.asyncio
    async def test_non_positive_amounts_rejected(self, session, make_user):
        user = await make_user()
        ledger = WalletLedger(session)
        with pytest.raises(InvalidAmountError):
            await ledger.credit(user.id, Decimal("0"), LedgerSource.DAILY_ROI.value, "x")
        with pytest.raises(InvalidAmountError):
            await ledger.debit(user.id, Decimal("-1"), LedgerSource.WITHDRAWAL.value, "x")

    @pytest.mark.asyncio
    async def test_balance_equals_ledger_sum(
        self, session, make_user, fund, assert_ledger_matches
    ):
        """Mixed postings keep balance == credits - debits."""
        user = await make_user()
        ledger = WalletLedger(session)
        await fund(user, Decimal("1000"))
        await ledger.debit(user.id, Decimal("300"), LedgerSource.WITHDRAWAL.value, "1")
        await ledger.credit(user.id, Decimal("300"), LedgerSource.WITHDRAWAL_REVERSAL.value, "1")
        await ledger.debit(user.id, Decimal("450"), LedgerSource.TRANSFER_OUT.value, "5")
        await session.commit()

        await assert_ledger_matches(user)


class TestWalletAdjustment:
    """Admin adjustments."""

    @pytest.mark.asyncio
    async def test_credit_and_debit(self, session, make_user, balance_of):
        admin = await make_user(role=UserRole.ADMIN.value)
        user = await make_user()
        await session.commit()
        service = WalletAdjustmentService(session)

        await service.adjust_user_wallet(admin, user.id, Decimal("500"), "bonus", "Welcome bonus")
        await service.adjust_user_wallet(admin, user.id, Decimal("-200"), "manual", "Correction")

        assert await balance_of(user) == Decimal("300.00")

    @pytest.mark.asyncio
    async def test_reference_makes_adjustment_idempotent(self, session, make_user, balance_of):
        admin = await make_user(role=UserRole.ADMIN.value)
        user = await make_user()
        await session.commit()
        service = WalletAdjustmentService(session)

        await service.adjust_user_wallet(
            admin, user.id, Decimal("500"), "bonus", "Bonus", reference="ticket-9"
        )
        posting = await service.adjust_user_wallet(
            admin, user.id, Decimal("500"), "bonus", "Bonus", reference="ticket-9"
        )

        assert posting.replayed is True
        assert await balance_of(user) == Decimal("500.00")

    @pytest.mark.asyncio
    async def test_non_admin_refused(self, session, make_user):
        user = await make_user()
        other = await make_user()
        await session.commit()

        with pytest.raises(PermissionDeniedError):
            await WalletAdjustmentService(session).adjust_user_wallet(
                user, other.id, Decimal("500"), "bonus", "Self-service"
            )

    @pytest.mark.asyncio
    async def test_overdraft_refused(self, session, make_user, balance_of):
        admin = await make_user(role=UserRole.ADMIN.value)
        user = await make_user()
        await session.commit()

        with pytest.raises(InsufficientFundsError):
            await WalletAdjustmentService(session).adjust_user_wallet(
                admin, user.id, Decimal("-10"), "manual", "Charge"
            )
        assert await balance_of(user) == Decimal("0.00")


class TestWalletSync:
    """Reconciliation of wallets against the ledger."""

    @pytest.mark.asyncio
    async def test_creates_missing_wallets_and_repairs_drift(
        self, session, make_user, fund, balance_of
    ):
        drifted = await make_user()
        without_wallet = await make_user()
        await fund(drifted, Decimal("800"))
        await session.execute(
            update(Wallet)
            .where(Wallet.user_id == drifted.id)
            .values(available_balance=Decimal("999"))
        )
        await session.commit()

        report = await WalletSyncService(session, batch_size=1).sync_wallet_balances()

        assert report.synced == 2
        assert report.created == 1
        assert report.updated == 1
        assert report.errors == []
        assert await balance_of(drifted) == Decimal("800.00")
        assert await balance_of(without_wallet) == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_second_run_changes_nothing(self, session, make_user, fund):
        user = await make_user()
        await fund(user, Decimal("100"))

        await WalletSyncService(session).sync_wallet_balances()
        report = await WalletSyncService(session).sync_wallet_balances()

        assert report.updated == 0
        assert report.created == 0
