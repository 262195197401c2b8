"""Integration tests for user-to-user transfers."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from mlm_engine.config.admin_config import ConfigSnapshot, FeatureConfig
from mlm_engine.config.settings import settings
from mlm_engine.models.enums import FeeType, UserStatus
from mlm_engine.models.transfer import UserTransfer
from mlm_engine.services.transfer import TransferService
from mlm_engine.utils.exceptions import (
    FeatureDisabledError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
)


pytestmark = pytest.mark.integration

TRANSFERS_ON = ConfigSnapshot(
    features=FeatureConfig(
        enable_user_transfers=True,
        enable_transfer_fee=True,
        transfer_fee_type=FeeType.PERCENT,
        transfer_fee_value=Decimal("2"),
    )
)


@pytest.fixture
async def pair(session, make_user, fund):
    sender = await make_user()
    recipient = await make_user()
    await fund(sender, Decimal("1000"))
    return sender, recipient


async def transfer_count(session) -> int:
    return await session.scalar(select(func.count()).select_from(UserTransfer))


class TestTransfers:
    """Successful transfers and their fee."""

    @pytest.mark.asyncio
    async def test_transfer_with_fee(
        self, session, pair, wednesday, balance_of, assert_ledger_matches
    ):
        sender, recipient = pair

        transfer = await TransferService(session, TRANSFERS_ON).create_transfer(
            sender, recipient.id, Decimal("300"), note="Rent", now=wednesday
        )

        assert transfer.fee == Decimal("6.00")
        assert transfer.net_amount == Decimal("294.00")
        assert await balance_of(sender) == Decimal("700.00")
        assert await balance_of(recipient) == Decimal("294.00")
        await assert_ledger_matches(sender, recipient)

    @pytest.mark.asyncio
    async def test_without_fee(self, session, pair, wednesday, balance_of):
        sender, recipient = pair
        config = ConfigSnapshot(features=FeatureConfig(enable_user_transfers=True))

        await TransferService(session, config).create_transfer(
            sender, recipient.id, Decimal("300"), now=wednesday
        )

        assert await balance_of(recipient) == Decimal("300.00")


class TestTransferRefusals:
    """Refused transfers change nothing."""

    @pytest.mark.asyncio
    async def test_disabled_by_default(self, session, config, pair, wednesday):
        sender, recipient = pair
        with pytest.raises(FeatureDisabledError):
            await TransferService(session, config).create_transfer(
                sender, recipient.id, Decimal("300"), now=wednesday
            )

    @pytest.mark.asyncio
    async def test_emergency_stop(self, session, pair, wednesday, monkeypatch):
        monkeypatch.setattr(settings, "emergency_stop_transfers", True)
        sender, recipient = pair
        with pytest.raises(FeatureDisabledError):
            await TransferService(session, TRANSFERS_ON).create_transfer(
                sender, recipient.id, Decimal("300"), now=wednesday
            )

    @pytest.mark.asyncio
    async def test_insufficient_balance_is_atomic(
        self, session, pair, wednesday, balance_of
    ):
        """A failed debit leaves no transfer and no credit behind."""
        sender, recipient = pair

        with pytest.raises(InsufficientFundsError):
            await TransferService(session, TRANSFERS_ON).create_transfer(
                sender, recipient.id, Decimal("5000"), now=wednesday
            )

        assert await transfer_count(session) == 0
        assert await balance_of(sender) == Decimal("1000.00")
        assert await balance_of(recipient) == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_to_self(self, session, pair, wednesday):
        sender, _ = pair
        with pytest.raises(InvalidRequestError):
            await TransferService(session, TRANSFERS_ON).create_transfer(
                sender, sender.id, Decimal("300"), now=wednesday
            )

    @pytest.mark.asyncio
    async def test_below_minimum(self, session, pair, wednesday):
        sender, recipient = pair
        with pytest.raises(InvalidAmountError):
            await TransferService(session, TRANSFERS_ON).create_transfer(
                sender, recipient.id, Decimal("50"), now=wednesday
            )

    @pytest.mark.asyncio
    async def test_unknown_recipient(self, session, pair, wednesday):
        sender, _ = pair
        with pytest.raises(NotFoundError):
            await TransferService(session, TRANSFERS_ON).create_transfer(
                sender, 999, Decimal("300"), now=wednesday
            )

    @pytest.mark.asyncio
    async def test_blocked_sender(self, session, make_user, fund, wednesday):
        sender = await make_user(status=UserStatus.AUTO_BLOCKED.value)
        recipient = await make_user()
        await fund(sender, Decimal("1000"))

        with pytest.raises(PermissionDeniedError):
            await TransferService(session, TRANSFERS_ON).create_transfer(
                sender, recipient.id, Decimal("300"), now=wednesday
            )

    @pytest.mark.asyncio
    async def test_unverified_recipient(self, session, make_user, fund, wednesday):
        sender = await make_user()
        recipient = await make_user(email_verified=False)
        await fund(sender, Decimal("1000"))

        with pytest.raises(InvalidRequestError):
            await TransferService(session, TRANSFERS_ON).create_transfer(
                sender, recipient.id, Decimal("300"), now=wednesday
            )

    @pytest.mark.asyncio
    async def test_cooldown(self, session, pair, wednesday, balance_of):
        sender, recipient = pair
        recipient_id = recipient.id
        service = TransferService(session, TRANSFERS_ON)
        await service.create_transfer(sender, recipient_id, Decimal("100"), now=wednesday)

        with pytest.raises(RateLimitError):
            await service.create_transfer(
                sender, recipient_id, Decimal("100"), now=wednesday + timedelta(minutes=5)
            )

        await session.refresh(sender)
        await service.create_transfer(
            sender, recipient_id, Decimal("100"), now=wednesday + timedelta(minutes=31)
        )
        assert await balance_of(sender) == Decimal("800.00")
