"""Integration tests for activations and the activation window."""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from mlm_engine.config.admin_config import (
    ActivationRulesConfig,
    ConfigSnapshot,
    FeatureConfig,
)
from mlm_engine.models.activation import Activation
from mlm_engine.models.enums import ActivationSource, UserRole, UserStatus
from mlm_engine.services.activation import ActivationService, AutoBlockService
from mlm_engine.utils.datetime_utils import utc_now
from mlm_engine.utils.exceptions import (
    FeatureDisabledError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidRequestError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
)


pytestmark = pytest.mark.integration

SPONSOR_ON = ConfigSnapshot(features=FeatureConfig(enable_sponsor_activation=True))


async def activation_count(session) -> int:
    return await session.scalar(select(func.count()).select_from(Activation))


@pytest.fixture
async def pending_pair(session, make_user, make_package):
    """An active referrer and a pending user they referred, plus a 10000 plan."""
    referrer = await make_user()
    member = await make_user(referrer=referrer, status=UserStatus.PENDING_ACTIVATION.value)
    await make_package()
    await session.commit()
    return referrer, member


class TestPaymentActivation:
    """Activation from a confirmed gateway payment."""

    @pytest.mark.asyncio
    async def test_activates_and_pays_referrer(
        self, session, config, pending_pair, balance_of, user_column
    ):
        referrer, member = pending_pair

        activation, outcome = await ActivationService(session, config).activate_from_payment(
            member.id, "INV10K", "pay_001", Decimal("10000")
        )

        assert outcome is not None
        assert activation.source == ActivationSource.PAYMENT_GATEWAY.value
        assert await user_column(member, "status") == UserStatus.ACTIVE_INVESTOR.value
        assert Decimal(str(await user_column(member, "earnings_cap"))) == Decimal("20000")
        assert await balance_of(referrer) == Decimal("500.00")

    @pytest.mark.asyncio
    async def test_replayed_payment_is_a_no_op(
        self, session, config, pending_pair, balance_of
    ):
        referrer, member = pending_pair
        service = ActivationService(session, config)

        first, _ = await service.activate_from_payment(member.id, "INV10K", "pay_001")
        second, outcome = await service.activate_from_payment(member.id, "INV10K", "pay_001")

        assert second.id == first.id
        assert outcome is None
        assert await activation_count(session) == 1
        assert await balance_of(referrer) == Decimal("500.00")

    @pytest.mark.asyncio
    async def test_amount_mismatch(self, session, config, pending_pair, user_column):
        _, member = pending_pair

        with pytest.raises(InvalidAmountError):
            await ActivationService(session, config).activate_from_payment(
                member.id, "INV10K", "pay_001", Decimal("9000")
            )
        assert await user_column(member, "status") == UserStatus.PENDING_ACTIVATION.value
        assert await activation_count(session) == 0

    @pytest.mark.asyncio
    async def test_already_active_user(self, session, config, pending_pair):
        referrer, _ = pending_pair

        with pytest.raises(InvalidStateTransitionError):
            await ActivationService(session, config).activate_from_payment(
                referrer.id, "INV10K", "pay_002"
            )

    @pytest.mark.asyncio
    async def test_inactive_plan(self, session, config, pending_pair, make_package):
        _, member = pending_pair
        await make_package(plan_id="OLD", is_active=False)
        await session.commit()

        with pytest.raises(NotFoundError):
            await ActivationService(session, config).activate_from_payment(
                member.id, "OLD", "pay_003"
            )

    @pytest.mark.asyncio
    async def test_auto_blocked_user_can_still_activate(
        self, session, config, make_user, make_package, user_column
    ):
        member = await make_user(status=UserStatus.AUTO_BLOCKED.value)
        await make_package()
        await session.commit()

        await ActivationService(session, config).activate_from_payment(
            member.id, "INV10K", "pay_004"
        )

        assert await user_column(member, "status") == UserStatus.ACTIVE_INVESTOR.value


class TestSponsorActivation:
    """Activation paid from the sponsor's wallet."""

    @pytest.mark.asyncio
    async def test_disabled_by_default(self, session, config, pending_pair, wednesday):
        referrer, member = pending_pair
        with pytest.raises(FeatureDisabledError):
            await ActivationService(session, config).create_sponsor_activation(
                referrer, member.id, "INV10K", now=wednesday
            )

    @pytest.mark.asyncio
    async def test_sponsor_pays_and_earns_direct_income(
        self, session, pending_pair, fund, wednesday, balance_of, user_column,
        assert_ledger_matches,
    ):
        """15000 - 10000 plan + 500 direct income."""
        sponsor, member = pending_pair
        await fund(sponsor, Decimal("15000"))

        activation, _ = await ActivationService(session, SPONSOR_ON).create_sponsor_activation(
            sponsor, member.id, "INV10K", now=wednesday
        )

        assert activation.sponsor_id == sponsor.id
        assert await user_column(member, "status") == UserStatus.ACTIVE_INVESTOR.value
        assert await balance_of(sponsor) == Decimal("5500.00")
        await assert_ledger_matches(sponsor)

    @pytest.mark.asyncio
    async def test_amount_shown_to_sponsor_must_match_plan(
        self, session, pending_pair, fund, wednesday, balance_of, user_column
    ):
        sponsor, member = pending_pair
        await fund(sponsor, Decimal("15000"))
        service = ActivationService(session, SPONSOR_ON)

        with pytest.raises(InvalidAmountError) as exc:
            await service.create_sponsor_activation(
                sponsor, member.id, "INV10K", expected_amount=Decimal("5000"), now=wednesday
            )
        assert exc.value.details == {"sent": "5000.00", "expected": "10000.00"}
        assert await balance_of(sponsor) == Decimal("15000.00")
        assert await user_column(member, "status") == UserStatus.PENDING_ACTIVATION.value

        await session.refresh(sponsor)
        activation, _ = await service.create_sponsor_activation(
            sponsor, member.id, "INV10K", expected_amount=Decimal("10000"), now=wednesday
        )
        assert activation.amount == Decimal("10000")

    @pytest.mark.asyncio
    async def test_insufficient_balance(
        self, session, pending_pair, fund, wednesday, balance_of, user_column
    ):
        sponsor, member = pending_pair
        await fund(sponsor, Decimal("5000"))

        with pytest.raises(InsufficientFundsError):
            await ActivationService(session, SPONSOR_ON).create_sponsor_activation(
                sponsor, member.id, "INV10K", now=wednesday
            )
        assert await balance_of(sponsor) == Decimal("5000.00")
        assert await user_column(member, "status") == UserStatus.PENDING_ACTIVATION.value

    @pytest.mark.asyncio
    async def test_minimum_balance_rule(self, session, pending_pair, fund, wednesday):
        config = ConfigSnapshot(
            features=FeatureConfig(
                enable_sponsor_activation=True,
                sponsor_activation_min_balance_rule=Decimal("1000"),
            )
        )
        sponsor, member = pending_pair
        await fund(sponsor, Decimal("10500"))

        with pytest.raises(InsufficientFundsError):
            await ActivationService(session, config).create_sponsor_activation(
                sponsor, member.id, "INV10K", now=wednesday
            )

    @pytest.mark.asyncio
    async def test_daily_limit(self, session, make_user, make_package, fund, wednesday):
        config = ConfigSnapshot(
            features=FeatureConfig(
                enable_sponsor_activation=True, sponsor_activation_daily_limit=1
            )
        )
        sponsor = await make_user()
        first = await make_user(status=UserStatus.PENDING_ACTIVATION.value)
        second = await make_user(status=UserStatus.PENDING_ACTIVATION.value)
        await make_package()
        await fund(sponsor, Decimal("25000"))
        second_id = second.id
        service = ActivationService(session, config)

        await service.create_sponsor_activation(sponsor, first.id, "INV10K", now=wednesday)
        with pytest.raises(RateLimitError):
            await service.create_sponsor_activation(
                sponsor, second_id, "INV10K", now=wednesday + timedelta(hours=1)
            )

        await session.refresh(sponsor)
        await service.create_sponsor_activation(
            sponsor, second_id, "INV10K", now=wednesday + timedelta(days=1)
        )

    @pytest.mark.asyncio
    async def test_plan_not_allowed(self, session, pending_pair, fund, wednesday):
        config = ConfigSnapshot(
            features=FeatureConfig(
                enable_sponsor_activation=True,
                sponsor_activation_allowed_plans=("INV50K",),
            )
        )
        sponsor, member = pending_pair
        await fund(sponsor, Decimal("15000"))

        with pytest.raises(InvalidRequestError):
            await ActivationService(session, config).create_sponsor_activation(
                sponsor, member.id, "INV10K", now=wednesday
            )

    @pytest.mark.asyncio
    async def test_cannot_sponsor_self(self, session, make_user, wednesday):
        sponsor = await make_user()
        await session.commit()

        with pytest.raises(InvalidRequestError):
            await ActivationService(session, SPONSOR_ON).create_sponsor_activation(
                sponsor, sponsor.id, "INV10K", now=wednesday
            )


class TestAdminActivation:
    @pytest.mark.asyncio
    async def test_admin_activates(self, session, config, pending_pair, make_user, user_column):
        _, member = pending_pair
        admin = await make_user(role=UserRole.ADMIN.value)
        await session.commit()

        activation, _ = await ActivationService(session, config).admin_activate(
            admin, member.id, "INV10K"
        )

        assert activation.source == ActivationSource.ADMIN.value
        assert await user_column(member, "status") == UserStatus.ACTIVE_INVESTOR.value

    @pytest.mark.asyncio
    async def test_requires_admin(self, session, config, pending_pair):
        referrer, member = pending_pair
        with pytest.raises(PermissionDeniedError):
            await ActivationService(session, config).admin_activate(
                referrer, member.id, "INV10K"
            )


class TestAutoBlock:
    """Activation window enforcement."""

    @pytest.fixture
    async def expired(self, session, make_user):
        """A user pending for ten days and one who signed up yesterday."""
        now = utc_now()
        stale = await make_user(
            status=UserStatus.PENDING_ACTIVATION.value,
            activation_window_started_at=now - timedelta(days=10),
        )
        fresh = await make_user(
            status=UserStatus.PENDING_ACTIVATION.value,
            activation_window_started_at=now - timedelta(days=1),
        )
        await session.commit()
        return stale, fresh

    @pytest.mark.asyncio
    async def test_blocks_only_expired_users(self, session, config, expired, user_column):
        stale, fresh = expired

        report = await AutoBlockService(session, config).run_auto_block()

        assert report.blocked == 1
        assert await user_column(stale, "status") == UserStatus.AUTO_BLOCKED.value
        assert await user_column(fresh, "status") == UserStatus.PENDING_ACTIVATION.value

    @pytest.mark.asyncio
    async def test_repeated_runs_block_nobody_twice(self, session, config, expired):
        service = AutoBlockService(session, config, batch_size=1)

        first = await service.run_auto_block()
        second = await service.run_auto_block()

        assert first.blocked == 1
        assert second.blocked == 0

    @pytest.mark.asyncio
    async def test_hard_block(self, session, expired, user_column):
        config = ConfigSnapshot(activation_rules=ActivationRulesConfig(block_type="hard"))
        stale, _ = expired

        await AutoBlockService(session, config).run_auto_block()

        assert await user_column(stale, "status") == UserStatus.BLOCKED.value

    @pytest.mark.asyncio
    async def test_disabled(self, session, expired):
        config = ConfigSnapshot(activation_rules=ActivationRulesConfig(auto_block_enabled=False))

        report = await AutoBlockService(session, config).run_auto_block()

        assert report.enabled is False
        assert report.blocked == 0

    @pytest.mark.asyncio
    async def test_unblock_without_window_reset_blocks_again(
        self, session, config, expired, make_user, user_column
    ):
        stale, _ = expired
        admin = await make_user(role=UserRole.ADMIN.value)
        await session.commit()
        service = AutoBlockService(session, config)
        await service.run_auto_block()

        await service.unblock_user(admin, stale.id)
        assert await user_column(stale, "status") == UserStatus.PENDING_ACTIVATION.value

        report = await service.run_auto_block()
        assert report.blocked == 1

    @pytest.mark.asyncio
    async def test_unblock_with_window_reset(self, session, expired, make_user, user_column):
        config = ConfigSnapshot(
            activation_rules=ActivationRulesConfig(reset_window_on_unblock=True)
        )
        stale, _ = expired
        admin = await make_user(role=UserRole.ADMIN.value)
        await session.commit()
        service = AutoBlockService(session, config)
        await service.run_auto_block()

        await service.unblock_user(admin, stale.id)
        report = await service.run_auto_block()

        assert report.blocked == 0
        assert await user_column(stale, "status") == UserStatus.PENDING_ACTIVATION.value

    @pytest.mark.asyncio
    async def test_unblock_requires_admin(self, session, config, expired):
        stale, fresh = expired
        await AutoBlockService(session, config).run_auto_block()

        with pytest.raises(PermissionDeniedError):
            await AutoBlockService(session, config).unblock_user(fresh, stale.id)

    @pytest.mark.asyncio
    async def test_pending_user_cannot_be_unblocked(
        self, session, config, expired, make_user
    ):
        _, fresh = expired
        admin = await make_user(role=UserRole.ADMIN.value)
        await session.commit()

        with pytest.raises(InvalidStateTransitionError):
            await AutoBlockService(session, config).unblock_user(admin, fresh.id)
