"""Integration tests for daily ROI."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from sqlalchemy import select

from mlm_engine.config.admin_config import ConfigSnapshot, IncomeRulesConfig, RoiRule
from mlm_engine.models.activation import Activation
from mlm_engine.models.enums import CapStatus, ProgramType, UserStatus
from mlm_engine.services.roi import RoiService


pytestmark = pytest.mark.integration

MONDAY = datetime(2026, 10, 19, 10, 0, tzinfo=UTC)
PREVIOUS_MONDAY = datetime(2026, 10, 12, 10, 0, tzinfo=UTC)
PREVIOUS_FRIDAY = datetime(2026, 10, 16, 10, 0, tzinfo=UTC)


async def days_paid(session, activation: Activation) -> int:
    return await session.scalar(
        select(Activation.roi_days_paid).where(Activation.id == activation.id)
    )


class TestDailyRoi:
    """ROI payment per working day."""

    @pytest.mark.asyncio
    async def test_pays_each_working_day_once(
        self, session, config, make_user, make_activation, balance_of, assert_ledger_matches
    ):
        """Tuesday to Monday is five working days of 1.5% on 10000."""
        investor = await make_user()
        activation = await make_activation(investor, activated_at=PREVIOUS_MONDAY)
        await session.commit()
        service = RoiService(session, config)

        report = await service.pay_daily_roi(MONDAY)
        again = await service.pay_daily_roi(MONDAY)

        assert report.days_paid == 5
        assert report.total_paid == Decimal("750.00")
        assert again.days_paid == 0
        assert await days_paid(session, activation) == 5
        assert await balance_of(investor) == Decimal("750.00")
        await assert_ledger_matches(investor)

    @pytest.mark.asyncio
    async def test_weekend_is_skipped(
        self, session, config, make_user, make_activation, saturday, balance_of
    ):
        investor = await make_user()
        await make_activation(investor, activated_at=PREVIOUS_MONDAY)
        await session.commit()

        report = await RoiService(session, config).pay_daily_roi(saturday)

        assert report.skip_reasons["nonWorkingDay"] == 1
        assert report.activations == 0
        assert await balance_of(investor) == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_security_deposit_rate(
        self, session, config, make_user, make_activation, balance_of
    ):
        """50000 and above earns 2% a day."""
        investor = await make_user(amount=Decimal("50000"))
        await make_activation(investor, amount=Decimal("50000"), activated_at=PREVIOUS_FRIDAY)
        await session.commit()

        await RoiService(session, config).pay_daily_roi(MONDAY)

        assert await balance_of(investor) == Decimal("1000.00")

    @pytest.mark.asyncio
    async def test_term_completes(
        self, session, make_user, make_activation, balance_of
    ):
        config = ConfigSnapshot(
            income_rules=IncomeRulesConfig(
                without_security=RoiRule(daily_percent=Decimal("1.5"), max_working_days=3)
            )
        )
        investor = await make_user()
        activation = await make_activation(investor, activated_at=PREVIOUS_MONDAY)
        await session.commit()
        service = RoiService(session, config)

        report = await service.pay_daily_roi(MONDAY)
        again = await service.pay_daily_roi(MONDAY)

        assert report.days_paid == 3
        assert report.completed == 1
        assert again.activations == 0
        assert await balance_of(investor) == Decimal("450.00")
        assert await session.scalar(
            select(Activation.roi_completed).where(Activation.id == activation.id)
        ) is True

    @pytest.mark.asyncio
    async def test_cap_stops_roi(
        self, session, config, make_user, make_activation, balance_of, user_column
    ):
        investor = await make_user(earnings_cap=Decimal("300"))
        activation = await make_activation(investor, activated_at=PREVIOUS_MONDAY)
        await session.commit()

        report = await RoiService(session, config).pay_daily_roi(MONDAY)

        assert report.days_paid == 2
        assert report.skip_reasons["capReached"] == 1
        assert await days_paid(session, activation) == 2
        assert await balance_of(investor) == Decimal("300.00")
        assert await user_column(investor, "cap_status") == CapStatus.CAP_REACHED.value


class TestRoiEligibility:
    """Activations and users that earn no ROI."""

    @pytest.mark.asyncio
    async def test_leader_activations_earn_no_roi(
        self, session, config, make_user, make_activation, balance_of
    ):
        leader = await make_user(
            status=UserStatus.ACTIVE_LEADER.value, program=ProgramType.LEADER.value
        )
        await make_activation(
            leader, program=ProgramType.LEADER.value, activated_at=PREVIOUS_MONDAY
        )
        await session.commit()

        report = await RoiService(session, config).pay_daily_roi(MONDAY)

        assert report.activations == 0
        assert await balance_of(leader) == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_blocked_investor_is_skipped(
        self, session, config, make_user, make_activation, balance_of
    ):
        investor = await make_user(status=UserStatus.BLOCKED.value)
        await make_activation(investor, activated_at=PREVIOUS_MONDAY)
        await session.commit()

        report = await RoiService(session, config).pay_daily_roi(MONDAY)

        assert report.skip_reasons["notActiveInvestor"] == 1
        assert await balance_of(investor) == Decimal("0.00")
