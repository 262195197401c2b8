"""Fixtures for unit tests (no database)."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from mlm_engine.models.enums import CapStatus, ProgramType, UserRole, UserStatus
from mlm_engine.models.user import User


@pytest.fixture
def mock_session():
    """Mock AsyncSession for tests without a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.delete = MagicMock()
    session.refresh = AsyncMock()
    return session


@pytest.fixture
def active_investor() -> User:
    """Transient active investor with verified bank details."""
    return User(
        id=42,
        uid="investor-42",
        referral_code="INV42",
        role=UserRole.USER.value,
        program_type=ProgramType.INVESTOR.value,
        status=UserStatus.ACTIVE_INVESTOR.value,
        email_verified=True,
        kyc_verified=False,
        bank_verified=True,
        withdrawal_blocked=False,
        cap_base_amount=Decimal("10000"),
        earnings_cap=Decimal("20000"),
        cumulative_earnings=Decimal("0"),
        over_cap_earnings=Decimal("0"),
        cap_status=CapStatus.ACTIVE.value,
        cap_cycle=1,
    )
