"""
Fixtures for integration tests.

Each test gets its own SQLite file. Transactions start with
``BEGIN IMMEDIATE`` so concurrent sessions serialize on the write lock the
way row locks serialize them on PostgreSQL, and SAVEPOINTs work.
"""

import itertools
from collections.abc import AsyncIterator
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import event, inspect, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from mlm_engine.config.admin_config import ProgramConfig
from mlm_engine.models import Base
from mlm_engine.models.activation import Activation
from mlm_engine.models.enums import (
    ACTIVE_USER_STATUSES,
    LedgerSource,
    ProgramType,
    UserRole,
    UserStatus,
)
from mlm_engine.models.package import Package
from mlm_engine.models.user import User
from mlm_engine.models.wallet import Wallet
from mlm_engine.repositories.wallet_repository import LedgerRepository
from mlm_engine.services.cap.tracker import compute_cap
from mlm_engine.services.wallet.ledger import WalletLedger
from mlm_engine.utils.datetime_utils import utc_now
from mlm_engine.utils.money import quantize


@pytest.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'mlm_engine.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
async def session(session_maker) -> AsyncIterator[AsyncSession]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def make_user(session):
    """
    Factory for users.

    Active users get a cap computed like a real activation; everyone gets
    verified email and bank details unless overridden.
    """
    counter = itertools.count(1)

    async def _make(
        referrer: User | None = None,
        status: str = UserStatus.ACTIVE_INVESTOR.value,
        program: str = ProgramType.INVESTOR.value,
        amount: Decimal = Decimal("10000"),
        role: str = UserRole.USER.value,
        **fields,
    ) -> User:
        n = next(counter)
        values = {
            "uid": f"user-{n}",
            "name": f"User {n}",
            "email": f"user{n}@example.com",
            "referral_code": f"CODE{n:04d}",
            "referrer_id": referrer.id if referrer else None,
            "program_type": program,
            "status": status,
            "role": role,
            "email_verified": True,
            "bank_verified": True,
        }
        if status in ACTIVE_USER_STATUSES:
            base, cap = compute_cap(program, amount, ProgramConfig())
            values.update(
                activation_amount=amount,
                activation_date=utc_now() - timedelta(days=30),
                cap_base_amount=base,
                earnings_cap=cap,
            )
        values.update(fields)
        user = User(**values)
        session.add(user)
        await session.flush()
        return user

    return _make


@pytest.fixture
def make_package(session):
    async def _make(
        plan_id: str = "INV10K",
        amount: Decimal = Decimal("10000"),
        program: str = ProgramType.INVESTOR.value,
        is_active: bool = True,
    ) -> Package:
        package = Package(
            plan_id=plan_id,
            name=f"Plan {plan_id}",
            amount=amount,
            program_type=program,
            is_active=is_active,
        )
        session.add(package)
        await session.flush()
        return package

    return _make


@pytest.fixture
def make_activation(session):
    async def _make(
        user: User,
        amount: Decimal = Decimal("10000"),
        program: str = ProgramType.INVESTOR.value,
        **fields,
    ) -> Activation:
        activation = Activation(
            user_id=user.id,
            plan_id="INV10K",
            amount=amount,
            program_type=program,
            **fields,
        )
        session.add(activation)
        await session.flush()
        return activation

    return _make


@pytest.fixture
def fund(session):
    """Credit a wallet through the ledger, as an admin adjustment would."""
    counter = itertools.count(1)

    async def _fund(user: User | int, amount: Decimal) -> None:
        await WalletLedger(session).credit(
            user_id_of(user),
            amount,
            LedgerSource.ADMIN_ADJUSTMENT.value,
            f"test-funding-{next(counter)}",
        )
        await session.commit()

    return _fund


def user_id_of(user: User | int) -> int:
    """
    Primary key of a user, read from its identity key.

    A rolled back session expires every instance; reading ``user.id`` then
    would need a lazy refresh, which async sessions cannot do.
    """
    if isinstance(user, int):
        return user
    return inspect(user).identity[0]


@pytest.fixture
def balance_of(session):
    """Read the stored wallet balance (never from cached objects)."""

    async def _balance(user: User | int) -> Decimal:
        result = await session.execute(
            select(Wallet.available_balance).where(Wallet.user_id == user_id_of(user))
        )
        value = result.scalar_one_or_none()
        return quantize(value or 0)

    return _balance


@pytest.fixture
def user_column(session):
    """Read one column of a user row straight from the database."""

    async def _read(user: User | int, column: str):
        result = await session.execute(
            select(getattr(User, column)).where(User.id == user_id_of(user))
        )
        return result.scalar_one()

    return _read


@pytest.fixture
def assert_ledger_matches(session, balance_of):
    """Every wallet equals sum(credits) - sum(debits) of its ledger."""

    async def _check(*users: User | int) -> None:
        repo = LedgerRepository(session)
        for user in users:
            credits, debits = await repo.get_totals(user_id_of(user))
            assert await balance_of(user) == quantize(credits - debits)

    return _check
