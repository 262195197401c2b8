"""
User model.

Represents a platform member: identity, single upline reference, program,
lifecycle status and earnings cap state.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_engine.models.base import Base
from mlm_engine.models.enums import (
    ACTIVE_USER_STATUSES,
    CapStatus,
    ProgramType,
    UserRole,
    UserStatus,
)
from mlm_engine.models.types import MoneyType


class User(Base):
    """User model - platform members."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            'cumulative_earnings >= 0',
            name='cumulative_earnings_non_negative'
        ),
        CheckConstraint(
            'over_cap_earnings >= 0',
            name='over_cap_earnings_non_negative'
        ),
        CheckConstraint(
            'earnings_cap >= 0', name='earnings_cap_non_negative'
        ),
        CheckConstraint(
            'referrer_id IS NULL OR referrer_id <> id',
            name='not_own_referrer'
        ),
        Index('idx_users_status_window', 'status', 'activation_window_started_at'),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Identity
    uid: Mapped[str] = mapped_column(
        String(128), unique=True, index=True, nullable=False
    )
    email: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True
    )
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserRole.USER.value
    )

    # Referral tree (single upline pointer)
    referral_code: Mapped[str] = mapped_column(
        String(32), unique=True, index=True, nullable=False
    )
    referrer_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Program and lifecycle
    program_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProgramType.INVESTOR.value
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=UserStatus.PENDING_ACTIVATION.value,
        index=True,
    )
    activation_window_started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    activation_amount: Mapped[Decimal | None] = mapped_column(
        MoneyType, nullable=True
    )
    activation_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    active_plan_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )
    blocked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Verification gates
    email_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    kyc_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    bank_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    # Admin hold, independent from cap state
    withdrawal_blocked: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    # Earnings cap
    cap_base_amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    earnings_cap: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    cumulative_earnings: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    over_cap_earnings: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    cap_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CapStatus.ACTIVE.value
    )
    cap_cycle: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1
    )
    cap_reached_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<User(id={self.id}, uid={self.uid!r}, status={self.status}, "
            f"program={self.program_type})>"
        )

    @property
    def is_active_member(self) -> bool:
        return self.status in ACTIVE_USER_STATUSES

    @property
    def is_admin(self) -> bool:
        return self.role in (UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value)
