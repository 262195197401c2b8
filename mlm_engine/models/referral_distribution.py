"""
Referral income distribution model.

Audit record of one (activation, beneficiary, level) decision: either a
credit or a recorded skip with its reason. The unique constraint is the
idempotency key of the referral engine.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_engine.models.base import Base
from mlm_engine.models.types import MoneyType, PercentType


class ReferralIncomeDistribution(Base):
    """ReferralIncomeDistribution model - per-level referral payouts."""

    __tablename__ = "referral_income_distributions"
    __table_args__ = (
        UniqueConstraint(
            'activation_id', 'beneficiary_id', 'level',
            name='uq_referral_distribution_triple'
        ),
        CheckConstraint('level >= 1', name='level_positive'),
        CheckConstraint('amount >= 0', name='amount_non_negative'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    activation_id: Mapped[int] = mapped_column(
        ForeignKey("activations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    beneficiary_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    source_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    income_type: Mapped[str] = mapped_column(String(40), nullable=False)
    percent: Mapped[Decimal] = mapped_column(PercentType, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False)  # CREDITED, SKIPPED
    skip_reason: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ledger_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("ledger_entries.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<ReferralIncomeDistribution(activation_id={self.activation_id}, "
            f"beneficiary_id={self.beneficiary_id}, level={self.level}, "
            f"status={self.status})>"
        )

    @property
    def ledger_source_id(self) -> str:
        """Source id used for the wallet credit of this record."""
        return f"{self.activation_id}:{self.beneficiary_id}:{self.level}"
