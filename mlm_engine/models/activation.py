"""
Activation model.

One funded activation (purchase) of a package by a user. Referral income and
daily ROI are computed from these records.
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
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_engine.models.base import Base
from mlm_engine.models.enums import ActivationSource
from mlm_engine.models.types import MoneyType


class Activation(Base):
    """Activation model - funded package purchases."""

    __tablename__ = "activations"
    __table_args__ = (
        CheckConstraint('amount > 0', name='amount_positive'),
        CheckConstraint('roi_days_paid >= 0', name='roi_days_non_negative'),
        Index('idx_activations_pending_referral', 'referral_processed', 'id'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    package_id: Mapped[int | None] = mapped_column(
        ForeignKey("packages.id", ondelete="SET NULL"), nullable=True
    )
    plan_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    program_type: Mapped[str] = mapped_column(String(20), nullable=False)

    # Funding
    source: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ActivationSource.PAYMENT_GATEWAY.value
    )
    sponsor_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    payment_reference: Mapped[str | None] = mapped_column(
        String(128), unique=True, nullable=True
    )
    activated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    # Referral income processing
    referral_processed: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    referral_processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    referral_last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Daily ROI progress (working days paid)
    roi_days_paid: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    roi_completed: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<Activation(id={self.id}, user_id={self.user_id}, "
            f"amount={self.amount}, source={self.source})>"
        )
