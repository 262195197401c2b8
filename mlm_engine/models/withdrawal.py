"""
Withdrawal request model.

The gross amount is debited when the request is accepted; ``fee`` is
retained and ``net_amount`` is paid out.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
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
from mlm_engine.models.enums import WithdrawalStatus
from mlm_engine.models.types import JSONType, MoneyType


class WithdrawalRequest(Base):
    """WithdrawalRequest model - payout requests."""

    __tablename__ = "withdrawal_requests"
    __table_args__ = (
        CheckConstraint('amount > 0', name='amount_positive'),
        CheckConstraint('fee >= 0', name='fee_non_negative'),
        CheckConstraint('net_amount > 0', name='net_amount_positive'),
        CheckConstraint('net_amount + fee = amount', name='gross_equals_net_plus_fee'),
        Index('idx_withdrawals_user_status', 'user_id', 'status'),
        Index('idx_withdrawals_user_created', 'user_id', 'created_at'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)  # gross
    fee: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    fee_type: Mapped[str] = mapped_column(String(10), nullable=False)
    method: Mapped[str] = mapped_column(String(32), nullable=False)
    payout_details: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType, nullable=True
    )
    # user, payout_sweep
    origin: Mapped[str] = mapped_column(String(20), nullable=False, default="user")

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=WithdrawalStatus.REQUESTED.value
    )
    admin_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    payout_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)

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
        return (
            f"<WithdrawalRequest(id={self.id}, user_id={self.user_id}, "
            f"amount={self.amount}, status={self.status})>"
        )
