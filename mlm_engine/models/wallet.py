"""
Wallet model.

One wallet per user. The balance is only changed by conditional UPDATE
statements issued by the wallet ledger.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from mlm_engine.models.base import Base
from mlm_engine.models.types import MoneyType


class Wallet(Base):
    """Wallet model - spendable balance per user."""

    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint(
            'available_balance >= 0',
            name='available_balance_non_negative'
        ),
        CheckConstraint(
            'total_credited >= 0', name='total_credited_non_negative'
        ),
        CheckConstraint(
            'total_debited >= 0', name='total_debited_non_negative'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    available_balance: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    total_credited: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    total_debited: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )

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
            f"<Wallet(user_id={self.user_id}, "
            f"available_balance={self.available_balance})>"
        )
