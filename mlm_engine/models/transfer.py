"""
User transfer model.

Wallet-to-wallet transfer. The sender is debited ``amount``; the recipient
is credited ``net_amount`` (``amount - fee``).
"""

from datetime import UTC, datetime
from decimal import Decimal

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
from mlm_engine.models.enums import TransferStatus
from mlm_engine.models.types import MoneyType


class UserTransfer(Base):
    """UserTransfer model - balance transfers between users."""

    __tablename__ = "user_transfers"
    __table_args__ = (
        CheckConstraint('amount > 0', name='amount_positive'),
        CheckConstraint('fee >= 0', name='fee_non_negative'),
        CheckConstraint('net_amount + fee = amount', name='amount_equals_net_plus_fee'),
        CheckConstraint('sender_id <> recipient_id', name='not_self_transfer'),
        Index('idx_transfers_sender_created', 'sender_id', 'created_at'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    sender_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    recipient_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    fee: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TransferStatus.COMPLETED.value
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<UserTransfer(id={self.id}, {self.sender_id}->{self.recipient_id}, "
            f"amount={self.amount})>"
        )
