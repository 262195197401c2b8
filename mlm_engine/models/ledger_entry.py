"""
Ledger entry model.

Append-only record of every wallet credit and debit. The unique key on
(user, direction, source_type, source_id) makes each source post at most
once, so replays are no-ops.
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
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_engine.models.base import Base
from mlm_engine.models.types import JSONType, MoneyType


class LedgerEntry(Base):
    """LedgerEntry model - wallet movements."""

    __tablename__ = "ledger_entries"
    __table_args__ = (
        UniqueConstraint(
            'user_id', 'direction', 'source_type', 'source_id',
            name='uq_ledger_entries_source'
        ),
        CheckConstraint('amount > 0', name='amount_positive'),
        Index('idx_ledger_user_created', 'user_id', 'created_at'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    direction: Mapped[str] = mapped_column(String(10), nullable=False)  # credit, debit
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    source_type: Mapped[str] = mapped_column(String(40), nullable=False)
    source_id: Mapped[str] = mapped_column(String(128), nullable=False)
    # Income type for credits that count as earnings
    income_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    balance_after: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry(id={self.id}, user_id={self.user_id}, "
            f"{self.direction} {self.amount} {self.source_type}:{self.source_id})>"
        )
