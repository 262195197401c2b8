"""
Renewal model.

One record per (user, cap cycle). Completing it resets the cap for the next
cycle; the unique key makes renewal of a cycle idempotent.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_engine.models.base import Base
from mlm_engine.models.enums import RenewalStatus
from mlm_engine.models.types import MoneyType


class Renewal(Base):
    """Renewal model - ID renewals after the earnings cap."""

    __tablename__ = "renewals"
    __table_args__ = (
        UniqueConstraint('user_id', 'cap_cycle', name='uq_renewals_user_cycle'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Cycle being closed by this renewal
    cap_cycle: Mapped[int] = mapped_column(Integer, nullable=False)
    method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RenewalStatus.REQUESTED.value
    )

    base_amount: Mapped[Decimal | None] = mapped_column(MoneyType, nullable=True)
    new_cap: Mapped[Decimal | None] = mapped_column(MoneyType, nullable=True)
    fee: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    plan_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    funded_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    payment_reference: Mapped[str | None] = mapped_column(
        String(128), unique=True, nullable=True
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<Renewal(user_id={self.user_id}, cap_cycle={self.cap_cycle}, "
            f"status={self.status})>"
        )
