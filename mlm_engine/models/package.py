"""
Package model.

Purchasable plans. Activations copy the amount so later edits never change
historical records.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mlm_engine.models.base import Base
from mlm_engine.models.enums import ProgramType
from mlm_engine.models.types import MoneyType


class Package(Base):
    """Package model - investment and leader plans."""

    __tablename__ = "packages"
    __table_args__ = (
        CheckConstraint('amount > 0', name='amount_positive'),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    plan_id: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    program_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProgramType.INVESTOR.value
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Package(plan_id={self.plan_id!r}, amount={self.amount})>"
