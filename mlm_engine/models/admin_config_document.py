"""
Admin config document model.

Stores one JSON document per admin settings page, keyed by name
(``referralIncome``, ``withdrawals``, ...).
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mlm_engine.models.base import Base
from mlm_engine.models.types import JSONType


class AdminConfigDocument(Base):
    """AdminConfigDocument model - key/value settings documents."""

    __tablename__ = "admin_config_documents"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<AdminConfigDocument(key={self.key!r}, version={self.version})>"
