"""
Admin config repository.

Data access layer for AdminConfigDocument and AuditLog models.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.admin_config_document import AdminConfigDocument
from mlm_engine.models.audit_log import AuditLog
from mlm_engine.repositories.base import BaseRepository


class AdminConfigRepository(BaseRepository[AdminConfigDocument]):
    """Admin config document repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize admin config repository."""
        super().__init__(AdminConfigDocument, session)

    async def get_documents(self) -> dict[str, dict[str, Any]]:
        """All stored documents keyed by name."""
        result = await self.session.execute(select(AdminConfigDocument))
        return {doc.key: doc.data for doc in result.scalars().all()}

    async def upsert(
        self, key: str, data: dict[str, Any], updated_by: int | None
    ) -> AdminConfigDocument:
        """Insert or replace a document, bumping its version."""
        document = await self.get_by_id(key)
        if document is None:
            return await self.create(key=key, data=data, version=1, updated_by=updated_by)

        document.data = data
        document.version = document.version + 1
        document.updated_by = updated_by
        await self.session.flush()
        return document


class AuditLogRepository(BaseRepository[AuditLog]):
    """Audit log repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize audit log repository."""
        super().__init__(AuditLog, session)

    async def record(
        self,
        action: str,
        user_id: int | None = None,
        performed_by: int | None = None,
        **details: Any,
    ) -> AuditLog:
        """Append an audit record."""
        entry = AuditLog(
            action=action,
            user_id=user_id,
            performed_by=performed_by,
            details=details or None,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry
