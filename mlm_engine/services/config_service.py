"""
Config store service.

Loads admin documents into an immutable ``ConfigSnapshot`` and validates
documents before they are saved.
"""

from typing import Any

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.admin_config import (
    CONFIG_DOCUMENTS,
    ConfigSnapshot,
    ReferralIncomeConfig,
)
from mlm_engine.repositories.admin_config_repository import (
    AdminConfigRepository,
    AuditLogRepository,
)
from mlm_engine.services.base_service import BaseService, transaction
from mlm_engine.utils.exceptions import ConfigurationError, InvalidRequestError


class ConfigService(BaseService):
    """Read and write admin configuration documents."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.config_repo = AdminConfigRepository(session)
        self.audit_repo = AuditLogRepository(session)

    async def get_snapshot(self) -> ConfigSnapshot:
        """
        Load every document once and build a snapshot.

        Stored documents that no longer parse raise ``ConfigurationError``;
        absent documents fall back to defaults.
        """
        documents = await self.config_repo.get_documents()
        try:
            return ConfigSnapshot.from_documents(documents)
        except ValidationError as e:
            self.logger.error(
                "Stored admin config is invalid",
                extra={"errors": e.errors(include_url=False)},
            )
            raise ConfigurationError(f"Stored admin config is invalid: {e}") from e

    @transaction
    async def save_document(
        self, key: str, data: dict[str, Any], admin_id: int | None
    ) -> dict[str, Any]:
        """
        Validate and store one document.

        Unknown keys are dropped; the stored form uses camelCase keys with
        defaults filled in.

        Raises:
            InvalidRequestError: Unknown document or invalid values
        """
        model_cls = CONFIG_DOCUMENTS.get(key)
        if model_cls is None:
            raise InvalidRequestError(f"Unknown config document: {key}")

        try:
            document = model_cls.model_validate(data)
        except ValidationError as e:
            raise InvalidRequestError(
                f"Invalid {key} config",
                errors=[err["msg"] for err in e.errors(include_url=False)],
            ) from e

        if isinstance(document, ReferralIncomeConfig):
            errors = document.level_table_errors()
            if errors:
                raise InvalidRequestError("Invalid level income table", errors=errors)

        stored = document.model_dump(mode="json", by_alias=True)
        record = await self.config_repo.upsert(key, stored, admin_id)
        await self.audit_repo.record(
            "config_updated",
            performed_by=admin_id,
            key=key,
            version=record.version,
        )

        self.logger.info(
            "Admin config saved",
            extra={"key": key, "version": record.version, "admin_id": admin_id},
        )
        return stored
