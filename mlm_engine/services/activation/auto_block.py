"""
Activation window enforcement.

Users who stay in PENDING_ACTIVATION past the activation window are blocked
in chunks. Each chunk is one conditional UPDATE, so a user activated in the
meantime is never blocked and repeated runs block nobody twice.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.admin_config import ConfigSnapshot
from mlm_engine.models.enums import UserStatus
from mlm_engine.models.user import User
from mlm_engine.repositories.admin_config_repository import AuditLogRepository
from mlm_engine.repositories.user_repository import UserRepository
from mlm_engine.services.base_service import BaseService, transaction
from mlm_engine.utils.datetime_utils import utc_now
from mlm_engine.utils.exceptions import (
    FeatureDisabledError,
    InvalidStateTransitionError,
    NotFoundError,
    PermissionDeniedError,
)


BLOCKED_STATUSES = (UserStatus.AUTO_BLOCKED.value, UserStatus.BLOCKED.value)


@dataclass
class AutoBlockReport:
    """Summary of one auto-block run."""

    checked: int = 0
    blocked: int = 0
    enabled: bool = True

    def to_dict(self) -> dict:
        return {"checked": self.checked, "blocked": self.blocked, "enabled": self.enabled}


class AutoBlockService(BaseService):
    """Blocks expired pending users and lets admins unblock them."""

    def __init__(
        self, session: AsyncSession, config: ConfigSnapshot, batch_size: int = 200
    ) -> None:
        super().__init__(session)
        self.rules = config.activation_rules
        self.batch_size = batch_size
        self.user_repo = UserRepository(session)
        self.audit_repo = AuditLogRepository(session)

    async def run_auto_block(self, now: datetime | None = None) -> AutoBlockReport:
        """
        Block users whose activation window has expired.

        A ``soft`` block sets AUTO_BLOCKED, which still allows activation;
        a ``hard`` block sets ``blocked``.
        """
        if not self.rules.auto_block_enabled:
            return AutoBlockReport(enabled=False)

        now = now or utc_now()
        cutoff = now - timedelta(days=self.rules.activation_window_days)
        new_status = (
            UserStatus.AUTO_BLOCKED.value
            if self.rules.block_type == "soft"
            else UserStatus.BLOCKED.value
        )
        report = AutoBlockReport()

        while True:
            ids = await self.user_repo.find_expired_pending_ids(cutoff, self.batch_size)
            if not ids:
                break
            report.checked += len(ids)

            result = await self.session.execute(
                update(User)
                .where(User.id.in_(ids))
                .where(User.status == UserStatus.PENDING_ACTIVATION.value)
                .where(User.activation_window_started_at <= cutoff)
                .values(status=new_status, blocked_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
            report.blocked += result.rowcount

            if len(ids) < self.batch_size:
                break

        if report.blocked:
            self.logger.info(
                "Auto-blocked users with expired activation window",
                extra={
                    "blocked": report.blocked,
                    "block_type": self.rules.block_type,
                    "cutoff": cutoff.isoformat(),
                },
            )
        return report

    @transaction
    async def unblock_user(self, admin: User, user_id: int) -> User:
        """
        Return a blocked user to PENDING_ACTIVATION.

        With ``resetWindowOnUnblock`` the activation window restarts now;
        otherwise the user must activate before the next auto-block run.
        """
        if not admin.is_admin:
            raise PermissionDeniedError("Admin access required")
        if not self.rules.allow_admin_unblock:
            raise FeatureDisabledError("Admin unblock is disabled")

        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)

        now = utc_now()
        values = {
            "status": UserStatus.PENDING_ACTIVATION.value,
            "blocked_at": None,
            "updated_at": now,
        }
        if self.rules.reset_window_on_unblock:
            values["activation_window_started_at"] = now

        result = await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .where(User.status.in_(BLOCKED_STATUSES))
            .where(User.activation_date.is_(None))
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise InvalidStateTransitionError(
                f"User cannot be unblocked from status {user.status}", user_id=user_id
            )

        await self.audit_repo.record(
            "user_unblocked",
            user_id=user_id,
            performed_by=admin.id,
            window_reset=self.rules.reset_window_on_unblock,
        )
        self.logger.info(
            "User unblocked",
            extra={"user_id": user_id, "admin_id": admin.id},
        )
        return user
