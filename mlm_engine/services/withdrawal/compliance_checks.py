"""
Withdrawal compliance checks module.

Earnings cap block, KYC, bank verification for bank payouts, required directs.
"""

from loguru import logger

from mlm_engine.config.admin_config import RenewalConfig, WithdrawalConfig
from mlm_engine.models.user import User
from mlm_engine.repositories.user_repository import UserRepository
from mlm_engine.services.cap.tracker import is_withdrawal_blocked


class ComplianceChecksMixin:
    """Mixin providing verification and cap checks."""

    config: WithdrawalConfig
    renewals: RenewalConfig
    user_repo: UserRepository

    async def check_cap_block(self, user: User) -> tuple[bool, str | None]:
        if is_withdrawal_blocked(user, self.renewals):
            logger.info(f"Withdrawal blocked: user {user.id} reached earnings cap")
            return False, self.renewals.renewal_required_message
        return True, None

    async def check_kyc(self, user: User) -> tuple[bool, str | None]:
        if self.config.require_kyc and not user.kyc_verified:
            return False, "KYC verification is required before withdrawing"
        return True, None

    async def check_bank_verified(self, user: User, method: str) -> tuple[bool, str | None]:
        if method != "bank":
            return True, None
        if self.config.require_bank_verified and not user.bank_verified:
            return False, "Verify your bank details before withdrawing"
        return True, None

    async def check_directs_count(self, user: User) -> tuple[bool, str | None]:
        required = self.config.require_directs_count
        if required <= 0:
            return True, None
        directs = await self.user_repo.count_active_directs(user.id)
        if directs < required:
            return False, (
                f"At least {required} active direct referrals are required "
                f"(you have {directs})"
            )
        return True, None
