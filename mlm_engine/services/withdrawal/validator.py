"""
Withdrawal validation core module.

Contains the main validation logic and ValidationResult class.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.admin_config import ConfigSnapshot
from mlm_engine.models.user import User
from mlm_engine.repositories.user_repository import UserRepository
from mlm_engine.repositories.withdrawal_repository import WithdrawalRepository
from mlm_engine.services.withdrawal.basic_checks import BasicChecksMixin
from mlm_engine.services.withdrawal.compliance_checks import ComplianceChecksMixin
from mlm_engine.services.withdrawal.limit_checks import LimitChecksMixin
from mlm_engine.utils.exceptions import (
    CapReachedError,
    FeatureDisabledError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidRequestError,
    MLMError,
    PermissionDeniedError,
    RateLimitError,
)


@dataclass
class ValidationResult:
    """Result of withdrawal validation."""

    is_valid: bool
    error_message: str | None = None
    error_type: type[MLMError] | None = None

    @classmethod
    def success(cls) -> "ValidationResult":
        """Create a successful validation result."""
        return cls(is_valid=True)

    @classmethod
    def error(
        cls, message: str, error_type: type[MLMError] = InvalidRequestError
    ) -> "ValidationResult":
        """Create an error validation result."""
        return cls(is_valid=False, error_message=message, error_type=error_type)

    def raise_for_error(self) -> None:
        """Raise the matching domain exception when invalid."""
        if not self.is_valid:
            error_type = self.error_type or InvalidRequestError
            raise error_type(self.error_message or "Withdrawal request is invalid")


class WithdrawalValidator(
    BasicChecksMixin, ComplianceChecksMixin, LimitChecksMixin
):
    """Validator for withdrawal requests."""

    def __init__(self, session: AsyncSession, config: ConfigSnapshot) -> None:
        """
        Initialize withdrawal validator.

        Args:
            session: Database session
            config: Admin config snapshot
        """
        self.session = session
        self.config = config.withdrawals
        self.renewals = config.renewals
        self.user_repo = UserRepository(session)
        self.withdrawal_repo = WithdrawalRepository(session)

    async def validate_withdrawal_request(
        self,
        user: User,
        amount: Decimal,
        method: str,
        fee: Decimal,
        available_balance: Decimal,
        now: datetime,
        payout_details: dict[str, Any] | None = None,
    ) -> ValidationResult:
        """
        Run all validations and return result.

        Args:
            user: Requesting user (row locked by the caller)
            amount: Gross withdrawal amount
            method: Payout method
            fee: Fee that would be retained
            available_balance: Wallet balance
            now: Request time
            payout_details: Account details sent with the request

        Returns:
            ValidationResult with is_valid and optional error
        """
        # 1. Check emergency stop
        is_valid, error_msg = await self.check_emergency_stop()
        if not is_valid:
            return ValidationResult.error(error_msg, FeatureDisabledError)

        # 2. Check amount limits
        is_valid, error_msg = await self.check_amount_limits(amount)
        if not is_valid:
            return ValidationResult.error(error_msg, InvalidAmountError)

        # 3. Check method, payout details and weekday
        is_valid, error_msg = await self.check_method(method)
        if not is_valid:
            return ValidationResult.error(error_msg)

        is_valid, error_msg = await self.check_payout_details(method, payout_details)
        if not is_valid:
            return ValidationResult.error(error_msg)

        is_valid, error_msg = await self.check_allowed_day(now)
        if not is_valid:
            return ValidationResult.error(error_msg, RateLimitError)

        # 4. Check user status (blocked, withdrawal hold)
        is_valid, error_msg = await self.check_user_status(user)
        if not is_valid:
            return ValidationResult.error(error_msg, PermissionDeniedError)

        # 5. Check earnings cap block
        is_valid, error_msg = await self.check_cap_block(user)
        if not is_valid:
            return ValidationResult.error(error_msg, CapReachedError)

        # 6. Check verification requirements
        is_valid, error_msg = await self.check_kyc(user)
        if not is_valid:
            return ValidationResult.error(error_msg, PermissionDeniedError)

        is_valid, error_msg = await self.check_bank_verified(user, method)
        if not is_valid:
            return ValidationResult.error(error_msg, PermissionDeniedError)

        is_valid, error_msg = await self.check_directs_count(user)
        if not is_valid:
            return ValidationResult.error(error_msg, PermissionDeniedError)

        # 7. Check open request, period limits and cooldown
        is_valid, error_msg = await self.check_open_request(user.id)
        if not is_valid:
            return ValidationResult.error(error_msg, RateLimitError)

        is_valid, error_msg = await self.check_period_limits(user.id, now)
        if not is_valid:
            return ValidationResult.error(error_msg, RateLimitError)

        is_valid, error_msg = await self.check_cooldown(user.id, now)
        if not is_valid:
            return ValidationResult.error(error_msg, RateLimitError)

        # 8. Check balance and fee
        is_valid, error_msg = await self.check_balance(amount, available_balance)
        if not is_valid:
            return ValidationResult.error(error_msg, InsufficientFundsError)

        is_valid, error_msg = await self.check_fee(amount, fee)
        if not is_valid:
            return ValidationResult.error(error_msg, InvalidAmountError)

        return ValidationResult.success()
