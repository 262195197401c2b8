"""
Withdrawal basic checks module.

Contains basic validation checks:
- Emergency stop check
- Amount limits check
- Method and allowed weekday checks
- User status check
- Balance and fee checks
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from loguru import logger

from mlm_engine.config.admin_config import WithdrawalConfig
from mlm_engine.config.settings import settings
from mlm_engine.models.enums import UserStatus
from mlm_engine.models.user import User
from mlm_engine.utils.datetime_utils import weekday_name


BLOCKED_STATUSES = (UserStatus.AUTO_BLOCKED.value, UserStatus.BLOCKED.value)

# Payout detail keys each method needs; other methods need none
PAYOUT_DETAIL_FIELDS: dict[str, tuple[str, ...]] = {
    "bank": ("accountNumber", "ifsc"),
    "upi": ("upiId",),
}


class BasicChecksMixin:
    """Mixin providing basic validation checks."""

    config: WithdrawalConfig

    async def check_emergency_stop(self) -> tuple[bool, str | None]:
        """
        Check if emergency stop is active.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if settings.emergency_stop_withdrawals:
            logger.warning("Withdrawal blocked by emergency stop")
            return False, (
                "Withdrawals are temporarily suspended. "
                "Your funds are safe; withdrawals will resume shortly."
            )
        return True, None

    async def check_amount_limits(
        self, amount: Decimal
    ) -> tuple[bool, str | None]:
        """
        Check the amount against configured minimum and maximum.

        Args:
            amount: Gross withdrawal amount

        Returns:
            Tuple of (is_valid, error_message)
        """
        if amount <= 0:
            return False, "Withdrawal amount must be positive"
        if amount < self.config.min_withdrawal:
            return False, f"Minimum withdrawal amount is {self.config.min_withdrawal}"
        if amount > self.config.max_withdrawal:
            return False, f"Maximum withdrawal amount is {self.config.max_withdrawal}"
        return True, None

    async def check_method(self, method: str) -> tuple[bool, str | None]:
        if method not in self.config.allowed_methods:
            allowed = ", ".join(self.config.allowed_methods)
            return False, f"Withdrawal method '{method}' is not allowed. Use: {allowed}"
        return True, None

    async def check_payout_details(
        self, method: str, payout_details: dict[str, Any] | None
    ) -> tuple[bool, str | None]:
        """
        Check the payout details carry what the method pays out to.

        Args:
            method: Payout method
            payout_details: Account details sent with the request

        Returns:
            Tuple of (is_valid, error_message)
        """
        details = payout_details or {}
        missing = [
            key
            for key in PAYOUT_DETAIL_FIELDS.get(method, ())
            if not str(details.get(key) or "").strip()
        ]
        if missing:
            return False, f"Payout details for {method} need: {', '.join(missing)}"
        return True, None

    async def check_allowed_day(self, now: datetime) -> tuple[bool, str | None]:
        day = weekday_name(now)
        if day not in self.config.allowed_days:
            allowed = ", ".join(d.capitalize() for d in self.config.allowed_days)
            return False, f"Withdrawals are accepted only on: {allowed}"
        return True, None

    async def check_user_status(self, user: User) -> tuple[bool, str | None]:
        """
        Check the account is not blocked and withdrawals are not on hold.

        Args:
            user: Requesting user

        Returns:
            Tuple of (is_valid, error_message)
        """
        if user.status in BLOCKED_STATUSES:
            logger.warning(f"Withdrawal blocked: user {user.id} status {user.status}")
            return False, "Your account is blocked. Contact support."
        if user.withdrawal_blocked:
            logger.warning(
                f"Withdrawal blocked: user {user.id} has withdrawal_blocked=True"
            )
            return False, "Withdrawals are on hold for your account. Contact support."
        return True, None

    async def check_balance(
        self, amount: Decimal, available_balance: Decimal
    ) -> tuple[bool, str | None]:
        if amount > available_balance:
            return False, (
                f"Insufficient balance. Available: {available_balance}, "
                f"requested: {amount}"
            )
        return True, None

    async def check_fee(
        self, amount: Decimal, fee: Decimal
    ) -> tuple[bool, str | None]:
        if fee >= amount:
            return False, "Withdrawal fee exceeds the amount"
        return True, None
