"""
Withdrawal limit checks module.

Open request, per-period counts and cooldown.
"""

from datetime import datetime, timedelta

from mlm_engine.config.admin_config import WithdrawalConfig
from mlm_engine.repositories.withdrawal_repository import WithdrawalRepository
from mlm_engine.utils.datetime_utils import (
    ensure_utc,
    start_of_day,
    start_of_month,
    start_of_week,
)


class LimitChecksMixin:
    """Mixin providing frequency checks."""

    config: WithdrawalConfig
    withdrawal_repo: WithdrawalRepository

    async def check_open_request(self, user_id: int) -> tuple[bool, str | None]:
        if await self.withdrawal_repo.has_open_request(user_id):
            return False, "You already have a pending withdrawal request"
        return True, None

    async def check_period_limits(
        self, user_id: int, now: datetime
    ) -> tuple[bool, str | None]:
        """
        Check day / week / month request counts (0 = unlimited).

        Returns:
            Tuple of (is_valid, error_message)
        """
        periods = (
            ("day", start_of_day(now), self.config.max_withdrawals_per_day),
            ("week", start_of_week(now), self.config.max_withdrawals_per_week),
            ("month", start_of_month(now), self.config.max_withdrawals_per_month),
        )
        for name, since, limit in periods:
            if limit <= 0:
                continue
            count = await self.withdrawal_repo.count_since(user_id, since)
            if count >= limit:
                return False, f"Withdrawal limit reached: {limit} per {name}"
        return True, None

    async def check_cooldown(
        self, user_id: int, now: datetime
    ) -> tuple[bool, str | None]:
        hours = self.config.cooldown_hours
        if hours <= 0:
            return True, None
        last = ensure_utc(await self.withdrawal_repo.get_last_request_at(user_id))
        if last is not None and now - last < timedelta(hours=hours):
            next_at = last + timedelta(hours=hours)
            return False, (
                f"Please wait {hours} hours between withdrawals. "
                f"Next request possible after {next_at:%Y-%m-%d %H:%M} UTC"
            )
        return True, None
