"""
Referral income amounts.

Pure calculations: direct income is a percent of the activation amount;
level income is a share of the level-income pool, which is itself a percent
of the activation amount.
"""

from dataclasses import dataclass
from decimal import Decimal

from mlm_engine.config.admin_config import ReferralIncomeConfig
from mlm_engine.models.enums import IncomeType
from mlm_engine.utils.money import HUNDRED, ZERO, quantize


@dataclass(frozen=True)
class LevelShare:
    """Income due at one level of the upline."""

    level: int
    income_type: str
    percent: Decimal  # effective percent of the activation amount
    amount: Decimal


def direct_share(amount: Decimal, config: ReferralIncomeConfig) -> LevelShare:
    """Level 1: ``directReferralPercent`` of the activation amount."""
    percent = config.direct_referral_percent
    return LevelShare(
        level=1,
        income_type=IncomeType.REFERRAL_DIRECT.value,
        percent=percent,
        amount=quantize(amount * percent / HUNDRED),
    )


def level_share(
    amount: Decimal, level: int, config: ReferralIncomeConfig
) -> LevelShare | None:
    """
    Share for ``level`` >= 2, or None when no band covers the level.

    With a 10% pool and a 10% band, level 2 of a 10,000 activation earns
    100 (1% of the amount).
    """
    if level < 2 or level > config.max_levels:
        return None
    band = config.band_for_level(level)
    if band is None or band.percent <= ZERO:
        return None

    percent = config.level_income_pool_percent * band.percent / HUNDRED
    return LevelShare(
        level=level,
        income_type=IncomeType.REFERRAL_LEVEL.value,
        percent=percent,
        amount=quantize(amount * percent / HUNDRED),
    )


def plan_shares(
    amount: Decimal, upline_depth: int, config: ReferralIncomeConfig
) -> list[LevelShare]:
    """All shares for an upline of ``upline_depth`` users, level order."""
    if upline_depth < 1:
        return []

    shares = [direct_share(amount, config)]
    if config.enable_multi_level_income:
        last_level = min(upline_depth, config.max_levels)
        for level in range(2, last_level + 1):
            share = level_share(amount, level, config)
            if share is not None:
                shares.append(share)
    return shares
