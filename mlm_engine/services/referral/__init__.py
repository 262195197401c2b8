"""Referral income services."""

from mlm_engine.services.referral.chain_manager import (
    ReferralChainManager,
    UplineChain,
    UplineNode,
)
from mlm_engine.services.referral.engine import ActivationOutcome, ReferralIncomeEngine
from mlm_engine.services.referral.level_income import (
    LevelShare,
    direct_share,
    level_share,
    plan_shares,
)
from mlm_engine.services.referral.processor import (
    PendingReferralProcessor,
    ReferralRunReport,
)
from mlm_engine.services.referral.qualification import QualificationChecker


__all__ = [
    "ActivationOutcome",
    "LevelShare",
    "PendingReferralProcessor",
    "QualificationChecker",
    "ReferralChainManager",
    "ReferralIncomeEngine",
    "ReferralRunReport",
    "UplineChain",
    "UplineNode",
    "direct_share",
    "level_share",
    "plan_shares",
]
