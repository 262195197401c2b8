"""
Unit tests for admin config documents.

Tests cover:
- Documented defaults
- Level band table validation
- Qualification rules (flat and ratio)
- camelCase documents and locked fields
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from mlm_engine.config.admin_config import (
    ConfigSnapshot,
    LevelBand,
    ProgramConfig,
    QualificationRule,
    ReferralIncomeConfig,
    RenewalConfig,
    WithdrawalConfig,
)
from mlm_engine.models.enums import CapAction, QualificationMode


class TestDefaults:
    """Test documented default values."""

    def test_referral_income_defaults(self):
        """Direct referral is 5%, multi-level is off, pool is 10%."""
        cfg = ReferralIncomeConfig()
        assert cfg.direct_referral_percent == Decimal("5.0")
        assert cfg.enable_multi_level_income is False
        assert cfg.level_income_pool_percent == Decimal("10")
        assert cfg.max_levels == 25

    def test_default_level_table_is_valid(self):
        """Default bands weigh exactly 100."""
        cfg = ReferralIncomeConfig(enable_multi_level_income=True)
        assert cfg.weighted_level_total() == Decimal("100")
        assert cfg.level_table_errors() == []

    def test_withdrawal_defaults(self):
        cfg = WithdrawalConfig()
        assert cfg.min_withdrawal == Decimal("400")
        assert cfg.fee_percent == Decimal("10")
        assert cfg.allowed_days == ("monday", "tuesday", "wednesday", "thursday", "friday")

    def test_cap_multipliers_by_program(self):
        programs = ProgramConfig()
        assert programs.cap_multiplier("investor") == Decimal("2.0")
        assert programs.cap_multiplier("leader") == Decimal("3.0")

    def test_default_multiplier_covers_other_programs(self):
        programs = ProgramConfig()
        fallback = RenewalConfig().default_cap_multiplier
        assert programs.cap_multiplier("legacy", fallback) == Decimal("3.0")
        assert programs.cap_multiplier("investor", fallback) == Decimal("2.0")
        assert programs.cap_multiplier("legacy") == Decimal("2.0")

    def test_renewal_defaults_stop_earnings(self):
        cfg = RenewalConfig()
        assert cfg.cap_action == CapAction.STOP_EARNINGS
        assert cfg.stops_earnings is True
        assert cfg.blocks_withdrawals is False

    def test_stop_both(self):
        cfg = RenewalConfig(cap_action=CapAction.STOP_BOTH)
        assert cfg.stops_earnings is True
        assert cfg.blocks_withdrawals is True


class TestLevelTable:
    """Test level band table validation."""

    def test_weighted_sum_not_100(self):
        """A table that does not weigh 100 is rejected."""
        cfg = ReferralIncomeConfig(
            enable_multi_level_income=True,
            level_referral_percents=(
                LevelBand(level_from=2, level_to=5, percent=Decimal("10")),
                LevelBand(level_from=6, level_to=10, percent=Decimal("10")),
            ),
        )
        errors = cfg.level_table_errors()
        assert cfg.weighted_level_total() == Decimal("90")
        assert any("expected 100%" in error for error in errors)

    def test_band_at_level_one(self):
        """Level 1 belongs to direct income."""
        cfg = ReferralIncomeConfig(
            level_referral_percents=(
                LevelBand(level_from=1, level_to=5, percent=Decimal("20")),
            ),
        )
        errors = cfg.level_table_errors()
        assert any("level 1" in error for error in errors)

    def test_overlapping_bands(self):
        cfg = ReferralIncomeConfig(
            level_referral_percents=(
                LevelBand(level_from=2, level_to=6, percent=Decimal("10")),
                LevelBand(level_from=5, level_to=10, percent=Decimal("10")),
            ),
        )
        assert any("overlaps" in error for error in cfg.level_table_errors())

    def test_band_beyond_max_levels(self):
        cfg = ReferralIncomeConfig(
            max_levels=10,
            level_referral_percents=(
                LevelBand(level_from=2, level_to=11, percent=Decimal("10")),
            ),
        )
        assert any("maxLevels" in error for error in cfg.level_table_errors())

    def test_empty_table_with_multi_level_enabled(self):
        cfg = ReferralIncomeConfig(
            enable_multi_level_income=True, level_referral_percents=()
        )
        assert cfg.level_table_errors() == [
            "Multi-level income is enabled but no level bands are set"
        ]

    def test_band_for_level(self):
        cfg = ReferralIncomeConfig()
        assert cfg.band_for_level(1) is None
        assert cfg.band_for_level(2).percent == Decimal("10")
        assert cfg.band_for_level(10).percent == Decimal("8")
        assert cfg.band_for_level(15).percent == Decimal("4")
        assert cfg.band_for_level(16) is None


class TestQualification:
    """Test direct referral qualification rules."""

    def test_flat_rule(self):
        rule = QualificationRule(level_from=6, level_to=10, min_directs=3)
        assert rule.required_directs(6) == 3
        assert rule.required_directs(10) == 3

    def test_ratio_rule_rounds_up(self):
        """Level 6 with one direct per 2 levels needs 3 directs."""
        rule = QualificationRule(
            level_from=2, level_to=25, mode=QualificationMode.RATIO, levels_per_direct=2
        )
        assert rule.required_directs(6) == 3
        assert rule.required_directs(7) == 4

    def test_no_rule_requires_nothing(self):
        cfg = ReferralIncomeConfig(
            qualification_rules=(QualificationRule(level_from=6, level_to=10, min_directs=2),)
        )
        assert cfg.required_directs(5) == 0
        assert cfg.required_directs(6) == 2


class TestDocuments:
    """Test parsing of stored documents."""

    def test_camel_case_document(self):
        snapshot = ConfigSnapshot.from_documents(
            {
                "referralIncome": {
                    "directReferralPercent": "7.5",
                    "enableMultiLevelIncome": True,
                },
                "withdrawals": {"minWithdrawal": 500, "allowedDays": [" Monday ", "FRIDAY"]},
            }
        )
        assert snapshot.referral_income.direct_referral_percent == Decimal("7.5")
        assert snapshot.referral_income.enable_multi_level_income is True
        assert snapshot.withdrawals.min_withdrawal == Decimal("500")
        assert snapshot.withdrawals.allowed_days == ("monday", "friday")
        # Untouched documents keep defaults
        assert snapshot.features.enable_user_transfers is False

    def test_leader_referral_income_is_locked_off(self):
        cfg = ReferralIncomeConfig.model_validate({"enableLeaderReferralIncome": True})
        assert cfg.enable_leader_referral_income is False

    def test_leader_roi_is_locked_off(self):
        assert ProgramConfig(leader_roi_enabled=True).leader_roi_enabled is False

    def test_unknown_weekday_rejected(self):
        with pytest.raises(ValidationError):
            WithdrawalConfig(allowed_days=("funday",))

    def test_percent_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            ReferralIncomeConfig(direct_referral_percent=Decimal("101"))

    def test_snapshot_is_frozen(self):
        cfg = ReferralIncomeConfig()
        with pytest.raises(ValidationError):
            cfg.direct_referral_percent = Decimal("9")
