"""
Admin configuration documents.

Each admin settings page stores one JSON document (see
``AdminConfigDocument``). These models give every document its documented
defaults, so a missing or partial document is always usable, and accept the
camelCase keys written by the admin console.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from mlm_engine.models.enums import (
    CapAction,
    FeeType,
    IncomeType,
    ProgramType,
    QualificationMode,
    UserStatus,
)
from mlm_engine.utils.datetime_utils import utc_now
from mlm_engine.utils.money import HUNDRED


class ConfigModel(BaseModel):
    """Base for config documents: camelCase aliases, unknown keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Referral income
# ---------------------------------------------------------------------------


class LevelBand(ConfigModel):
    """Share of the level-income pool paid to each level in a band."""

    level_from: int = Field(ge=1)
    level_to: int = Field(ge=1)
    percent: Decimal = Field(ge=0, le=100)

    @property
    def width(self) -> int:
        return self.level_to - self.level_from + 1

    def covers(self, level: int) -> bool:
        return self.level_from <= level <= self.level_to


class QualificationRule(ConfigModel):
    """
    Minimum active direct referrals required to earn at a level band.

    ``flat`` requires ``min_directs``; ``ratio`` requires one direct per
    ``levels_per_direct`` levels, rounded up (level 6 with N=2 needs 3).
    """

    level_from: int = Field(ge=1)
    level_to: int = Field(ge=1)
    mode: QualificationMode = QualificationMode.FLAT
    min_directs: int = Field(default=0, ge=0)
    levels_per_direct: int = Field(default=1, ge=1)

    def covers(self, level: int) -> bool:
        return self.level_from <= level <= self.level_to

    def required_directs(self, level: int) -> int:
        if self.mode == QualificationMode.RATIO:
            return -(-level // self.levels_per_direct)
        return self.min_directs


class AntiAbuseLimits(ConfigModel):
    max_referral_income_per_day: Decimal = Field(default=Decimal("0"), ge=0)  # 0 = unlimited
    max_per_referred_user: Decimal = Field(default=Decimal("0"), ge=0)  # 0 = unlimited
    block_self_referral: bool = True
    block_circular_referral: bool = True


DEFAULT_LEVEL_BANDS = (
    LevelBand(level_from=2, level_to=5, percent=Decimal("10")),
    LevelBand(level_from=6, level_to=10, percent=Decimal("8")),
    LevelBand(level_from=11, level_to=15, percent=Decimal("4")),
)


class ReferralIncomeConfig(ConfigModel):
    """Document ``referralIncome``."""

    enable_referral_income_global: bool = True
    enable_investor_referral_income: bool = True
    # Leader referral income is locked off; stored values are ignored.
    enable_leader_referral_income: bool = False
    direct_referral_percent: Decimal = Field(default=Decimal("5.0"), ge=0, le=100)
    enable_multi_level_income: bool = False
    max_levels: int = Field(default=25, ge=1, le=50)
    level_income_pool_percent: Decimal = Field(default=Decimal("10"), ge=0, le=100)
    level_referral_percents: tuple[LevelBand, ...] = DEFAULT_LEVEL_BANDS
    qualification_rules: tuple[QualificationRule, ...] = ()
    referral_income_counts_toward_cap: bool = True
    referral_income_eligible_statuses: tuple[str, ...] = (
        UserStatus.ACTIVE_INVESTOR.value,
    )
    referral_income_payout_mode: Literal["INSTANT_TO_WALLET"] = "INSTANT_TO_WALLET"
    min_activation_amount_for_referral: Decimal = Field(default=Decimal("0"), ge=0)
    anti_abuse_limits: AntiAbuseLimits = AntiAbuseLimits()

    @field_validator("enable_leader_referral_income")
    @classmethod
    def lock_leader_income(cls, v: bool) -> bool:
        return False

    def level_table_errors(self) -> list[str]:
        """
        Validate the level band table.

        Bands must start at level 2 (level 1 is the direct referral), be
        ordered, non-overlapping, inside ``max_levels``, and their
        band-width-weighted percentages must total exactly 100.
        """
        errors: list[str] = []
        bands = self.level_referral_percents

        if not bands:
            if self.enable_multi_level_income:
                errors.append("Multi-level income is enabled but no level bands are set")
            return errors

        previous_to = 1
        for band in bands:
            label = f"Levels {band.level_from}-{band.level_to}"
            if band.level_from < 2:
                errors.append(f"{label}: level 1 is paid as direct referral income")
            if band.level_to < band.level_from:
                errors.append(f"{label}: levelTo is below levelFrom")
            if band.level_from <= previous_to and band.level_from >= 2:
                errors.append(f"{label}: overlaps or is out of order")
            if band.level_to > self.max_levels:
                errors.append(f"{label}: exceeds maxLevels ({self.max_levels})")
            previous_to = max(previous_to, band.level_to)

        total = self.weighted_level_total()
        if total != HUNDRED:
            errors.append(f"Weighted level percentages total {total}%, expected 100%")

        return errors

    def weighted_level_total(self) -> Decimal:
        return sum(
            (band.percent * max(band.width, 0) for band in self.level_referral_percents),
            Decimal("0"),
        )

    def band_for_level(self, level: int) -> LevelBand | None:
        for band in self.level_referral_percents:
            if band.covers(level):
                return band
        return None

    def required_directs(self, level: int) -> int:
        """Directs needed at ``level``; 0 when no rule covers it."""
        for rule in self.qualification_rules:
            if rule.covers(level):
                return rule.required_directs(level)
        return 0


# ---------------------------------------------------------------------------
# Programs and caps
# ---------------------------------------------------------------------------


class ProgramConfig(ConfigModel):
    """Document ``programs``."""

    enable_investor_program: bool = True
    enable_leader_program: bool = True
    investor_cap_multiplier: Decimal = Field(default=Decimal("2.0"), gt=0)
    leader_cap_multiplier: Decimal = Field(default=Decimal("3.0"), gt=0)
    leader_base_amount: Decimal = Field(default=Decimal("1000"), ge=0)
    # Leaders never receive ROI.
    leader_roi_enabled: bool = False

    @field_validator("leader_roi_enabled")
    @classmethod
    def lock_leader_roi(cls, v: bool) -> bool:
        return False

    def cap_multiplier(
        self, program_type: str | None, default: Decimal | None = None
    ) -> Decimal:
        """Multiplier for a program; ``default`` covers unrecognised programs."""
        if program_type == ProgramType.LEADER.value:
            return self.leader_cap_multiplier
        if program_type == ProgramType.INVESTOR.value or default is None:
            return self.investor_cap_multiplier
        return default


class RenewalOptions(ConfigModel):
    admin_can_renew: bool = True
    user_can_request_renewal: bool = True
    sponsor_can_renew: bool = False
    wallet_can_pay_renewal: bool = True
    payment_gateway_renewal: bool = True


class RenewalConfig(ConfigModel):
    """Document ``renewals``."""

    enable_id_renewal_rule: bool = True
    # Renewal multiplier for users whose program is neither investor nor leader
    default_cap_multiplier: Decimal = Field(default=Decimal("3.0"), gt=0)
    cap_action: CapAction = CapAction.STOP_EARNINGS
    eligible_income_types: tuple[str, ...] = (
        IncomeType.DAILY_ROI.value,
        IncomeType.REFERRAL_DIRECT.value,
        IncomeType.REFERRAL_LEVEL.value,
        IncomeType.BONUS.value,
    )
    grace_limit_inr: Decimal = Field(default=Decimal("0"), ge=0)
    auto_mark_cap_reached: bool = True
    renewal_required_message: str = "You reached your earnings cap. Renew ID to continue earning."
    allow_renew_same_plan: bool = True
    allow_renew_upgrade: bool = True
    renewal_options: RenewalOptions = RenewalOptions()
    renewal_fee_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    require_kyc_for_renewal: bool = False

    @property
    def stops_earnings(self) -> bool:
        return self.cap_action in (CapAction.STOP_EARNINGS, CapAction.STOP_BOTH)

    @property
    def blocks_withdrawals(self) -> bool:
        return self.cap_action in (CapAction.BLOCK_WITHDRAWALS, CapAction.STOP_BOTH)


# ---------------------------------------------------------------------------
# Withdrawals, transfers, payouts
# ---------------------------------------------------------------------------


WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class WithdrawalConfig(ConfigModel):
    """Document ``withdrawals``."""

    min_withdrawal: Decimal = Field(default=Decimal("400"), ge=0)
    max_withdrawal: Decimal = Field(default=Decimal("100000"), gt=0)
    fee_percent: Decimal = Field(default=Decimal("10"), ge=0, le=100)
    fee_flat: Decimal = Field(default=Decimal("0"), ge=0)
    use_percent_fee: bool = True
    allowed_methods: tuple[str, ...] = ("bank", "upi")
    allowed_days: tuple[str, ...] = WEEKDAYS[:5]
    require_kyc: bool = False
    require_bank_verified: bool = True
    require_directs_count: int = Field(default=0, ge=0)
    max_withdrawals_per_day: int = Field(default=3, ge=0)  # 0 = unlimited
    max_withdrawals_per_week: int = Field(default=5, ge=0)
    max_withdrawals_per_month: int = Field(default=10, ge=0)
    cooldown_hours: int = Field(default=24, ge=0)

    @field_validator("allowed_days")
    @classmethod
    def normalize_days(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        days = tuple(day.strip().lower() for day in v)
        unknown = [day for day in days if day not in WEEKDAYS]
        if unknown:
            raise ValueError(f"Unknown weekday(s): {', '.join(unknown)}")
        return days

    @property
    def fee_type(self) -> FeeType:
        return FeeType.PERCENT if self.use_percent_fee else FeeType.FLAT


class FeatureConfig(ConfigModel):
    """Document ``features``."""

    enable_user_transfers: bool = False
    enable_sponsor_activation: bool = False
    enable_transfer_to_unverified_users: bool = False
    enable_transfer_fee: bool = False
    transfer_fee_type: FeeType = FeeType.PERCENT
    transfer_fee_value: Decimal = Field(default=Decimal("0"), ge=0)
    transfer_min_amount: Decimal = Field(default=Decimal("100"), ge=0)
    transfer_max_amount: Decimal = Field(default=Decimal("10000"), gt=0)
    transfer_daily_limit: int = Field(default=5, ge=0)
    transfer_cooldown_minutes: int = Field(default=30, ge=0)
    require_kyc_for_transfers: bool = False
    require_email_verified_for_transfers: bool = True
    sponsor_activation_allowed_plans: tuple[str, ...] = ()
    sponsor_activation_min_balance_rule: Decimal = Field(default=Decimal("0"), ge=0)
    sponsor_activation_daily_limit: int = Field(default=3, ge=0)
    sponsor_activation_daily_amount_limit: Decimal = Field(default=Decimal("50000"), ge=0)


class PayoutConfig(ConfigModel):
    """Document ``payouts``."""

    enable_weekly_payouts: bool = True
    auto_process_payouts: bool = False
    admin_charges_percent: Decimal = Field(default=Decimal("10"), ge=0, le=100)
    min_payout_amount: Decimal = Field(default=Decimal("0"), ge=0)  # 0 = no minimum
    max_payout_amount: Decimal = Field(default=Decimal("0"), ge=0)  # 0 = no maximum
    payout_method: str = "bank"


# ---------------------------------------------------------------------------
# Activation and ROI
# ---------------------------------------------------------------------------


class ActivationRulesConfig(ConfigModel):
    """Document ``activationRules``."""

    activation_window_days: int = Field(default=7, ge=1)
    auto_block_enabled: bool = True
    block_type: Literal["soft", "hard"] = "soft"
    allow_admin_unblock: bool = True
    reset_window_on_unblock: bool = False


class RoiRule(ConfigModel):
    daily_percent: Decimal = Field(ge=0, le=100)
    max_working_days: int = Field(default=60, ge=0)
    min_package_inr: Decimal = Field(default=Decimal("0"), ge=0)


class IncomeRulesConfig(ConfigModel):
    """Document ``incomeRules``: daily ROI with and without security deposit."""

    with_security: RoiRule = RoiRule(
        daily_percent=Decimal("2"), max_working_days=60, min_package_inr=Decimal("50000")
    )
    without_security: RoiRule = RoiRule(daily_percent=Decimal("1.5"), max_working_days=60)

    def rule_for_amount(self, amount: Decimal) -> RoiRule:
        if amount >= self.with_security.min_package_inr:
            return self.with_security
        return self.without_security


CONFIG_DOCUMENTS: dict[str, type[ConfigModel]] = {
    "features": FeatureConfig,
    "payouts": PayoutConfig,
    "programs": ProgramConfig,
    "referralIncome": ReferralIncomeConfig,
    "renewals": RenewalConfig,
    "withdrawals": WithdrawalConfig,
    "activationRules": ActivationRulesConfig,
    "incomeRules": IncomeRulesConfig,
}


@dataclass(frozen=True)
class ConfigSnapshot:
    """
    Immutable view of all admin documents for one invocation.

    Fetched once at the start of a request or job run and passed down, so a
    run never mixes two versions of the configuration.
    """

    features: FeatureConfig = field(default_factory=FeatureConfig)
    payouts: PayoutConfig = field(default_factory=PayoutConfig)
    programs: ProgramConfig = field(default_factory=ProgramConfig)
    referral_income: ReferralIncomeConfig = field(default_factory=ReferralIncomeConfig)
    renewals: RenewalConfig = field(default_factory=RenewalConfig)
    withdrawals: WithdrawalConfig = field(default_factory=WithdrawalConfig)
    activation_rules: ActivationRulesConfig = field(default_factory=ActivationRulesConfig)
    income_rules: IncomeRulesConfig = field(default_factory=IncomeRulesConfig)
    loaded_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_documents(cls, documents: dict[str, dict]) -> "ConfigSnapshot":
        """Build a snapshot from raw documents keyed by document name."""

        def parse(key: str) -> ConfigModel:
            return CONFIG_DOCUMENTS[key].model_validate(documents.get(key) or {})

        return cls(
            features=parse("features"),
            payouts=parse("payouts"),
            programs=parse("programs"),
            referral_income=parse("referralIncome"),
            renewals=parse("renewals"),
            withdrawals=parse("withdrawals"),
            activation_rules=parse("activationRules"),
            income_rules=parse("incomeRules"),
        )
