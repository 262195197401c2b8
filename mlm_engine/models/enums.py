"""
Enumerations shared by models and services.

Values are stored as plain strings; use ``.value`` when writing columns.
"""

from enum import Enum


class ProgramType(str, Enum):
    """Membership program chosen at signup."""

    INVESTOR = "investor"
    LEADER = "leader"


class UserStatus(str, Enum):
    """User lifecycle status."""

    PENDING_ACTIVATION = "PENDING_ACTIVATION"
    ACTIVE_INVESTOR = "ACTIVE_INVESTOR"
    ACTIVE_LEADER = "ACTIVE_LEADER"
    AUTO_BLOCKED = "AUTO_BLOCKED"
    BLOCKED = "blocked"


class UserRole(str, Enum):
    """Access role."""

    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "superAdmin"


class CapStatus(str, Enum):
    """Earnings cap state of a user."""

    ACTIVE = "ACTIVE"
    CAP_REACHED = "CAP_REACHED"
    RENEWAL_PENDING = "RENEWAL_PENDING"


class CapAction(str, Enum):
    """Effect applied when a user reaches the earnings cap."""

    STOP_EARNINGS = "STOP_EARNINGS"
    BLOCK_WITHDRAWALS = "BLOCK_WITHDRAWALS"
    STOP_BOTH = "STOP_BOTH"


class IncomeType(str, Enum):
    """Income source types credited to wallets."""

    REFERRAL_DIRECT = "REFERRAL_DIRECT"
    REFERRAL_LEVEL = "REFERRAL_LEVEL"
    DAILY_ROI = "daily_roi"
    BONUS = "bonus"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class LedgerDirection(str, Enum):
    """Direction of a ledger entry."""

    CREDIT = "credit"
    DEBIT = "debit"


class LedgerSource(str, Enum):
    """What caused a ledger entry; paired with a source id."""

    REFERRAL_DIRECT = "REFERRAL_DIRECT"
    REFERRAL_LEVEL = "REFERRAL_LEVEL"
    DAILY_ROI = "daily_roi"
    WITHDRAWAL = "withdrawal"
    WITHDRAWAL_REVERSAL = "withdrawal_reversal"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"
    SPONSOR_ACTIVATION = "sponsor_activation"
    RENEWAL = "renewal"
    ADMIN_ADJUSTMENT = "admin_adjustment"
    WALLET_SYNC = "wallet_sync"


class ActivationSource(str, Enum):
    """How an activation was funded."""

    PAYMENT_GATEWAY = "payment_gateway"
    SPONSOR_WALLET = "sponsor_wallet"
    ADMIN = "admin"


class DistributionStatus(str, Enum):
    """Outcome of one (activation, beneficiary, level) distribution."""

    CREDITED = "CREDITED"
    SKIPPED = "SKIPPED"


class WithdrawalStatus(str, Enum):
    """Withdrawal request state machine."""

    REQUESTED = "requested"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class TransferStatus(str, Enum):
    """User transfer status."""

    COMPLETED = "completed"


class RenewalMethod(str, Enum):
    """Who funds a renewal."""

    ADMIN = "admin"
    SPONSOR = "sponsor"
    WALLET = "wallet"
    PAYMENT_GATEWAY = "payment_gateway"


class RenewalStatus(str, Enum):
    """Renewal record status."""

    REQUESTED = "requested"
    COMPLETED = "completed"
    REJECTED = "rejected"


class FeeType(str, Enum):
    """Fee calculation mode."""

    PERCENT = "percent"
    FLAT = "flat"


class SkipReason(str, Enum):
    """Why referral income was not credited (camelCase, shown in reports)."""

    ALREADY_PROCESSED = "alreadyProcessed"
    REFERRAL_INCOME_DISABLED = "referralIncomeDisabled"
    BELOW_MINIMUM_AMOUNT = "belowMinimumAmount"
    ZERO_AMOUNT = "zeroAmount"
    LEADER_PROGRAM = "leaderProgram"
    ACTIVATOR_NOT_FOUND = "activatorNotFound"
    ACTIVATOR_NOT_ACTIVE_INVESTOR = "activatorNotActiveInvestor"
    NO_REFERRER = "noReferrer"
    SELF_REFERRAL = "selfReferral"
    CIRCULAR_REFERRAL = "circularReferral"
    REFERRER_NOT_ACTIVE_INVESTOR = "referrerNotActiveInvestor"
    INVESTOR_INCOME_DISABLED = "investorIncomeDisabled"
    NOT_QUALIFIED = "notQualified"
    CAP_REACHED = "capReached"
    DAILY_LIMIT_REACHED = "dailyLimitReached"
    REFERRED_USER_LIMIT_REACHED = "referredUserLimitReached"


class QualificationMode(str, Enum):
    """Direct referral qualification mode for a level band."""

    FLAT = "flat"
    RATIO = "ratio"


OPEN_WITHDRAWAL_STATUSES = (
    WithdrawalStatus.REQUESTED.value,
    WithdrawalStatus.UNDER_REVIEW.value,
    WithdrawalStatus.APPROVED.value,
)

ACTIVE_USER_STATUSES = (
    UserStatus.ACTIVE_INVESTOR.value,
    UserStatus.ACTIVE_LEADER.value,
)
