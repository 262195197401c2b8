"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from mlm_engine.models.activation import Activation
from mlm_engine.models.admin_config_document import AdminConfigDocument
from mlm_engine.models.audit_log import AuditLog
from mlm_engine.models.base import Base
from mlm_engine.models.ledger_entry import LedgerEntry
from mlm_engine.models.package import Package
from mlm_engine.models.referral_distribution import ReferralIncomeDistribution
from mlm_engine.models.renewal import Renewal
from mlm_engine.models.transfer import UserTransfer
from mlm_engine.models.user import User
from mlm_engine.models.wallet import Wallet
from mlm_engine.models.withdrawal import WithdrawalRequest


__all__ = [
    "Activation",
    "AdminConfigDocument",
    "AuditLog",
    "Base",
    "LedgerEntry",
    "Package",
    "ReferralIncomeDistribution",
    "Renewal",
    "User",
    "UserTransfer",
    "Wallet",
    "WithdrawalRequest",
]
