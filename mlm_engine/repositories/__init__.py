"""
Repositories.

Data access layer; one repository per aggregate.
"""

from mlm_engine.repositories.activation_repository import (
    ActivationRepository,
    DistributionRepository,
)
from mlm_engine.repositories.admin_config_repository import (
    AdminConfigRepository,
    AuditLogRepository,
)
from mlm_engine.repositories.base import BaseRepository
from mlm_engine.repositories.renewal_repository import RenewalRepository
from mlm_engine.repositories.transfer_repository import TransferRepository
from mlm_engine.repositories.user_repository import UserRepository
from mlm_engine.repositories.wallet_repository import (
    LedgerRepository,
    WalletRepository,
)
from mlm_engine.repositories.withdrawal_repository import WithdrawalRepository


__all__ = [
    "ActivationRepository",
    "AdminConfigRepository",
    "AuditLogRepository",
    "BaseRepository",
    "DistributionRepository",
    "LedgerRepository",
    "RenewalRepository",
    "TransferRepository",
    "UserRepository",
    "WalletRepository",
    "WithdrawalRepository",
]
