"""
Services.

Business logic layer.
"""

from mlm_engine.services.activation import ActivationService, AutoBlockService
from mlm_engine.services.base_service import BaseService, transaction
from mlm_engine.services.cap import CapTracker, RenewalService
from mlm_engine.services.config_service import ConfigService
from mlm_engine.services.payout import PayoutSweepService
from mlm_engine.services.referral import (
    PendingReferralProcessor,
    ReferralChainManager,
    ReferralIncomeEngine,
)
from mlm_engine.services.roi import RoiService
from mlm_engine.services.transfer import TransferService
from mlm_engine.services.wallet import (
    WalletAdjustmentService,
    WalletLedger,
    WalletSyncService,
)
from mlm_engine.services.withdrawal import (
    WithdrawalLifecycleHandler,
    WithdrawalRequestHandler,
)


__all__ = [
    "ActivationService",
    "AutoBlockService",
    "BaseService",
    "CapTracker",
    "ConfigService",
    "PayoutSweepService",
    "PendingReferralProcessor",
    "ReferralChainManager",
    "ReferralIncomeEngine",
    "RenewalService",
    "RoiService",
    "TransferService",
    "WalletAdjustmentService",
    "WalletLedger",
    "WalletSyncService",
    "WithdrawalLifecycleHandler",
    "WithdrawalRequestHandler",
    "transaction",
]
