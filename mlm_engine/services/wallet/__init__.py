"""Wallet ledger services."""

from mlm_engine.services.wallet.adjustment import WalletAdjustmentService
from mlm_engine.services.wallet.ledger import LedgerPosting, ReconcileResult, WalletLedger
from mlm_engine.services.wallet.sync import WalletSyncReport, WalletSyncService


__all__ = [
    "LedgerPosting",
    "ReconcileResult",
    "WalletAdjustmentService",
    "WalletLedger",
    "WalletSyncReport",
    "WalletSyncService",
]
