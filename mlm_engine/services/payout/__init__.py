"""Weekly payouts."""

from mlm_engine.services.payout.sweep import PayoutSweepReport, PayoutSweepService

__all__ = ["PayoutSweepReport", "PayoutSweepService"]
