"""MLM investment platform backend: ledger, referral income, caps and payouts."""

__version__ = "1.0.0"
