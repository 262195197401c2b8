"""
Withdrawal services.

Request creation with validation, and the review / payment lifecycle.
"""

from mlm_engine.services.withdrawal.lifecycle_handler import (
    ALLOWED_TRANSITIONS,
    WithdrawalLifecycleHandler,
)
from mlm_engine.services.withdrawal.request_handler import WithdrawalRequestHandler
from mlm_engine.services.withdrawal.validator import ValidationResult, WithdrawalValidator


__all__ = [
    "ALLOWED_TRANSITIONS",
    "ValidationResult",
    "WithdrawalLifecycleHandler",
    "WithdrawalRequestHandler",
    "WithdrawalValidator",
]
