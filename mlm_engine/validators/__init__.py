"""
Validators package.

Provides common validation functions for callable input.
"""

from mlm_engine.validators.common import validate_amount, validate_referral_code


__all__ = [
    "validate_amount",
    "validate_referral_code",
]
