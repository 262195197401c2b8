"""
Domain exceptions.

Every error a caller can act on derives from ``MLMError`` and carries a
stable ``code``. Services raise these; the callable layer converts them to
``{"success": False, "error": ..., "code": ...}`` responses.
"""

from typing import Any


class MLMError(Exception):
    """Base class for domain errors."""

    code = "ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidRequestError(MLMError):
    """Malformed or out-of-range request data."""

    code = "VALIDATION"


class InvalidAmountError(InvalidRequestError):
    code = "INVALID_AMOUNT"


class InsufficientFundsError(MLMError):
    """Debit larger than the available balance."""

    code = "INSUFFICIENT_FUNDS"


class CapReachedError(MLMError):
    """Earnings cap reached; earnings or withdrawals are blocked."""

    code = "CAP_REACHED"


class NotFoundError(MLMError):
    code = "NOT_FOUND"


class PermissionDeniedError(MLMError):
    code = "PERMISSION_DENIED"


class FeatureDisabledError(MLMError):
    """Admin switch for the feature is off."""

    code = "FEATURE_DISABLED"


class RateLimitError(MLMError):
    """Cooldown or daily/weekly/monthly limit exceeded."""

    code = "RATE_LIMITED"


class InvalidStateTransitionError(MLMError):
    """Record is not in a state that allows the requested transition."""

    code = "INVALID_STATE"


class SelfReferralError(MLMError):
    code = "SELF_REFERRAL"


class CircularReferralError(MLMError):
    code = "CIRCULAR_REFERRAL"


class ConfigurationError(MLMError):
    """Stored admin configuration is invalid."""

    code = "CONFIGURATION"
