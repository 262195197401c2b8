"""Earnings cap and renewal services."""

from mlm_engine.services.cap.renewal import RenewalService
from mlm_engine.services.cap.tracker import (
    CapReservation,
    CapTracker,
    compute_cap,
    is_withdrawal_blocked,
)


__all__ = [
    "CapReservation",
    "CapTracker",
    "RenewalService",
    "compute_cap",
    "is_withdrawal_blocked",
]
