"""Activation services."""

from mlm_engine.services.activation.auto_block import AutoBlockReport, AutoBlockService
from mlm_engine.services.activation.service import ActivationService

__all__ = [
    "ActivationService",
    "AutoBlockReport",
    "AutoBlockService",
]
