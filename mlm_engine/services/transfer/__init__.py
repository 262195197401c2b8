"""Wallet transfer services."""

from mlm_engine.services.transfer.service import TransferService


__all__ = ["TransferService"]
