"""Ledger module - client protocol, transaction plans and the Sui adapter."""

from .client import LedgerClient, Signer, TransactionOutcome
from .transaction import TransactionPlan

__all__ = [
    "LedgerClient",
    "Signer",
    "TransactionOutcome",
    "TransactionPlan",
]
