"""Data models for the statement reconciliation core."""

from .enums import (
    TransactionType,
    ExtractionMethod,
    AuditAction,
    CategoryMatchType,
)
from .transaction import Transaction
from .reconciliation import (
    BalanceCandidate,
    ConsolidatedBalance,
    TransferSuggestion,
    TransferLink,
    AuditEntry,
)

__all__ = [
    # Enums
    "TransactionType",
    "ExtractionMethod",
    "AuditAction",
    "CategoryMatchType",
    # Transactions
    "Transaction",
    # Reconciliation
    "BalanceCandidate",
    "ConsolidatedBalance",
    "TransferSuggestion",
    "TransferLink",
    "AuditEntry",
]
