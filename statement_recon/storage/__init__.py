"""Storage interfaces and the in-memory implementation."""

from .interface import (
    TransactionRepository,
    BalanceRepository,
    StorageError,
    NotFoundError,
    AlreadyLinkedError,
    InvalidLinkError,
)
from .memory import InMemoryStore

__all__ = [
    "TransactionRepository",
    "BalanceRepository",
    "StorageError",
    "NotFoundError",
    "AlreadyLinkedError",
    "InvalidLinkError",
    "InMemoryStore",
]
