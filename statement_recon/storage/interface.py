"""
Abstract storage interfaces.

The core only defines the shape of what it hands to the persistence layer;
these interfaces keep the engines decoupled from any storage technology.
Every record is keyed by its owning user.
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from ..models import (
    BalanceCandidate,
    ConsolidatedBalance,
    Transaction,
    TransferLink,
)


class TransactionRepository(ABC):
    """Storage for transactions and their transfer links."""

    @abstractmethod
    def add_transactions(self, user_id: str, transactions: Iterable[Transaction]) -> List[Transaction]:
        """
        Persist transactions for a user.

        Returns:
            The stored transactions with user_id set
        """

    @abstractmethod
    def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        """Return the transaction if it exists and belongs to the user, else None."""

    @abstractmethod
    def list_transactions(self, user_id: str) -> List[Transaction]:
        """All transactions owned by the user."""

    @abstractmethod
    def link_pair(self, user_id: str, link: TransferLink) -> TransferLink:
        """
        Mark both transactions of the link as linked to each other.

        Must be atomic: both sides change together or neither does, and the
        check that neither side is already linked happens in the same
        critical section as the write.

        Raises:
            NotFoundError: If either transaction is not owned by the user
            AlreadyLinkedError: If either transaction already has an active link
        """

    @abstractmethod
    def unlink(self, user_id: str, transaction_id: str) -> Optional[TransferLink]:
        """
        Remove the link touching the transaction, clearing both sides.

        Returns:
            The removed link, or None when the transaction was not linked

        Raises:
            NotFoundError: If the transaction is not owned by the user
        """

    @abstractmethod
    def list_links(self, user_id: str) -> List[TransferLink]:
        """Active links owned by the user."""


class BalanceRepository(ABC):
    """Storage for per-page balance candidates and consolidated balances."""

    @abstractmethod
    def register_statement(self, user_id: str, statement_id: str) -> None:
        """Record that the statement belongs to the user (idempotent)."""

    @abstractmethod
    def owns_statement(self, user_id: str, statement_id: str) -> bool:
        """True if the statement is registered to the user."""

    @abstractmethod
    def upsert_candidate(self, user_id: str, statement_id: str, candidate: BalanceCandidate) -> bool:
        """
        Store a candidate, replacing any existing one for the same page.

        Returns:
            True if inserted, False if an existing page candidate was updated
        """

    @abstractmethod
    def list_candidates(self, user_id: str, statement_id: str) -> List[BalanceCandidate]:
        """Current candidate set of the statement, one per page."""

    @abstractmethod
    def save_consolidated(self, user_id: str, balance: ConsolidatedBalance) -> None:
        """Store the consolidated balance, overwriting any previous one."""

    @abstractmethod
    def get_consolidated(self, user_id: str, statement_id: str) -> Optional[ConsolidatedBalance]:
        """The last consolidated balance saved for the statement, if any."""


class StorageError(Exception):
    """Base exception for storage errors."""
    pass


class NotFoundError(StorageError):
    """Record not found, or not owned by the caller."""
    pass


class AlreadyLinkedError(StorageError):
    """A transaction already participates in an active transfer link."""

    def __init__(self, transaction_id: str, linked_to: Optional[str] = None):
        self.transaction_id = transaction_id
        self.linked_to = linked_to
        super().__init__(
            f"Transaction {transaction_id} is already linked"
            + (f" to {linked_to}" if linked_to else "")
            + "; unlink it first"
        )


class InvalidLinkError(StorageError):
    """The requested link is structurally invalid (e.g. a transaction linked to itself)."""
    pass
