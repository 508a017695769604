"""Transaction models for the statement reconciliation core."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Dict, Any
from uuid import uuid4

from .enums import TransactionType


@dataclass
class Transaction:
    """
    Candidate or persisted transaction.

    All monetary amounts are stored in CENTS (integer) to avoid floating point errors.
    The amount is signed: positive is a credit (income), negative a debit (expense).
    """
    # Identity
    id: str = field(default_factory=lambda: str(uuid4()))
    user_id: Optional[str] = None
    account_id: Optional[str] = None
    statement_id: Optional[str] = None

    # Source
    source_page: Optional[int] = None
    source_row: Optional[int] = None
    raw_text: str = ""

    # Financial data (ALL IN CENTS - integers only)
    amount_cents: int = 0
    currency: str = "INR"

    # Temporal
    transaction_date: Optional[date] = None

    # Description
    description: str = ""
    category: str = "Uncategorized"

    # Transfer link state
    linked_transaction_id: Optional[str] = None
    transfer_pair_id: Optional[str] = None
    is_internal_transfer: bool = False
    transfer_confidence: Optional[float] = None
    transfer_notes: Optional[str] = None

    # Audit
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def amount(self) -> float:
        """Return amount in standard units."""
        return self.amount_cents / 100.0

    @property
    def transaction_type(self) -> TransactionType:
        if self.amount_cents > 0:
            return TransactionType.CREDIT
        return TransactionType.DEBIT

    @property
    def is_linked(self) -> bool:
        return self.linked_transaction_id is not None

    @property
    def is_transfer_candidate(self) -> bool:
        """Linked or internally-flagged transactions never enter transfer detection."""
        return not self.is_linked and not self.is_internal_transfer

    def clear_link(self) -> None:
        self.linked_transaction_id = None
        self.transfer_pair_id = None
        self.is_internal_transfer = False
        self.transfer_confidence = None
        self.transfer_notes = None
        self.updated_at = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "account_id": self.account_id,
            "statement_id": self.statement_id,
            "source_page": self.source_page,
            "source_row": self.source_row,
            "amount_cents": self.amount_cents,
            "amount": self.amount,
            "currency": self.currency,
            "transaction_type": self.transaction_type.value,
            "transaction_date": self.transaction_date.isoformat() if self.transaction_date else None,
            "description": self.description,
            "category": self.category,
            "linked_transaction_id": self.linked_transaction_id,
            "transfer_pair_id": self.transfer_pair_id,
            "is_internal_transfer": self.is_internal_transfer,
            "transfer_confidence": self.transfer_confidence,
            "transfer_notes": self.transfer_notes,
        }
