"""Balance, transfer and audit models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any, Mapping
from uuid import uuid4

from ..utils.money import to_cents, to_decimal
from .enums import AuditAction, ExtractionMethod
from .transaction import Transaction

DEFAULT_BALANCE_NOTES = "No balance information extracted"


def _coerce_confidence(value: Any) -> int:
    """Truncate an untrusted confidence to an int clamped to 0-100; malformed -> 0."""
    number = to_decimal(value)
    if number is None:
        return 0
    return max(0, min(100, int(number)))


@dataclass
class BalanceCandidate:
    """One page's balance reading for a statement. Amounts in cents."""
    page_number: int
    opening_balance_cents: Optional[int] = None
    closing_balance_cents: Optional[int] = None
    available_balance_cents: Optional[int] = None
    current_balance_cents: Optional[int] = None
    confidence: int = 0  # 0-100
    notes: str = DEFAULT_BALANCE_NOTES
    extraction_method: ExtractionMethod = ExtractionMethod.AI_LLM
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def has_closing_balance(self) -> bool:
        return self.closing_balance_cents is not None

    @classmethod
    def from_extraction(cls, page_number: int, data: Mapping[str, Any]) -> "BalanceCandidate":
        """
        Build a candidate from untrusted AI extraction output.

        Absent or malformed numeric fields become None; they are never fatal.
        Both the original key names (``balance_confidence``,
        ``balance_extraction_notes``) and the short ones are accepted.
        """
        data = data or {}
        confidence = data.get("confidence", data.get("balance_confidence"))
        notes = data.get("notes", data.get("balance_extraction_notes"))
        method = data.get("extraction_method", ExtractionMethod.AI_LLM.value)
        try:
            method = ExtractionMethod(method)
        except ValueError:
            method = ExtractionMethod.AI_LLM

        return cls(
            page_number=page_number,
            opening_balance_cents=to_cents(data.get("opening_balance")),
            closing_balance_cents=to_cents(data.get("closing_balance")),
            available_balance_cents=to_cents(data.get("available_balance")),
            current_balance_cents=to_cents(data.get("current_balance")),
            confidence=_coerce_confidence(confidence),
            notes=notes if isinstance(notes, str) and notes.strip() else DEFAULT_BALANCE_NOTES,
            extraction_method=method,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page_number": self.page_number,
            "opening_balance_cents": self.opening_balance_cents,
            "closing_balance_cents": self.closing_balance_cents,
            "available_balance_cents": self.available_balance_cents,
            "current_balance_cents": self.current_balance_cents,
            "confidence": self.confidence,
            "notes": self.notes,
            "extraction_method": self.extraction_method.value,
        }


@dataclass(frozen=True)
class ConsolidatedBalance:
    """The single trusted closing balance of a statement."""
    statement_id: str
    closing_balance_cents: Optional[int]
    confidence: int
    source_page: Optional[int]
    notes: str
    candidate_count: int = 0

    @property
    def closing_balance(self) -> Optional[float]:
        if self.closing_balance_cents is None:
            return None
        return self.closing_balance_cents / 100.0

    @property
    def is_resolved(self) -> bool:
        return self.closing_balance_cents is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "statement_id": self.statement_id,
            "closing_balance_cents": self.closing_balance_cents,
            "closing_balance": self.closing_balance,
            "confidence": self.confidence,
            "source_page": self.source_page,
            "notes": self.notes,
            "candidate_count": self.candidate_count,
        }


@dataclass
class TransferSuggestion:
    """A scored, unconfirmed pairing of two transactions. Never persisted."""
    transaction_1: Transaction
    transaction_2: Transaction
    confidence: float
    amount_diff_cents: int
    date_diff_days: int
    reason: str

    @property
    def transaction_ids(self) -> tuple:
        return (self.transaction_1.id, self.transaction_2.id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_1": self.transaction_1.to_dict(),
            "transaction_2": self.transaction_2.to_dict(),
            "confidence": self.confidence,
            "amount_diff_cents": self.amount_diff_cents,
            "date_diff_days": self.date_diff_days,
            "reason": self.reason,
        }


@dataclass
class TransferLink:
    """A confirmed, symmetric pairing of two transactions."""
    transaction_1_id: str
    transaction_2_id: str
    confidence: float = 1.0
    notes: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=datetime.utcnow)

    def involves(self, transaction_id: str) -> bool:
        return transaction_id in (self.transaction_1_id, self.transaction_2_id)

    def counterpart(self, transaction_id: str) -> Optional[str]:
        if transaction_id == self.transaction_1_id:
            return self.transaction_2_id
        if transaction_id == self.transaction_2_id:
            return self.transaction_1_id
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "transaction_1_id": self.transaction_1_id,
            "transaction_2_id": self.transaction_2_id,
            "confidence": self.confidence,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class AuditEntry:
    """An entry in the audit log."""
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.utcnow)

    # Action
    action: AuditAction = AuditAction.PAGE_PARSED

    # Context
    user_id: Optional[str] = None
    transaction_ids: List[str] = field(default_factory=list)
    statement_id: Optional[str] = None

    # Details
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    # Outcome
    success: bool = True
    error_message: Optional[str] = None
