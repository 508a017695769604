"""
Transfer linking service.

Orchestrates explicit link/unlink calls against the transaction repository
and wraps the detection engine over a user's transactions.
"""

from typing import List, Optional

import structlog

from ..config import get_settings
from ..models import AuditAction, TransferLink, TransferSuggestion
from ..storage import (
    AlreadyLinkedError,
    InvalidLinkError,
    NotFoundError,
    TransactionRepository,
)
from ..utils.audit_logger import AuditLogger
from .transfer_detection import KEYWORD_SETS, TransferDetectionEngine

logger = structlog.get_logger()


class TransferLinkService:
    """Link, unlink and suggest transfer pairs for one user at a time."""

    def __init__(
        self,
        repository: TransactionRepository,
        engine: Optional[TransferDetectionEngine] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.settings = get_settings()
        self.repository = repository
        self.engine = engine or TransferDetectionEngine(
            keywords=KEYWORD_SETS[self.settings.transfer_keywords_version],
            confidence_cap=self.settings.transfer_confidence_cap,
            suggestion_limit=self.settings.transfer_suggestion_limit,
        )
        self.audit = audit or AuditLogger()

    def link_transfer(
        self,
        user_id: str,
        transaction_1_id: str,
        transaction_2_id: str,
        confidence: float = 1.0,
        notes: Optional[str] = None,
    ) -> str:
        """
        Confirm two transactions as the legs of one transfer.

        Returns:
            The transfer pair id

        Raises:
            InvalidLinkError: If both ids are the same transaction
            NotFoundError: If either transaction is not owned by the user
            AlreadyLinkedError: If either transaction is already linked
        """
        ids = [transaction_1_id, transaction_2_id]

        if transaction_1_id == transaction_2_id:
            self._reject(user_id, ids, "Cannot link a transaction to itself")
            raise InvalidLinkError("Cannot link a transaction to itself")

        link = TransferLink(
            transaction_1_id=transaction_1_id,
            transaction_2_id=transaction_2_id,
            confidence=confidence,
            notes=notes,
        )

        try:
            self.repository.link_pair(user_id, link)
        except (NotFoundError, AlreadyLinkedError) as e:
            self._reject(user_id, ids, str(e))
            raise

        self.audit.record(
            AuditAction.TRANSFER_LINKED,
            "Transfer linked",
            user_id=user_id,
            transaction_ids=ids,
            transfer_pair_id=link.id,
            confidence=confidence,
        )
        return link.id

    def unlink_transfer(self, user_id: str, transaction_id: str) -> None:
        """
        Remove any link touching the transaction. No-op if it is not linked.

        Raises:
            NotFoundError: If the transaction is not owned by the user
        """
        link = self.repository.unlink(user_id, transaction_id)
        if link is None:
            logger.debug("Unlink skipped, transaction not linked", transaction_id=transaction_id)
            return

        self.audit.record(
            AuditAction.TRANSFER_UNLINKED,
            "Transfer unlinked",
            user_id=user_id,
            transaction_ids=[link.transaction_1_id, link.transaction_2_id],
            transfer_pair_id=link.id,
        )

    def detect_transfers(
        self,
        user_id: str,
        date_tolerance_days: Optional[int] = None,
        amount_tolerance_percent: Optional[float] = None,
    ) -> List[TransferSuggestion]:
        if date_tolerance_days is None:
            date_tolerance_days = self.settings.detect_date_tolerance_days
        if amount_tolerance_percent is None:
            amount_tolerance_percent = self.settings.detect_amount_tolerance_percent

        return self.engine.detect_transfers(
            self.repository.list_transactions(user_id),
            date_tolerance_days=date_tolerance_days,
            amount_tolerance_percent=amount_tolerance_percent,
        )

    def suggest_transfer_for(
        self,
        user_id: str,
        transaction_id: str,
        date_tolerance_days: Optional[int] = None,
        amount_tolerance_percent: Optional[float] = None,
    ) -> List[TransferSuggestion]:
        """
        Raises:
            NotFoundError: If the target is not owned by the user
        """
        target = self.repository.get_transaction(user_id, transaction_id)
        if target is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        if date_tolerance_days is None:
            date_tolerance_days = self.settings.suggest_date_tolerance_days
        if amount_tolerance_percent is None:
            amount_tolerance_percent = self.settings.suggest_amount_tolerance_percent

        return self.engine.suggest_transfer_for(
            target,
            self.repository.list_transactions(user_id),
            date_tolerance_days=date_tolerance_days,
            amount_tolerance_percent=amount_tolerance_percent,
        )

    def list_links(self, user_id: str) -> List[TransferLink]:
        return self.repository.list_links(user_id)

    def _reject(self, user_id: str, ids: List[str], reason: str) -> None:
        self.audit.record(
            AuditAction.TRANSFER_LINK_REJECTED,
            "Transfer link rejected",
            user_id=user_id,
            transaction_ids=ids,
            success=False,
            error_message=reason,
        )
