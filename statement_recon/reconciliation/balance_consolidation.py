"""
Balance consolidation.

Each page of a statement may yield a balance reading of its own. The
consolidation engine reduces the current per-page candidate set to the one
closing balance that represents the statement.
"""

from typing import Iterable, List, Optional

import structlog

from ..models import (
    AuditAction,
    BalanceCandidate,
    ConsolidatedBalance,
)
from ..models.reconciliation import DEFAULT_BALANCE_NOTES
from ..storage import BalanceRepository, NotFoundError
from ..utils.audit_logger import AuditLogger

logger = structlog.get_logger()

NO_BALANCE_NOTES = "No closing balance detected in statement"


class BalanceConsolidationEngine:
    """
    Pure reduction over balance candidates.

    Selection: highest confidence among candidates with a closing balance;
    on a tie the later page wins. Identical candidate multisets always give
    the same result regardless of order.
    """

    def consolidate(
        self,
        statement_id: str,
        candidates: Iterable[BalanceCandidate],
    ) -> ConsolidatedBalance:
        candidates = list(candidates)
        usable = [c for c in candidates if c.has_closing_balance]

        if not usable:
            return ConsolidatedBalance(
                statement_id=statement_id,
                closing_balance_cents=None,
                confidence=0,
                source_page=None,
                notes=NO_BALANCE_NOTES,
                candidate_count=len(candidates),
            )

        # Balance and notes as trailing keys so duplicate pages stay order-independent
        best = max(
            usable,
            key=lambda c: (c.confidence, c.page_number, c.closing_balance_cents, c.notes),
        )
        logger.debug(
            "Balance candidate selected",
            statement_id=statement_id,
            page=best.page_number,
            confidence=best.confidence,
            candidates=len(candidates),
        )

        return ConsolidatedBalance(
            statement_id=statement_id,
            closing_balance_cents=best.closing_balance_cents,
            confidence=best.confidence,
            source_page=best.page_number,
            notes=self._notes_for(best),
            candidate_count=len(candidates),
        )

    @staticmethod
    def _notes_for(candidate: BalanceCandidate) -> str:
        if candidate.notes and candidate.notes != DEFAULT_BALANCE_NOTES:
            return candidate.notes
        return f"Closing balance from page {candidate.page_number}"


class BalanceConsolidationService:
    """Persists per-page candidates and the consolidated balance for a statement."""

    def __init__(
        self,
        repository: BalanceRepository,
        engine: Optional[BalanceConsolidationEngine] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.repository = repository
        self.engine = engine or BalanceConsolidationEngine()
        self.audit = audit or AuditLogger()

    def record_candidate(
        self,
        user_id: str,
        statement_id: str,
        candidate: BalanceCandidate,
    ) -> bool:
        """
        Upsert one page's candidate.

        Returns:
            True if a new page candidate was inserted, False if it replaced one
        """
        self._require_statement(user_id, statement_id)

        inserted = self.repository.upsert_candidate(user_id, statement_id, candidate)
        action = (
            AuditAction.BALANCE_CANDIDATE_INSERTED
            if inserted
            else AuditAction.BALANCE_CANDIDATE_UPDATED
        )
        self.audit.record(
            action,
            f"Balance candidate {'inserted' if inserted else 'updated'} for page {candidate.page_number}",
            user_id=user_id,
            statement_id=statement_id,
            page_number=candidate.page_number,
            confidence=candidate.confidence,
        )
        return inserted

    def list_candidates(self, user_id: str, statement_id: str) -> List[BalanceCandidate]:
        self._require_statement(user_id, statement_id)
        return self.repository.list_candidates(user_id, statement_id)

    def finalize(self, user_id: str, statement_id: str) -> ConsolidatedBalance:
        """Re-derive the statement balance from the current candidates and store it."""
        self._require_statement(user_id, statement_id)

        candidates = self.repository.list_candidates(user_id, statement_id)
        result = self.engine.consolidate(statement_id, candidates)
        self.repository.save_consolidated(user_id, result)

        self.audit.record(
            AuditAction.BALANCE_CONSOLIDATED,
            result.notes,
            user_id=user_id,
            statement_id=statement_id,
            closing_balance_cents=result.closing_balance_cents,
            confidence=result.confidence,
            source_page=result.source_page,
            candidates=result.candidate_count,
        )
        return result

    def _require_statement(self, user_id: str, statement_id: str) -> None:
        if not self.repository.owns_statement(user_id, statement_id):
            raise NotFoundError(f"Statement not found: {statement_id}")
