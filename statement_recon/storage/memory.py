"""
In-memory storage.

Used by the API server and the tests. One lock guards every write so the
link check-and-set and the per-page balance upsert are atomic.
"""

import threading
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from ..models import (
    BalanceCandidate,
    ConsolidatedBalance,
    Transaction,
    TransferLink,
)
from .interface import (
    AlreadyLinkedError,
    BalanceRepository,
    NotFoundError,
    TransactionRepository,
)


class InMemoryStore(TransactionRepository, BalanceRepository):
    """Dictionary-backed implementation of both repositories."""

    def __init__(self):
        self._lock = threading.RLock()
        self._transactions: Dict[str, Dict[str, Transaction]] = defaultdict(dict)
        self._links: Dict[str, Dict[str, TransferLink]] = defaultdict(dict)
        self._statements: Dict[str, set] = defaultdict(set)
        self._candidates: Dict[Tuple[str, str], Dict[int, BalanceCandidate]] = defaultdict(dict)
        self._consolidated: Dict[Tuple[str, str], ConsolidatedBalance] = {}

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def add_transactions(self, user_id: str, transactions: Iterable[Transaction]) -> List[Transaction]:
        stored = []
        with self._lock:
            for txn in transactions:
                record = replace(txn, user_id=user_id)
                self._transactions[user_id][record.id] = record
                stored.append(replace(record))
        return stored

    def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        with self._lock:
            txn = self._transactions.get(user_id, {}).get(transaction_id)
            return replace(txn) if txn else None

    def list_transactions(self, user_id: str) -> List[Transaction]:
        with self._lock:
            return [replace(t) for t in self._transactions.get(user_id, {}).values()]

    def link_pair(self, user_id: str, link: TransferLink) -> TransferLink:
        with self._lock:
            owned = self._transactions.get(user_id, {})
            first = owned.get(link.transaction_1_id)
            second = owned.get(link.transaction_2_id)
            if first is None or second is None:
                raise NotFoundError("One or both transactions not found")

            for txn in (first, second):
                if txn.is_linked:
                    raise AlreadyLinkedError(txn.id, txn.linked_transaction_id)

            now = datetime.utcnow()
            for txn, other in ((first, second), (second, first)):
                txn.linked_transaction_id = other.id
                txn.transfer_pair_id = link.id
                txn.is_internal_transfer = True
                txn.transfer_confidence = link.confidence
                txn.transfer_notes = link.notes
                txn.updated_at = now

            self._links[user_id][link.id] = link
            return link

    def unlink(self, user_id: str, transaction_id: str) -> Optional[TransferLink]:
        with self._lock:
            owned = self._transactions.get(user_id, {})
            txn = owned.get(transaction_id)
            if txn is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")

            if not txn.is_linked:
                return None

            link = self._links.get(user_id, {}).pop(txn.transfer_pair_id, None)
            counterpart = owned.get(txn.linked_transaction_id)
            txn.clear_link()
            if counterpart is not None:
                counterpart.clear_link()
            return link

    def list_links(self, user_id: str) -> List[TransferLink]:
        with self._lock:
            return list(self._links.get(user_id, {}).values())

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def register_statement(self, user_id: str, statement_id: str) -> None:
        with self._lock:
            self._statements[user_id].add(statement_id)

    def owns_statement(self, user_id: str, statement_id: str) -> bool:
        with self._lock:
            return statement_id in self._statements.get(user_id, ())

    def upsert_candidate(self, user_id: str, statement_id: str, candidate: BalanceCandidate) -> bool:
        with self._lock:
            pages = self._candidates[(user_id, statement_id)]
            inserted = candidate.page_number not in pages
            pages[candidate.page_number] = replace(candidate, updated_at=datetime.utcnow())
            return inserted

    def list_candidates(self, user_id: str, statement_id: str) -> List[BalanceCandidate]:
        with self._lock:
            pages = self._candidates.get((user_id, statement_id), {})
            return [replace(pages[n]) for n in sorted(pages)]

    def save_consolidated(self, user_id: str, balance: ConsolidatedBalance) -> None:
        with self._lock:
            self._consolidated[(user_id, balance.statement_id)] = balance

    def get_consolidated(self, user_id: str, statement_id: str) -> Optional[ConsolidatedBalance]:
        with self._lock:
            return self._consolidated.get((user_id, statement_id))
