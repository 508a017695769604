"""
Transfer detection.

Finds pairs of transactions in different accounts that look like the two
legs of one internal money movement: opposite signs, near-equal magnitude,
close dates. Detection is read-only; it only ever returns suggestions.
"""

import re
from dataclasses import dataclass
from itertools import combinations
from typing import List, Optional, Sequence, Tuple

import structlog

from ..models import Transaction, TransferSuggestion
from ..utils.money import format_cents

logger = structlog.get_logger()


@dataclass(frozen=True)
class TransferKeywordSet:
    """Versioned, immutable set of transfer-reference patterns."""
    version: str
    patterns: Tuple[str, ...]

    def __post_init__(self):
        # An empty alternative would match every description
        if not self.patterns or not all(p.strip() for p in self.patterns):
            raise ValueError(f"Keyword set {self.version!r} needs non-empty patterns")
        # Compiled once; frozen dataclass needs object.__setattr__
        object.__setattr__(
            self,
            "_regex",
            re.compile("(" + "|".join(self.patterns) + ")", re.IGNORECASE),
        )

    def matches(self, text: Optional[str]) -> bool:
        return bool(text) and self._regex.search(text) is not None


TRANSFER_KEYWORDS_V1 = TransferKeywordSet(
    version="v1",
    patterns=("neft", "rtgs", "imps", "upi", "transfer", "fund", "remit"),
)

KEYWORD_SETS = {
    TRANSFER_KEYWORDS_V1.version: TRANSFER_KEYWORDS_V1,
}

# Scoring
BASE_CONFIDENCE = 0.5
EXACT_AMOUNT_BONUS = 0.30
CLOSE_AMOUNT_BONUS = 0.20
SAME_DAY_BONUS = 0.20
NEXT_DAY_BONUS = 0.10
KEYWORD_BONUS = 0.15

CLOSE_AMOUNT_PERCENT = 1
REASON_AMOUNT_LIMIT_CENTS = 500
REASON_DATE_LIMIT_DAYS = 2


@dataclass
class _PairScore:
    confidence: float
    amount_diff_cents: int
    date_diff_days: int
    reason: str


class TransferDetectionEngine:
    """
    Scores candidate transfer pairs.

    Candidate filter:
    1. Both accounts known and different
    2. Strictly opposite signs
    3. |a + b| within the amount tolerance of the reference magnitude
    4. Both dated, at most date_tolerance_days apart
    5. Neither already linked nor flagged as internal transfer

    Confidence starts at 0.5 and adds bonuses for exact/close amount,
    same/next day and a keyword in either description, capped.
    """

    def __init__(
        self,
        keywords: TransferKeywordSet = TRANSFER_KEYWORDS_V1,
        confidence_cap: float = 0.95,
        suggestion_limit: int = 5,
    ):
        self.keywords = keywords
        self.confidence_cap = confidence_cap
        self.suggestion_limit = suggestion_limit

    def detect_transfers(
        self,
        transactions: Sequence[Transaction],
        date_tolerance_days: int = 1,
        amount_tolerance_percent: float = 1.0,
    ) -> List[TransferSuggestion]:
        """
        Batch-scan transactions for candidate pairs.

        Each unordered pair is considered once. The reference magnitude for
        the amount tolerance is the larger leg, so the check is symmetric.

        Returns:
            Suggestions with the debit leg first, best first
        """
        pool = [t for t in transactions if self._eligible(t)]
        suggestions = []

        for a, b in combinations(pool, 2):
            reference = max(abs(a.amount_cents), abs(b.amount_cents))
            score = self._score(a, b, reference, date_tolerance_days, amount_tolerance_percent)
            if score is None:
                continue

            debit, credit = (a, b) if a.amount_cents < 0 else (b, a)
            suggestions.append(self._suggestion(debit, credit, score))

        suggestions = self._sorted(suggestions)

        logger.info(
            "Transfer detection complete",
            transactions=len(transactions),
            eligible=len(pool),
            suggestions=len(suggestions),
        )
        return suggestions

    def suggest_transfer_for(
        self,
        target: Transaction,
        transactions: Sequence[Transaction],
        date_tolerance_days: int = 2,
        amount_tolerance_percent: float = 2.0,
    ) -> List[TransferSuggestion]:
        """
        Score every eligible counterpart of one target transaction.

        The reference magnitude is the target's own amount. The target itself
        may be linked; only the counterparts are filtered for link state.

        Returns:
            Top suggestions (suggestion_limit), target first in each pair
        """
        if target.transaction_date is None:
            return []

        suggestions = []
        for candidate in transactions:
            if candidate.id == target.id or not self._eligible(candidate):
                continue

            score = self._score(
                target,
                candidate,
                abs(target.amount_cents),
                date_tolerance_days,
                amount_tolerance_percent,
            )
            if score is not None:
                suggestions.append(self._suggestion(target, candidate, score))

        return self._sorted(suggestions)[: self.suggestion_limit]

    # ------------------------------------------------------------------
    # Filtering and scoring
    # ------------------------------------------------------------------

    @staticmethod
    def _eligible(txn: Transaction) -> bool:
        return (
            txn.is_transfer_candidate
            and txn.transaction_date is not None
            and txn.amount_cents != 0
        )

    def _score(
        self,
        first: Transaction,
        second: Transaction,
        reference_cents: int,
        date_tolerance_days: int,
        amount_tolerance_percent: float,
    ) -> Optional[_PairScore]:
        if first.account_id is None or second.account_id is None:
            return None
        if first.account_id == second.account_id:
            return None
        if (first.amount_cents > 0) == (second.amount_cents > 0):
            return None
        if first.amount_cents == 0 or second.amount_cents == 0:
            return None

        amount_diff = abs(first.amount_cents + second.amount_cents)
        if amount_diff * 100 > reference_cents * amount_tolerance_percent:
            return None

        date_diff = abs((first.transaction_date - second.transaction_date).days)
        if date_diff > date_tolerance_days:
            return None

        confidence = BASE_CONFIDENCE
        if amount_diff == 0:
            confidence += EXACT_AMOUNT_BONUS
        elif amount_diff * 100 <= reference_cents * CLOSE_AMOUNT_PERCENT:
            confidence += CLOSE_AMOUNT_BONUS

        if date_diff == 0:
            confidence += SAME_DAY_BONUS
        elif date_diff == 1:
            confidence += NEXT_DAY_BONUS

        has_keyword = (
            self.keywords.matches(first.description)
            or self.keywords.matches(second.description)
        )
        if has_keyword:
            confidence += KEYWORD_BONUS

        return _PairScore(
            confidence=round(min(confidence, self.confidence_cap), 4),
            amount_diff_cents=amount_diff,
            date_diff_days=date_diff,
            reason=self._reason(amount_diff, date_diff, has_keyword),
        )

    @staticmethod
    def _reason(amount_diff_cents: int, date_diff_days: int, has_keyword: bool) -> str:
        reasons = []

        if amount_diff_cents == 0:
            reasons.append("Exact amount match")
        elif amount_diff_cents <= REASON_AMOUNT_LIMIT_CENTS:
            reasons.append(f"Close amount ({format_cents(amount_diff_cents)} difference)")

        if date_diff_days == 0:
            reasons.append("Same day")
        elif date_diff_days == 1:
            reasons.append("Next day")
        elif date_diff_days <= REASON_DATE_LIMIT_DAYS:
            reasons.append(f"{date_diff_days} days apart")

        if has_keyword:
            reasons.append("Transfer patterns")

        return ", ".join(reasons) or "Potential match"

    @staticmethod
    def _suggestion(first: Transaction, second: Transaction, score: _PairScore) -> TransferSuggestion:
        return TransferSuggestion(
            transaction_1=first,
            transaction_2=second,
            confidence=score.confidence,
            amount_diff_cents=score.amount_diff_cents,
            date_diff_days=score.date_diff_days,
            reason=score.reason,
        )

    @staticmethod
    def _sorted(suggestions: List[TransferSuggestion]) -> List[TransferSuggestion]:
        return sorted(
            suggestions,
            key=lambda s: (
                -s.confidence,
                s.amount_diff_cents,
                s.date_diff_days,
                s.transaction_1.id,
                s.transaction_2.id,
            ),
        )
