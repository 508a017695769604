"""
Category matching.

Maps a free-text category suggestion (usually from the AI extraction step)
onto one of the user's own categories. Strategies run in order and the first
hit wins: exact, synonym table, fuzzy, substring.
"""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import structlog
from rapidfuzz.distance import Levenshtein

from ..models import CategoryMatchType

logger = structlog.get_logger()

UNCATEGORIZED = "Uncategorized"

EXACT_CONFIDENCE = 1.0
SYNONYM_CONFIDENCE = 0.9
FUZZY_CONFIDENCE = 0.8
SUBSTRING_CONFIDENCE = 0.7
FUZZY_MIN_SIMILARITY = 0.6


@dataclass(frozen=True)
class CategoryKeywordTable:
    """Versioned, immutable synonym groups. Group order is match priority."""
    version: str
    synonyms: Tuple[Tuple[str, Tuple[str, ...]], ...]

    @classmethod
    def from_mapping(cls, version: str, mapping: Mapping[str, Sequence[str]]) -> "CategoryKeywordTable":
        return cls(
            version=version,
            synonyms=tuple((key, tuple(words)) for key, words in mapping.items()),
        )


DEFAULT_CATEGORY_TABLE = CategoryKeywordTable.from_mapping("v1", {
    # Food & Dining
    "food": ["food", "dining", "restaurant", "grocery", "groceries", "eating", "meal", "cafe", "lunch", "dinner", "breakfast"],
    "dining": ["dining", "restaurant", "food", "eating", "meal", "cafe", "fast food", "takeout"],
    "grocery": ["grocery", "groceries", "supermarket", "food shopping", "provisions"],

    # Transportation
    "transport": ["transport", "transportation", "travel", "fuel", "gas", "petrol", "uber", "taxi", "car", "bus", "train", "vehicle", "auto"],
    "fuel": ["fuel", "gas", "petrol", "diesel", "gasoline", "station"],
    "taxi": ["taxi", "uber", "ola", "cab", "ride"],

    # Shopping
    "shopping": ["shopping", "retail", "store", "purchase", "buy", "clothes", "clothing", "electronics", "amazon", "flipkart"],
    "clothing": ["clothing", "clothes", "fashion", "apparel", "garments"],

    # Entertainment
    "entertainment": ["entertainment", "movie", "cinema", "games", "fun", "leisure", "hobby", "sports", "recreation"],
    "movies": ["movies", "cinema", "theater", "film"],

    # Bills & Utilities
    "utilities": ["utilities", "electric", "electricity", "water", "gas", "internet", "phone", "mobile", "bills", "utility"],
    "electricity": ["electricity", "electric", "power", "energy"],
    "internet": ["internet", "broadband", "wifi", "data"],
    "mobile": ["mobile", "phone", "cellular", "telecom"],

    # Financial services
    "insurance": ["insurance", "policy", "premium", "health insurance", "life insurance", "car insurance", "lic"],
    "investment": ["investment", "mutual fund", "sip", "fd", "deposit", "stocks", "share", "investments", "portfolio"],
    "transfer": ["transfer", "p2p", "imps", "neft", "rtgs", "upi", "payment", "money transfer"],

    # Healthcare
    "medical": ["medical", "health", "doctor", "hospital", "pharmacy", "medicine", "dental", "wellness", "clinic"],
    "healthcare": ["healthcare", "health", "medical", "doctor", "hospital"],

    # Income
    "salary": ["salary", "income", "wages", "payroll", "earnings", "pay"],
    "interest": ["interest", "dividend", "return", "earning", "income", "credit interest"],

    # Housing
    "rent": ["rent", "lease", "housing", "accommodation"],
    "mortgage": ["mortgage", "home loan", "housing loan"],

    # Loans
    "loan": ["loan", "emi", "credit", "debt", "repayment"],
    "emi": ["emi", "installment", "monthly payment"],

    # Cash
    "cash": ["cash", "atm", "withdrawal", "withdraw"],
    "atm": ["atm", "cash withdrawal", "withdraw"],
})


@dataclass(frozen=True)
class CategoryMatch:
    """Outcome of matching one suggested category."""
    category: str
    confidence: float
    match_type: CategoryMatchType
    reason: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "category": self.category,
            "confidence": self.confidence,
            "match_type": self.match_type.value,
            "reason": self.reason,
        }


def _overlaps(a: str, b: str) -> bool:
    return a in b or b in a


class CategoryMatcher:
    """
    Matches suggested categories against a fixed list of user categories.

    The keyword table and threshold are configuration; nothing is learned or
    mutated while matching.
    """

    def __init__(
        self,
        user_categories: Sequence[str],
        table: CategoryKeywordTable = DEFAULT_CATEGORY_TABLE,
        threshold: float = 0.7,
    ):
        self.user_categories: List[str] = [c for c in user_categories if c and c.strip()]
        self.table = table
        self.threshold = max(0.0, min(1.0, threshold))

    def match(self, suggested: Optional[str]) -> str:
        """Best user category, or "Uncategorized" below the threshold."""
        result = self.match_with_confidence(suggested)
        return result.category if result.confidence >= self.threshold else UNCATEGORIZED

    def match_with_confidence(self, suggested: Optional[str]) -> CategoryMatch:
        if not suggested or not suggested.strip() or not self.user_categories:
            return CategoryMatch(
                category=UNCATEGORIZED,
                confidence=0.0,
                match_type=CategoryMatchType.NONE,
                reason="No category suggested or no user categories available",
            )

        needle = suggested.strip().lower()

        for strategy in (self._exact, self._synonym, self._fuzzy, self._substring):
            result = strategy(needle)
            if result is not None:
                logger.debug(
                    "Category matched",
                    suggested=suggested,
                    category=result.category,
                    match_type=result.match_type.value,
                )
                return result

        return CategoryMatch(
            category=UNCATEGORIZED,
            confidence=0.0,
            match_type=CategoryMatchType.NONE,
            reason=f'No suitable match found for "{suggested}" in user categories',
        )

    def suggestions(self, suggested: str) -> List[str]:
        """Hints for the user when a suggestion cannot be auto-matched."""
        result = self.match_with_confidence(suggested)
        if result.confidence >= self.threshold:
            return []

        hints = [f'Consider adding "{suggested}" as a new category']
        if result.match_type == CategoryMatchType.NONE:
            hints.append("No similar categories found in your list")
        else:
            hints.append(f'Best match: "{result.category}" ({round(result.confidence * 100)}% confidence)')
        return hints

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _exact(self, needle: str) -> Optional[CategoryMatch]:
        for name in self.user_categories:
            if name.strip().lower() == needle:
                return CategoryMatch(name, EXACT_CONFIDENCE, CategoryMatchType.EXACT,
                                     f'Exact match found for "{needle}"')
        return None

    def _synonym(self, needle: str) -> Optional[CategoryMatch]:
        for _, words in self.table.synonyms:
            if not any(_overlaps(needle, w) for w in words):
                continue
            for name in self.user_categories:
                lowered = name.strip().lower()
                if any(_overlaps(lowered, w) for w in words):
                    return CategoryMatch(name, SYNONYM_CONFIDENCE, CategoryMatchType.SYNONYM,
                                         f'Synonym match: "{needle}" mapped to "{name}"')
        return None

    def _fuzzy(self, needle: str) -> Optional[CategoryMatch]:
        best_name = None
        best_score = 0.0
        for name in self.user_categories:
            score = Levenshtein.normalized_similarity(needle, name.strip().lower())
            if score > best_score and score > FUZZY_MIN_SIMILARITY:
                best_name, best_score = name, score

        if best_name is None:
            return None
        return CategoryMatch(
            best_name,
            round(FUZZY_CONFIDENCE * best_score, 4),
            CategoryMatchType.FUZZY,
            f'Fuzzy match: "{needle}" similar to "{best_name}" ({round(best_score * 100)}% similarity)',
        )

    def _substring(self, needle: str) -> Optional[CategoryMatch]:
        for name in self.user_categories:
            if _overlaps(needle, name.strip().lower()):
                return CategoryMatch(name, SUBSTRING_CONFIDENCE, CategoryMatchType.SUBSTRING,
                                     f'Substring match: "{needle}" contains or is contained in "{name}"')
        return None
