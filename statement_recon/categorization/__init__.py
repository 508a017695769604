"""Category matching against a user's own categories."""

from .matcher import (
    CategoryKeywordTable,
    CategoryMatch,
    CategoryMatcher,
    DEFAULT_CATEGORY_TABLE,
    UNCATEGORIZED,
)

__all__ = [
    "CategoryKeywordTable",
    "CategoryMatch",
    "CategoryMatcher",
    "DEFAULT_CATEGORY_TABLE",
    "UNCATEGORIZED",
]
