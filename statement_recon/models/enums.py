"""Enumerations for the statement reconciliation core."""

from enum import Enum


class TransactionType(str, Enum):
    """Type of transaction, derived from the sign of its amount."""
    DEBIT = "debit"        # Money out (expense)
    CREDIT = "credit"      # Money in (income)


class ExtractionMethod(str, Enum):
    """How a balance candidate was obtained."""
    AI_LLM = "ai_llm"
    MANUAL = "manual"
    CALCULATED = "calculated"


class AuditAction(str, Enum):
    """Type of audit action."""
    PAGE_PARSED = "page_parsed"
    PAGE_SKIPPED = "page_skipped"
    BALANCE_CANDIDATE_INSERTED = "balance_candidate_inserted"
    BALANCE_CANDIDATE_UPDATED = "balance_candidate_updated"
    BALANCE_CONSOLIDATED = "balance_consolidated"
    TRANSFER_LINKED = "transfer_linked"
    TRANSFER_UNLINKED = "transfer_unlinked"
    TRANSFER_LINK_REJECTED = "transfer_link_rejected"


class CategoryMatchType(str, Enum):
    """Which matching strategy resolved a category."""
    EXACT = "exact"
    SYNONYM = "synonym"
    FUZZY = "fuzzy"
    SUBSTRING = "substring"
    NONE = "none"
