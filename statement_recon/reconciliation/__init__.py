"""Reconciliation engines: balance consolidation and transfer detection/linking."""

from .balance_consolidation import (
    BalanceConsolidationEngine,
    BalanceConsolidationService,
)
from .transfer_detection import (
    TransferKeywordSet,
    TransferDetectionEngine,
    TRANSFER_KEYWORDS_V1,
)
from .transfer_linking import TransferLinkService

__all__ = [
    "BalanceConsolidationEngine",
    "BalanceConsolidationService",
    "TransferKeywordSet",
    "TransferDetectionEngine",
    "TRANSFER_KEYWORDS_V1",
    "TransferLinkService",
]
