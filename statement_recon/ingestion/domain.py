
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple

from ..models import Transaction

UNASSIGNED = "Unassigned"


@dataclass(frozen=True)
class TextItem:
    """
    A positioned text run on one page.
    Coordinates are page-local and bottom-up: a larger y is higher on the page.
    """
    text: str
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0


@dataclass(frozen=True)
class Row:
    """Text items judged to share one horizontal line, ordered by x."""
    y: float
    items: Tuple[TextItem, ...]

    @property
    def raw_text(self) -> str:
        return " ".join(item.text.strip() for item in self.items).strip()


@dataclass(frozen=True)
class ColumnBoundary:
    """Horizontal span of one table column, inferred from its header."""
    name: str
    x: float
    width: float

    def contains(self, x: float, tolerance: float) -> bool:
        return self.x - tolerance <= x <= self.x + self.width + tolerance


@dataclass(frozen=True)
class ColumnLayout:
    """Header row position plus the ordered column boundaries of one page."""
    header_y: float
    columns: Tuple[ColumnBoundary, ...]

    def column_for(self, x: float, tolerance: float) -> str:
        """First column whose span contains x, else the unassigned bucket."""
        for column in self.columns:
            if column.contains(x, tolerance):
                return column.name
        return UNASSIGNED


@dataclass(frozen=True)
class RowCells:
    """Tokens of one row bucketed per column, left-to-right within each bucket."""
    row_index: int
    cells: Dict[str, Tuple[str, ...]]
    raw_text: str

    def text(self, column: str) -> str:
        return " ".join(self.cells.get(column, ())).strip()


@dataclass(frozen=True)
class PendingTransaction:
    """Fold accumulator: the transaction currently collecting continuation lines."""
    row_index: int
    transaction_date: date
    amount_cents: int
    description: str
    raw_text: str

    def append(self, text: str) -> "PendingTransaction":
        description = f"{self.description} {text}".strip()
        return PendingTransaction(
            row_index=self.row_index,
            transaction_date=self.transaction_date,
            amount_cents=self.amount_cents,
            description=description,
            raw_text=self.raw_text,
        )


@dataclass
class PageParseResult:
    """Outcome of parsing one page. A skipped page is a normal result."""
    page_number: int
    transactions: List[Transaction] = field(default_factory=list)
    skipped: bool = False
    skip_reason: Optional[str] = None
    layout: Optional[ColumnLayout] = None
    rows_scanned: int = 0


@dataclass
class DocumentParseResult:
    """Transactions of every page, concatenated in page order."""
    transactions: List[Transaction]
    pages_parsed: List[int]
    skipped_pages: List[int]
    warnings: List[str] = field(default_factory=list)
