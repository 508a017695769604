"""
Layout-aware table parser for bank statement pages.

Recovers transaction rows from the positioned text runs of one page using a
per-bank layout template: header detection, row grouping, column assignment,
then a left-to-right fold over the rows that decides where each transaction
starts and which lines continue its description.
"""

import asyncio
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence, Tuple

import structlog

from ..models import Transaction
from ..utils.money import decimal_to_cents, parse_decimal
from .domain import (
    DocumentParseResult,
    PageParseResult,
    PendingTransaction,
    RowCells,
    TextItem,
)
from .segmentation import (
    assign_to_columns,
    description_text,
    detect_column_layout,
    group_into_rows,
)
from .templates import LayoutTemplate

logger = structlog.get_logger()


@dataclass(frozen=True)
class ParsedRow:
    """The values the boundary fold needs from one row."""
    row_index: int
    transaction_date: Optional[date]
    amount_cents: int
    description: str
    raw_text: str


class LayoutTableParser:
    """
    Parser for one known statement layout.

    Stateless across pages: every call works only on its own arguments, so
    pages of one statement can be parsed concurrently.
    """

    def __init__(self, template: LayoutTemplate):
        self.template = template

    # ------------------------------------------------------------------
    # Page level
    # ------------------------------------------------------------------

    def parse_page(self, items: Sequence[TextItem], page_number: int = 1) -> List[Transaction]:
        """Parse one page into candidate transactions (empty when skipped)."""
        return self.parse_page_result(items, page_number).transactions

    def parse_page_result(self, items: Sequence[TextItem], page_number: int = 1) -> PageParseResult:
        """
        Parse one page and report whether it was skipped.

        Args:
            items: Positioned text runs of the page
            page_number: 1-based page number recorded on each transaction

        Returns:
            PageParseResult; a page without a recognizable header is skipped,
            which is a normal outcome rather than an error.
        """
        if not items:
            return PageParseResult(page_number=page_number, skipped=True, skip_reason="no text content")

        layout = detect_column_layout(items, self.template)
        if layout is None:
            logger.info("Could not find table headers, skipping page", page=page_number)
            return PageParseResult(page_number=page_number, skipped=True, skip_reason="table headers not found")

        rows = group_into_rows(items, layout.header_y, self.template.row_tolerance)
        parsed_rows = [
            self.read_row(assign_to_columns(row, index, layout, self.template.column_tolerance))
            for index, row in enumerate(rows)
        ]

        transactions = [
            self._to_transaction(pending, page_number)
            for pending in self.fold_rows(parsed_rows)
        ]

        logger.info(
            "Page parsed",
            page=page_number,
            rows=len(rows),
            transactions=len(transactions),
        )
        return PageParseResult(
            page_number=page_number,
            transactions=transactions,
            layout=layout,
            rows_scanned=len(rows),
        )

    # ------------------------------------------------------------------
    # Row reading
    # ------------------------------------------------------------------

    def read_row(self, cells: RowCells) -> ParsedRow:
        """Extract date, signed amount and description text from one row."""
        return ParsedRow(
            row_index=cells.row_index,
            transaction_date=self.template.parse_date(cells.text(self.template.date_column)),
            amount_cents=self.parse_amount(
                cells.text(self.template.debit_column),
                cells.text(self.template.credit_column),
            ),
            description=description_text(cells, self.template),
            raw_text=cells.raw_text,
        )

    def parse_amount(self, debit_text: str, credit_text: str) -> int:
        """
        Signed amount in cents: +credit if positive, else -debit if positive, else 0.
        Malformed or out-of-range cells count as absent.
        """
        strip = self.template.amount_strip_regex

        credit = self._positive_cents(credit_text, strip)
        if credit is not None:
            return credit

        debit = self._positive_cents(debit_text, strip)
        if debit is not None:
            return -debit

        return 0

    @staticmethod
    def _positive_cents(text: str, strip) -> Optional[int]:
        value = parse_decimal(text, strip)
        if value is None or value <= 0:
            return None
        cents = decimal_to_cents(value)
        return cents if cents else None

    # ------------------------------------------------------------------
    # Transaction boundaries
    # ------------------------------------------------------------------

    def advance(
        self,
        pending: Optional[PendingTransaction],
        row: ParsedRow,
    ) -> Tuple[Optional[PendingTransaction], Optional[PendingTransaction]]:
        """
        One fold step: (pending, row) -> (pending, emitted).

        A row with a date and a non-zero amount starts a new transaction and
        emits the pending one. A row with neither, but with description text,
        continues the pending description when multi-line mode is on.
        Every other row leaves the state untouched.
        """
        if row.transaction_date is not None and row.amount_cents != 0:
            started = PendingTransaction(
                row_index=row.row_index,
                transaction_date=row.transaction_date,
                amount_cents=row.amount_cents,
                description=row.description,
                raw_text=row.raw_text,
            )
            return started, pending

        if (
            row.transaction_date is None
            and row.amount_cents == 0
            and row.description
            and pending is not None
            and self.template.multi_line_description
        ):
            return pending.append(row.description), None

        return pending, None

    def fold_rows(self, rows: Sequence[ParsedRow]) -> List[PendingTransaction]:
        """Run the boundary fold over rows top to bottom and flush the last pending."""
        emitted: List[PendingTransaction] = []
        pending: Optional[PendingTransaction] = None
        for row in rows:
            pending, done = self.advance(pending, row)
            if done is not None:
                emitted.append(done)
        if pending is not None:
            emitted.append(pending)
        return emitted

    def _to_transaction(self, pending: PendingTransaction, page_number: int) -> Transaction:
        return Transaction(
            source_page=page_number,
            source_row=pending.row_index,
            transaction_date=pending.transaction_date,
            amount_cents=pending.amount_cents,
            description=pending.description,
            raw_text=pending.raw_text,
        )

    # ------------------------------------------------------------------
    # Document level
    # ------------------------------------------------------------------

    def parse_document(self, pages: Sequence[Sequence[TextItem]]) -> DocumentParseResult:
        """Parse all pages sequentially; pages are numbered from 1."""
        results = [
            self.parse_page_result(items, page_number)
            for page_number, items in enumerate(pages, start=1)
        ]
        return self._combine(results)

    async def parse_document_async(self, pages: Sequence[Sequence[TextItem]]) -> DocumentParseResult:
        """
        Parse pages concurrently, one worker-thread task per page.
        Results are concatenated in page order regardless of completion order.
        """
        tasks = [
            asyncio.to_thread(self.parse_page_result, items, page_number)
            for page_number, items in enumerate(pages, start=1)
        ]
        results = await asyncio.gather(*tasks)
        return self._combine(list(results))

    def _combine(self, results: List[PageParseResult]) -> DocumentParseResult:
        transactions: List[Transaction] = []
        parsed: List[int] = []
        skipped: List[int] = []
        warnings: List[str] = []

        for result in sorted(results, key=lambda r: r.page_number):
            if result.skipped:
                skipped.append(result.page_number)
                warnings.append(f"Page {result.page_number} skipped: {result.skip_reason}")
                continue
            parsed.append(result.page_number)
            transactions.extend(result.transactions)

        logger.info(
            "Document parsed",
            template=self.template.identifier,
            pages=len(results),
            skipped=len(skipped),
            transactions=len(transactions),
        )
        return DocumentParseResult(
            transactions=transactions,
            pages_parsed=parsed,
            skipped_pages=skipped,
            warnings=warnings,
        )
