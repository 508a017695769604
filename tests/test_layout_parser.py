"""
Tests for the layout table parser.
"""

import asyncio
from datetime import date

import pytest
from pydantic import ValidationError

from statement_recon.config import get_settings
from statement_recon.ingestion import (
    LayoutTableParser,
    LayoutTemplate,
    TextItem,
    get_template,
    load_template_file,
)
from statement_recon.ingestion.domain import UNASSIGNED, PendingTransaction
from statement_recon.ingestion.layout_parser import ParsedRow
from statement_recon.ingestion.segmentation import (
    assign_to_columns,
    detect_column_layout,
    group_into_rows,
)


# DBS column x positions; widths keep neighbouring columns apart at tolerance 15
DBS_COLUMNS = [
    ("Transaction Date", 40, 70),
    ("Value Date", 140, 60),
    ("Details of transaction", 230, 120),
    ("Debit", 380, 40),
    ("Credit", 450, 40),
    ("Balance", 520, 50),
]
HEADER_Y = 700


def dbs_header(labels=None):
    return [
        TextItem(text=name, x=x, y=HEADER_Y, width=w, height=10)
        for name, x, w in DBS_COLUMNS
        if labels is None or name in labels
    ]


def dbs_row(y, txn_date="", details="", debit="", credit="", balance=""):
    cells = [
        (txn_date, 40),
        (txn_date, 140),
        (details, 235),
        (debit, 385),
        (credit, 455),
        (balance, 525),
    ]
    return [TextItem(text=t, x=x, y=y, width=30, height=10) for t, x in cells if t]


@pytest.fixture
def dbs_parser():
    return LayoutTableParser(get_template("dbs_pdf_v1"))


@pytest.fixture
def simple_template():
    """Three-column layout without description columns; narrative is unassigned."""
    return LayoutTemplate(
        identifier="simple",
        headers=["Date", "Debit", "Credit"],
        date_column="Date",
        debit_column="Debit",
        credit_column="Credit",
        date_formats=["%d-%b-%Y"],
    )


class TestHeaderDetection:
    """Header detection with the (N - 2) threshold."""

    def test_all_headers_found(self):
        layout = detect_column_layout(dbs_header(), get_template("dbs_pdf_v1"))

        assert layout is not None
        assert layout.header_y == HEADER_Y
        assert [c.name for c in layout.columns] == [name for name, _, _ in DBS_COLUMNS]

    def test_threshold_met_with_two_missing(self):
        labels = {"Transaction Date", "Details of transaction", "Debit", "Credit"}
        layout = detect_column_layout(dbs_header(labels), get_template("dbs_pdf_v1"))

        assert layout is not None
        assert len(layout.columns) == 4

    def test_below_threshold_fails(self, dbs_parser):
        labels = {"Transaction Date", "Debit", "Credit"}
        items = dbs_header(labels) + dbs_row(680, "03-Jan-2024", "NEFT", debit="100.00")

        assert detect_column_layout(items, dbs_parser.template) is None

        result = dbs_parser.parse_page_result(items, page_number=2)
        assert result.skipped
        assert result.skip_reason == "table headers not found"
        assert result.transactions == []

    def test_header_match_is_case_insensitive_prefix(self):
        items = [
            TextItem(text="TRANSACTION DATE ", x=40, y=700, width=70),
            TextItem(text="value date", x=140, y=700, width=60),
            TextItem(text="Debit (INR)", x=380, y=700, width=40),
            TextItem(text="Credit (INR)", x=450, y=700, width=40),
        ]
        layout = detect_column_layout(items, get_template("dbs_pdf_v1"))

        assert layout is not None
        assert [c.name for c in layout.columns] == ["Transaction Date", "Value Date", "Debit", "Credit"]

    def test_empty_page_is_skipped(self, dbs_parser):
        result = dbs_parser.parse_page_result([], page_number=1)

        assert result.skipped
        assert result.skip_reason == "no text content"


class TestRowGrouping:
    """Clustering of items into rows."""

    def test_items_within_tolerance_share_a_row(self):
        items = [
            TextItem(text="b", x=200, y=678),
            TextItem(text="a", x=100, y=680),
            TextItem(text="c", x=100, y=650),
        ]
        rows = group_into_rows(items, header_y=700, row_tolerance=5)

        assert len(rows) == 2
        assert [i.text for i in rows[0].items] == ["a", "b"]
        assert rows[0].raw_text == "a b"
        assert [i.text for i in rows[1].items] == ["c"]

    def test_tolerance_boundary_is_exclusive(self):
        items = [
            TextItem(text="a", x=100, y=680),
            TextItem(text="b", x=100, y=675),
        ]
        rows = group_into_rows(items, header_y=700, row_tolerance=5)

        assert len(rows) == 2

    def test_header_row_and_above_are_excluded(self):
        items = [
            TextItem(text="title", x=10, y=750),
            TextItem(text="header", x=10, y=700),
            TextItem(text="body", x=10, y=690),
            TextItem(text="   ", x=10, y=680),
        ]
        rows = group_into_rows(items, header_y=700, row_tolerance=5)

        assert [r.raw_text for r in rows] == ["body"]

    def test_rows_ordered_top_to_bottom(self):
        items = [
            TextItem(text="low", x=10, y=100),
            TextItem(text="high", x=10, y=600),
            TextItem(text="mid", x=10, y=300),
        ]
        rows = group_into_rows(items, header_y=700, row_tolerance=5)

        assert [r.raw_text for r in rows] == ["high", "mid", "low"]


class TestColumnAssignment:
    """Every item lands in exactly one column."""

    def test_each_item_assigned_once(self):
        template = get_template("dbs_pdf_v1")
        layout = detect_column_layout(dbs_header(), template)
        items = dbs_row(680, "03-Jan-2024", "NEFT", debit="100.00", balance="900.00")
        items.append(TextItem(text="stray", x=900, y=680, width=20))
        row = group_into_rows(items, HEADER_Y, template.row_tolerance)[0]

        cells = assign_to_columns(row, 0, layout, template.column_tolerance)

        total = sum(len(tokens) for tokens in cells.cells.values())
        assert total == len(items)
        assert cells.text("Debit") == "100.00"
        assert cells.text(UNASSIGNED) == "stray"

    def test_first_matching_column_wins(self):
        template = get_template("dbs_pdf_v1")
        layout = detect_column_layout(dbs_header(), template)

        # 125 is inside both [25, 125] for Transaction Date and [125, 215] for Value Date
        assert layout.column_for(125, template.column_tolerance) == "Transaction Date"

    def test_tokens_keep_left_to_right_order(self):
        template = get_template("dbs_pdf_v1")
        layout = detect_column_layout(dbs_header(), template)
        items = [
            TextItem(text="world", x=300, y=680),
            TextItem(text="hello", x=240, y=680),
        ]
        row = group_into_rows(items, HEADER_Y, template.row_tolerance)[0]

        cells = assign_to_columns(row, 0, layout, template.column_tolerance)

        assert cells.text("Details of transaction") == "hello world"


class TestAmountParsing:
    """Sign convention and malformed cells."""

    def test_credit_is_positive(self, dbs_parser):
        assert dbs_parser.parse_amount("", "1,500.50") == 150050

    def test_debit_is_negative(self, dbs_parser):
        assert dbs_parser.parse_amount("5,000.00", "") == -500000

    def test_credit_wins_when_both_present(self, dbs_parser):
        assert dbs_parser.parse_amount("10.00", "20.00") == 2000

    def test_zero_and_malformed_are_zero(self, dbs_parser):
        assert dbs_parser.parse_amount("0.00", "0.00") == 0
        assert dbs_parser.parse_amount("-", "") == 0
        assert dbs_parser.parse_amount("1.2.3", "abc") == 0

    def test_oversized_cells_are_absent(self, dbs_parser):
        assert dbs_parser.parse_amount("9" * 40, "") == 0
        assert dbs_parser.parse_amount("", "9E+99") == 0
        # An unusable credit cell falls through to the debit
        assert dbs_parser.parse_amount("12.00", "9" * 40) == -1200


class TestBoundaryFold:
    """The (pending, row) -> (pending, emitted) step."""

    def _row(self, index, txn_date=None, amount=0, description=""):
        return ParsedRow(
            row_index=index,
            transaction_date=txn_date,
            amount_cents=amount,
            description=description,
            raw_text=description,
        )

    def test_start_emits_previous(self, dbs_parser):
        first = PendingTransaction(0, date(2024, 1, 1), -100, "first", "first")

        pending, emitted = dbs_parser.advance(first, self._row(1, date(2024, 1, 2), 200, "second"))

        assert emitted == first
        assert pending.description == "second"
        assert pending.amount_cents == 200

    def test_continuation_appends_with_single_space(self, dbs_parser):
        first = PendingTransaction(0, date(2024, 1, 1), -100, "NEFT to", "NEFT to")

        pending, emitted = dbs_parser.advance(first, self._row(1, description="savings"))

        assert emitted is None
        assert pending.description == "NEFT to savings"

    def test_zero_amount_row_never_starts_transaction(self, dbs_parser):
        pending, emitted = dbs_parser.advance(None, self._row(0, date(2024, 1, 1), 0, "Opening balance"))

        assert pending is None
        assert emitted is None

    def test_continuation_without_pending_is_ignored(self, dbs_parser):
        pending, emitted = dbs_parser.advance(None, self._row(0, description="orphan"))

        assert pending is None
        assert emitted is None

    def test_continuation_disabled(self, simple_template):
        parser = LayoutTableParser(simple_template.model_copy(update={"multi_line_description": False}))
        first = PendingTransaction(0, date(2024, 1, 1), -100, "first", "first")

        pending, emitted = parser.advance(first, self._row(1, description="more"))

        assert pending is first
        assert emitted is None


class TestParsePage:
    """End-to-end page parsing."""

    def test_single_transaction_with_continuation(self, simple_template):
        parser = LayoutTableParser(simple_template)
        items = [
            TextItem(text="Date", x=50, y=700, width=40),
            TextItem(text="Debit", x=400, y=700, width=40),
            TextItem(text="Credit", x=480, y=700, width=40),
            # content row
            TextItem(text="03-Jan-2024", x=50, y=680, width=60),
            TextItem(text="NEFT to", x=200, y=680, width=60),
            TextItem(text="5,000.00", x=400, y=680, width=40),
            # continuation row
            TextItem(text="savings account", x=200, y=668, width=80),
        ]

        transactions = parser.parse_page(items, page_number=1)

        assert len(transactions) == 1
        txn = transactions[0]
        assert txn.description == "NEFT to savings account"
        assert txn.amount_cents == -500000
        assert txn.transaction_date == date(2024, 1, 3)
        assert txn.source_page == 1
        assert txn.source_row == 0

    def test_dbs_page(self, dbs_parser):
        items = (
            dbs_header()
            + dbs_row(680, "03-Jan-2024", "NEFT TRANSFER", debit="5,000.00", balance="64,500.00")
            + dbs_row(668, details="REF 0042")
            + dbs_row(650, "04-Jan-2024", "SALARY", credit="10,000.00", balance="74,500.00")
            + dbs_row(630, "05-Jan-2024", "BALANCE FORWARD", debit="0.00", balance="74,500.00")
        )

        result = dbs_parser.parse_page_result(items, page_number=3)

        assert not result.skipped
        assert result.rows_scanned == 4
        assert [t.description for t in result.transactions] == ["NEFT TRANSFER REF 0042", "SALARY"]
        assert [t.amount_cents for t in result.transactions] == [-500000, 1000000]
        assert all(t.source_page == 3 for t in result.transactions)

    def test_unparseable_date_row_is_skipped(self, dbs_parser):
        items = dbs_header() + dbs_row(680, "2024/01/03", "NEFT", debit="100.00")

        assert dbs_parser.parse_page(items) == []

    def test_oversized_amount_row_does_not_raise(self, dbs_parser):
        items = (
            dbs_header()
            + dbs_row(680, "03-Jan-2024", "GARBLED", debit="9" * 40)
            + dbs_row(660, "04-Jan-2024", "SALARY", credit="10,000.00")
        )

        transactions = dbs_parser.parse_page(items)

        assert [(t.description, t.amount_cents) for t in transactions] == [("SALARY", 1000000)]

    def test_parse_is_pure(self, dbs_parser):
        items = dbs_header() + dbs_row(680, "03-Jan-2024", "NEFT", debit="100.00")

        first = dbs_parser.parse_page(items)
        second = dbs_parser.parse_page(items)

        assert [(t.description, t.amount_cents) for t in first] == [
            (t.description, t.amount_cents) for t in second
        ]


class TestParseDocument:
    """Multi-page parsing, sequential and concurrent."""

    def _pages(self):
        return [
            dbs_header() + dbs_row(680, "03-Jan-2024", "PAGE ONE", debit="1.00"),
            [TextItem(text="Terms and conditions", x=50, y=700)],
            dbs_header() + dbs_row(680, "04-Jan-2024", "PAGE THREE", credit="2.00"),
        ]

    def test_sequential(self, dbs_parser):
        result = dbs_parser.parse_document(self._pages())

        assert [t.description for t in result.transactions] == ["PAGE ONE", "PAGE THREE"]
        assert result.pages_parsed == [1, 3]
        assert result.skipped_pages == [2]
        assert result.warnings == ["Page 2 skipped: table headers not found"]

    @pytest.mark.asyncio
    async def test_concurrent_keeps_page_order(self, dbs_parser):
        result = await dbs_parser.parse_document_async(self._pages())

        assert [t.description for t in result.transactions] == ["PAGE ONE", "PAGE THREE"]
        assert [t.source_page for t in result.transactions] == [1, 3]
        assert result.skipped_pages == [2]

    def test_concurrent_matches_sequential(self, dbs_parser):
        sequential = dbs_parser.parse_document(self._pages())
        concurrent = asyncio.run(dbs_parser.parse_document_async(self._pages()))

        assert [t.description for t in concurrent.transactions] == [
            t.description for t in sequential.transactions
        ]


class TestTemplates:
    """Template registry and validation."""

    def test_unknown_template(self):
        with pytest.raises(KeyError, match="Template not found"):
            get_template("nope")

    def test_tolerance_must_be_positive(self):
        with pytest.raises(ValidationError):
            LayoutTemplate(
                identifier="bad",
                headers=["Date", "Debit", "Credit"],
                date_column="Date",
                debit_column="Debit",
                credit_column="Credit",
                row_tolerance=0,
            )

    def test_tolerances_default_from_settings(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_ROW_TOLERANCE", "7.5")
        monkeypatch.setenv("DEFAULT_COLUMN_TOLERANCE", "20")
        get_settings.cache_clear()
        try:
            template = LayoutTemplate(
                identifier="configured",
                headers=["Date", "Debit", "Credit"],
                date_column="Date",
                debit_column="Debit",
                credit_column="Credit",
            )
        finally:
            get_settings.cache_clear()

        assert template.row_tolerance == 7.5
        assert template.column_tolerance == 20
        # Validated templates keep their own values
        assert get_template("dbs_pdf_v1").row_tolerance == 5

    def test_columns_must_be_headers(self):
        with pytest.raises(ValidationError):
            LayoutTemplate(
                identifier="bad",
                headers=["Date", "Debit"],
                date_column="Date",
                debit_column="Debit",
                credit_column="Credit",
            )

    def test_invalid_regex_rejected(self):
        with pytest.raises(ValidationError):
            LayoutTemplate(
                identifier="bad",
                headers=["Date", "Debit", "Credit"],
                date_column="Date",
                debit_column="Debit",
                credit_column="Credit",
                date_pattern="([",
            )

    def test_load_template_file(self, tmp_path):
        path = tmp_path / "hdfc.json"
        path.write_text(
            '{"identifier": "hdfc_pdf_v1", "headers": ["Date", "Narration", "Withdrawal", "Deposit"],'
            ' "date_column": "Date", "debit_column": "Withdrawal", "credit_column": "Deposit",'
            ' "date_pattern": "(\\\\d{2}/\\\\d{2}/\\\\d{2})", "date_formats": ["%d/%m/%y"]}',
            encoding="utf-8",
        )

        template = load_template_file(path)

        assert template.identifier == "hdfc_pdf_v1"
        assert template.min_headers_required == 2
        assert template.parse_date("12/03/24 ") == date(2024, 3, 12)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
