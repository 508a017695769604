"""
Tests for models and money helpers.
"""

import re
from datetime import date
from decimal import Decimal

import pytest

from statement_recon.models import (
    Transaction,
    TransactionType,
    TransferLink,
)
from statement_recon.utils.money import (
    decimal_to_cents,
    format_cents,
    parse_decimal,
    to_cents,
)


class TestMoney:
    """Conversion of untrusted values to cents."""

    @pytest.mark.parametrize("value,expected", [
        (69500.00, 6950000),
        (100, 10000),
        ("69,500.00", 6950000),
        ("INR 1,250.50", 125050),
        (Decimal("0.005"), 1),
        ("-12.34", -1234),
        (0.1 + 0.2, 30),
    ])
    def test_to_cents(self, value, expected):
        assert to_cents(value) == expected

    @pytest.mark.parametrize("value", [
        None, True, "", "n/a", "-", "1.2.3", float("inf"), float("nan"), Decimal("NaN"), [1],
    ])
    def test_to_cents_malformed(self, value):
        assert to_cents(value) is None

    @pytest.mark.parametrize("value", [
        1e300,
        -1e300,
        10 ** 40,
        Decimal("1E+300"),
        "9" * 40,
        "9E+99",
        "1.5e3",
    ])
    def test_to_cents_oversized_or_exponent(self, value):
        assert to_cents(value) is None

    def test_decimal_to_cents_out_of_range(self):
        assert decimal_to_cents(Decimal("9" * 40)) is None
        assert decimal_to_cents(Decimal("Infinity")) is None
        assert decimal_to_cents(Decimal("9" * 26)) == int("9" * 26) * 100

    def test_exponent_check_keeps_currency_codes(self):
        assert to_cents("EUR 5.00") == 500
        assert parse_decimal("9E+99", re.compile(r"[^\d.eE+\-]")) is None

    def test_parse_decimal_with_custom_pattern(self):
        assert parse_decimal("1.234,56", re.compile(r"[^\d,]")) is None
        assert parse_decimal("(500.00)", re.compile(r"[^\d.]")) == Decimal("500.00")

    def test_decimal_to_cents_rounds_half_up(self):
        assert decimal_to_cents(Decimal("1.005")) == 101
        assert decimal_to_cents(Decimal("-1.005")) == -101

    def test_format_cents(self):
        assert format_cents(150050) == "1500.50"
        assert format_cents(-5) == "-0.05"
        assert format_cents(0) == "0.00"


class TestTransaction:
    """Derived transaction properties."""

    def test_type_from_sign(self):
        assert Transaction(amount_cents=100).transaction_type == TransactionType.CREDIT
        assert Transaction(amount_cents=-100).transaction_type == TransactionType.DEBIT

    def test_link_state(self):
        t = Transaction(amount_cents=-100)
        assert t.is_transfer_candidate

        t.linked_transaction_id = "other"
        t.transfer_pair_id = "pair"
        t.is_internal_transfer = True
        assert t.is_linked
        assert not t.is_transfer_candidate

        t.clear_link()
        assert not t.is_linked
        assert t.transfer_pair_id is None
        assert t.is_transfer_candidate

    def test_to_dict(self):
        t = Transaction(
            id="t1",
            amount_cents=-150050,
            transaction_date=date(2024, 1, 3),
            description="NEFT",
        )
        data = t.to_dict()

        assert data["amount"] == -1500.50
        assert data["transaction_type"] == "debit"
        assert data["transaction_date"] == "2024-01-03"


class TestTransferLink:
    """Symmetric link helpers."""

    def test_counterpart(self):
        link = TransferLink(transaction_1_id="a", transaction_2_id="b")

        assert link.involves("a") and link.involves("b")
        assert not link.involves("c")
        assert link.counterpart("a") == "b"
        assert link.counterpart("b") == "a"
        assert link.counterpart("c") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
