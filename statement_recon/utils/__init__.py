"""Utility modules."""

from .money import to_cents, to_decimal, parse_decimal, decimal_to_cents, format_cents

__all__ = ["to_cents", "to_decimal", "parse_decimal", "decimal_to_cents", "format_cents"]
