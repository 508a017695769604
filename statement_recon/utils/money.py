"""
Money helpers.

All monetary amounts inside the core are integer cents. These helpers turn
untrusted text or numbers into cents and never raise on malformed input.
"""

import math
import re
from decimal import Context, Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("0.01")

# Quantizing past this precision traps; such values are out of range
MONEY_CONTEXT = Context(prec=28, rounding=ROUND_HALF_UP, traps=[InvalidOperation])

# Currency symbols, thousands separators and whitespace
DEFAULT_STRIP_PATTERN = re.compile(r"[^\d.\-]")

# Scientific notation such as "1.5e3"; stripping would silently mangle it
EXPONENT_PATTERN = re.compile(r"\d\s*[eE]\s*[+\-]?\d")


def parse_decimal(text: Optional[str], strip_pattern: Optional[re.Pattern] = None) -> Optional[Decimal]:
    """
    Parse a numeric cell after stripping noise characters.

    Returns None for empty or malformed text ('', '-', '1.2.3', '9E+99', ...).
    """
    if text is None:
        return None
    if EXPONENT_PATTERN.search(text):
        return None
    pattern = strip_pattern or DEFAULT_STRIP_PATTERN
    clean = pattern.sub("", text)
    if not clean:
        return None
    try:
        value = Decimal(clean)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert an untrusted numeric value to a finite Decimal.

    Accepts ints, floats, Decimals and numeric strings. Booleans, non-finite
    numbers and anything unparseable become None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return Decimal(str(value))
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, str):
        return parse_decimal(value)
    return None


def decimal_to_cents(value: Decimal) -> Optional[int]:
    """
    Quantize a Decimal to cents (half-up) and return it as an int.

    Returns None when the value is not finite or has more digits than a
    money amount can carry.
    """
    try:
        return int(value.quantize(CENT, context=MONEY_CONTEXT).scaleb(2, context=MONEY_CONTEXT))
    except (InvalidOperation, ValueError, OverflowError):
        return None


def to_cents(value: Any) -> Optional[int]:
    """
    Convert an untrusted numeric value to cents.

    Accepts ints, floats, Decimals and numeric strings such as "69,500.00"
    or "INR 1,250.50". Booleans, non-finite or oversized numbers and anything
    unparseable become None.
    """
    parsed = to_decimal(value)
    return decimal_to_cents(parsed) if parsed is not None else None


def format_cents(cents: int) -> str:
    """Render cents as a plain two-decimal string, e.g. 150050 -> '1500.50'."""
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{whole}.{frac:02d}"
