"""String and cell-value processing utilities for the budget import tools.

Optimization: parse_currency() is called for every value cell of every sheet
in a workbook.  It uses the pre-compiled patterns from budget_utils.patterns
and short-circuits numeric cells before any string work.
"""

import math
from datetime import date, datetime, time

from budget_utils.patterns import (
    CURRENCY_SYMBOLS,
    DASH_ONLY,
    PAREN_NEGATIVE,
    TOTAL_ROW,
    TRAILING_DASHES,
    WHITESPACE,
)


def is_blank(val) -> bool:
    """Return True for an absent cell or one holding only whitespace."""
    if val is None:
        return True
    if isinstance(val, str):
        return not val.strip()
    return False


def parse_currency(val, default: float = 0.0) -> float:
    """Convert a currency-like cell value to float.

    Handles:
    - int/float cells -> float
    - None, empty strings -> default
    - "$1,234.50" -> 1234.5 (symbols, commas and whitespace stripped)
    - " $-   " -> 0.0 (a trailing run of dashes is rewritten to 0)
    - "(1,234.00)" -> -1234.0 (accounting negative)
    - "nan", "inf" and other non-finite results -> default
    - Anything else unparsable -> default

    Booleans and dates are not currency text; they indicate a row whose
    shape does not match the sheet layout and raise ValueError so the
    caller can record a row-level error.

    Args:
        val: Raw cell value
        default: Value to return when text cannot be parsed (default: 0.0)

    Returns:
        float: Parsed value or default
    """
    if isinstance(val, bool):
        raise ValueError(f"Unexpected boolean in value cell: {val!r}")
    if isinstance(val, (datetime, date, time)):
        raise ValueError(f"Unexpected date in value cell: {val!r}")
    if val is None:
        return default
    if isinstance(val, (int, float)):
        return float(val) if math.isfinite(val) else default

    s = CURRENCY_SYMBOLS.sub('', str(val))
    s = WHITESPACE.sub('', s).replace(',', '')
    if not s:
        return default

    negative = False
    m = PAREN_NEGATIVE.match(s)
    if m:
        negative = True
        s = m.group(1)

    s = TRAILING_DASHES.sub('0', s)
    try:
        parsed = float(s)
    except ValueError:
        return default
    if not math.isfinite(parsed):
        return default
    return -parsed if negative else parsed


def parse_manhours(val):
    """Parse a manhours cell, keeping "no value" distinct from zero.

    Blank cells and dash-only placeholders ("-", " - ") return None; every
    other value goes through parse_currency().
    """
    if is_blank(val):
        return None
    if isinstance(val, str):
        stripped = WHITESPACE.sub('', CURRENCY_SYMBOLS.sub('', val))
        if DASH_ONLY.match(stripped):
            return None
    return parse_currency(val)


def normalize_whitespace(s: str) -> str:
    """Normalize multiple whitespace characters to single spaces.

    Example:
        "SMALL TOOLS  &\\nCONSUMABLES" -> "SMALL TOOLS & CONSUMABLES"
    """
    return WHITESPACE.sub(' ', s).strip()


def normalize_label(val) -> str:
    """Return the canonical form of a discipline or cost-type label.

    Collapses whitespace, strips, and upper-cases.  None becomes "".
    """
    if val is None:
        return ""
    return normalize_whitespace(str(val)).upper()


def is_total_row(description: str) -> bool:
    """True when a description marks a subtotal row rather than a budget line.

    Matches containment of TOTAL (which covers "DISCIPLINE TOTALS") and an
    exact "ALL LABOR", case-insensitively.
    """
    label = normalize_label(description)
    return bool(TOTAL_ROW.search(label)) or label == "ALL LABOR"


def format_currency(amount: float) -> str:
    """Format an amount the way validation messages print it: $1,234.50."""
    if amount < 0:
        return f"-${abs(amount):,.2f}"
    return f"${amount:,.2f}"
