"""Pre-compiled regex patterns for the budget import tools.

All patterns are compiled once at module import.  The Row Normalizer calls
these for every physical row of every sheet, so nothing here is built lazily.

Usage:
    from budget_utils.patterns import TOTAL_ROW, CURRENCY_SYMBOLS

    if TOTAL_ROW.search(description):
        ...
"""

import re

# Workbook payloads accepted by the reader
WORKBOOK_EXTENSIONS = re.compile(r'\.(xlsx|xlsm)$', re.IGNORECASE)

# Whitespace normalization: multiple spaces/tabs/newlines
WHITESPACE = re.compile(r'\s+')

# Currency symbols for stripping during numeric conversion
CURRENCY_SYMBOLS = re.compile(r'[\$€£¥₹₽]')

# Vendor convention: " $-   " means "no value".  The dash run is rewritten to 0.
TRAILING_DASHES = re.compile(r'-+$')

# Accounting negative: "(1,234.00)"
PAREN_NEGATIVE = re.compile(r'^\((.*)\)$')

# A cell that holds nothing but dashes (after stripping symbols)
DASH_ONLY = re.compile(r'^-+$')

# Total rows: "TOTAL", "DISCIPLINE TOTALS", "GRAND TOTAL", ...
TOTAL_ROW = re.compile(r'TOTAL', re.IGNORECASE)

# The per-discipline subtotal the summary sheet states for itself
DISCIPLINE_TOTALS = re.compile(r'^DISCIPLINE TOTALS?$')

# Demo sub-disciplines: "PIPING DEMO", "CIVIL-DEMO", "DEMO - STEEL"
DEMO_DISCIPLINE = re.compile(r'(?<![A-Z])DEMO(?![A-Z])', re.IGNORECASE)

# Included-flag cells on the INPUT sheet are 0/1 (sometimes stored as text)
INCLUDED_FLAG = re.compile(r'^\s*[01](\.0+)?\s*$')
