"""Shared utilities for the budget import tools.

The SQLite persistence collaborator lives in budget_utils.database and is
imported from there directly.
"""

# Pattern definitions
from budget_utils.patterns import (
    CURRENCY_SYMBOLS,
    TOTAL_ROW,
    DEMO_DISCIPLINE,
    WORKBOOK_EXTENSIONS,
)

# String utilities
from budget_utils.strings import (
    is_blank,
    parse_currency,
    parse_manhours,
    normalize_whitespace,
    normalize_label,
    is_total_row,
    format_currency,
)

# Configuration
from budget_utils.config import (
    Config,
    ValidationConfig,
    ImportConfig,
    COST_TYPE_CATEGORIES,
    DISCIPLINE_PARENTS,
)

# Validation containers
from budget_utils.validation import (
    ValidationFinding,
    ValidationResult,
    SEVERITY_ERROR,
    SEVERITY_WARNING,
    SEVERITY_INFO,
)

__all__ = [
    # Patterns
    "CURRENCY_SYMBOLS",
    "TOTAL_ROW",
    "DEMO_DISCIPLINE",
    "WORKBOOK_EXTENSIONS",
    # Strings
    "is_blank",
    "parse_currency",
    "parse_manhours",
    "normalize_whitespace",
    "normalize_label",
    "is_total_row",
    "format_currency",
    # Config
    "Config",
    "ValidationConfig",
    "ImportConfig",
    "COST_TYPE_CATEGORIES",
    "DISCIPLINE_PARENTS",
    # Validation
    "ValidationFinding",
    "ValidationResult",
    "SEVERITY_ERROR",
    "SEVERITY_WARNING",
    "SEVERITY_INFO",
]
