"""
Budget import package -- construction budget workbook import engine.

The entry point lives in budget_import.importer::

    from budget_import.importer import import_workbook

This module re-exports only the exception taxonomy and the result models so
that the persistence layer can import them without pulling in the engine.
"""

from budget_import.errors import (
    AggregationInvariantError,
    BudgetImportError,
    MissingProjectIdError,
    MissingSheetError,
    ProjectNotFoundError,
    StorageError,
    WorkbookReadError,
)
from budget_import.models import ImportErrorEntry, ImportResult

__all__ = [
    "AggregationInvariantError",
    "BudgetImportError",
    "MissingProjectIdError",
    "MissingSheetError",
    "ProjectNotFoundError",
    "StorageError",
    "WorkbookReadError",
    "ImportErrorEntry",
    "ImportResult",
]
