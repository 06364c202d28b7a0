"""Exception taxonomy for budget workbook imports.

Fatal errors (everything except StorageError and row-level ValueErrors) are
raised before any persistence call; callers receive them instead of an
ImportResult.
"""

from typing import Optional


class BudgetImportError(Exception):
    """Base class for every error raised by the import engine."""


class MissingProjectIdError(BudgetImportError):
    """No project identifier was supplied."""

    def __init__(self, message: str = "Project ID is required"):
        super().__init__(message)


class ProjectNotFoundError(BudgetImportError):
    """The project identifier does not resolve to a known project."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class WorkbookReadError(BudgetImportError):
    """The payload could not be opened as a workbook."""


class MissingSheetError(WorkbookReadError):
    """A mandatory sheet is absent from the workbook."""

    def __init__(self, sheet_name: str, available=()):
        self.sheet_name = sheet_name
        self.available = list(available)
        message = f"{sheet_name} sheet not found in Excel file"
        if self.available:
            message += f" (sheets: {', '.join(self.available)})"
        super().__init__(message)


class AggregationInvariantError(BudgetImportError):
    """Category totals no longer sum to the breakdown-row total."""

    def __init__(self, category_sum: float, row_sum: float):
        self.category_sum = category_sum
        self.row_sum = row_sum
        super().__init__(
            f"Category totals {category_sum:.6f} do not match "
            f"breakdown row total {row_sum:.6f}"
        )


class StorageError(BudgetImportError):
    """The persistence collaborator failed to write the budget.

    Carries the storage layer's diagnostic fields when it supplies them.
    """

    def __init__(self, message: str, details: Optional[str] = None,
                 hint: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        self.hint = hint
        self.code = code

    def describe(self) -> str:
        """Render the single-line message reported for a failed save."""
        return (
            f"Failed to save budget data: {self.message}"
            f" | Details: {self.details or ''}"
            f" | Hint: {self.hint or ''}"
            f" | Code: {self.code or ''}"
        )
