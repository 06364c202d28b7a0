"""Import Result Assembler: packages the run's outputs into an ImportResult.

Pure reducer; no I/O.  success is True when at least one breakdown row was
produced and the persistence step (if any) did not fail, even when other
rows recorded errors.
"""

from typing import Iterable, List, Optional

from budget_import.aggregator import AggregationResult
from budget_import.errors import StorageError
from budget_import.models import (
    BudgetTotalsOut,
    FindingOut,
    ImportErrorEntry,
    ImportResult,
)
from budget_import.normalizer import RowError
from budget_import.wbs import WbsNode
from budget_utils.validation import ValidationResult

NO_DATA_MESSAGE = "No valid budget data found in file"

SAVE_CREATED = "created"
SAVE_UPDATED = "updated"


def error_entries(row_errors: Iterable[RowError]) -> List[ImportErrorEntry]:
    return [
        ImportErrorEntry(row=e.row, message=e.message,
                         data={"sheet": e.sheet, "cells": e.data})
        for e in row_errors
    ]


def assemble_result(project_id: str,
                    summary: AggregationResult,
                    row_errors: Iterable[RowError] = (),
                    validation: Optional[ValidationResult] = None,
                    wbs: Iterable[WbsNode] = (),
                    save_outcome: Optional[str] = None,
                    storage_error: Optional[StorageError] = None,
                    import_batch_id: Optional[str] = None,
                    filename: Optional[str] = None) -> ImportResult:
    """Build the ImportResult for one run.

    Args:
        project_id: Project the workbook was imported for
        summary: Aggregated summary sheet
        row_errors: Row-level errors from every sheet, in processing order
        validation: Cross-sheet findings
        wbs: Top-level WBS nodes
        save_outcome: 'created' / 'updated' from the store, None if not saved
        storage_error: Persistence failure, if one occurred
        import_batch_id: Identifier recorded in the audit log
        filename: Originating workbook filename
    """
    errors = error_entries(row_errors)
    row_count = len(summary.rows)

    if row_count == 0:
        errors.append(ImportErrorEntry(row=0, message=NO_DATA_MESSAGE))
    if storage_error is not None:
        errors.append(ImportErrorEntry(row=0, message=storage_error.describe()))

    saved = storage_error is None and save_outcome is not None
    success = row_count > 0 and storage_error is None

    totals = summary.totals
    return ImportResult(
        success=success,
        project_id=project_id,
        total_budget=summary.total_budget,
        breakdown_rows_created=row_count if saved else 0,
        budget_created=saved and save_outcome == SAVE_CREATED,
        budget_updated=saved and save_outcome == SAVE_UPDATED,
        errors=errors,
        budget_totals=BudgetTotalsOut(**totals.category_values()),
        other_descriptions=list(totals.other_descriptions),
        validation_findings=[FindingOut(**f.to_dict()) for f in validation.findings]
        if validation else [],
        wbs_structure=[node.to_dict() for node in wbs],
        import_batch_id=import_batch_id,
        filename=filename,
    )
