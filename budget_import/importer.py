"""
Budget workbook import orchestration.

Runs the steps in order for one workbook:

    read       open the workbook, locate the summary / INPUT / detail sheets
    normalize  summary rows -> candidate line items; detail sheets extracted
    aggregate  candidates -> breakdown rows + totals; WBS built
    validate   detail sheets and DISCIPLINE TOTALS rows reconciled against
               the summary line items
    persist    replace-all save and audit entry in one BudgetStore transaction

Fatal problems (no project id, unknown project, unreadable workbook, missing
summary sheet) raise a BudgetImportError before anything is saved.  Every
other outcome is reported through the returned ImportResult.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional

from budget_import.aggregator import aggregate
from budget_import.assembler import assemble_result
from budget_import.classifier import CostTypeClassifier
from budget_import.detail_sheets import extract_detail_sheets
from budget_import.errors import (
    MissingProjectIdError,
    MissingSheetError,
    ProjectNotFoundError,
    StorageError,
)
from budget_import.logging import ImportLogger
from budget_import.models import ImportResult
from budget_import.normalizer import layout_from_spec, normalize_rows
from budget_import.validator import validate_workbook
from budget_import.wbs import build_wbs, extract_input_disciplines, flatten_wbs, wbs_disciplines
from budget_import.workbook import open_workbook
from budget_utils.config import ImportConfig, ValidationConfig
from budget_utils.database import BudgetStore
from sheet_catalog import SHEET_CATALOG, SUMMARY_SHEET, find_input_sheet, get_sheet_spec

logger = logging.getLogger(__name__)


def import_workbook(payload, project_id: str, store: BudgetStore,
                    filename: str = "",
                    config: Optional[ImportConfig] = None,
                    validation_config: Optional[ValidationConfig] = None,
                    logs_dir: Optional[Path] = None) -> ImportResult:
    """Import one budget workbook for a project.

    Args:
        payload: Workbook bytes, path, or binary file object
        project_id: Project the budget belongs to
        store: Persistence collaborator
        filename: Originating filename, for notes and the audit log
        config: Import settings (summary sheet name); defaults from env
        validation_config: Tolerances and ratio bands; defaults apply
        logs_dir: When set, per-step log files and summary.json go here

    Returns:
        ImportResult describing totals, row errors and validation findings

    Raises:
        MissingProjectIdError: project_id is empty
        ProjectNotFoundError: project_id does not resolve
        WorkbookReadError: payload is not a workbook (MissingSheetError when
            the summary sheet is absent)
        AggregationInvariantError: category totals disagree with row values
    """
    if not project_id or not str(project_id).strip():
        raise MissingProjectIdError()
    project = store.get_project(project_id)
    if project is None:
        raise ProjectNotFoundError(project_id)

    config = config or ImportConfig.from_env()
    validation_config = validation_config or ValidationConfig()
    import_batch_id = uuid.uuid4().hex

    il = ImportLogger(logs_dir)
    il.args_dict = {"project_id": project_id, "filename": filename,
                    "import_batch_id": import_batch_id}
    logger.info("Importing %s for project %s (%s)", filename or "<payload>",
                project_id, project.get("name", ""))

    workbook = None
    try:
        # ── read ──────────────────────────────────────────────────────────
        report = il.start_step("read")
        workbook = open_workbook(payload, filename)
        filename = filename or workbook.filename
        summary_name = workbook.resolve_sheet_name(config.summary_sheet)
        if summary_name is None:
            raise MissingSheetError(config.summary_sheet, workbook.sheet_names)
        summary_grid = workbook.read_grid(summary_name)

        input_name = find_input_sheet(workbook.sheet_names)
        input_disciplines = []
        if input_name is not None:
            input_disciplines = extract_input_disciplines(workbook.read_grid(input_name))

        for name in workbook.sheet_names:
            if name in (summary_name, input_name):
                continue
            if get_sheet_spec(name) is None:
                report.add_skip("unmapped_sheet", "not in sheet catalog", name)
        report.items_processed = len(workbook.sheet_names) - report.items_skipped
        report.metrics["summary_rows"] = len(summary_grid)
        il.finish_step("read", report)

        # ── normalize ─────────────────────────────────────────────────────
        report = il.start_step("normalize")
        normalized = normalize_rows(summary_grid, layout_from_spec(SHEET_CATALOG[SUMMARY_SHEET]),
                                    summary_name, report)
        details = extract_detail_sheets(workbook, report,
                                        validation_config.invariant_rel_tolerance)
        report.metrics["summary_rows_read"] = normalized.rows_read
        report.metrics["candidates"] = len(normalized.candidates)
        il.finish_step("normalize", report)

        # ── aggregate ─────────────────────────────────────────────────────
        report = il.start_step("aggregate")
        classifier = CostTypeClassifier()
        summary = aggregate(normalized.candidates, classifier,
                            validation_config.invariant_rel_tolerance, report)
        wbs = build_wbs(wbs_disciplines(input_disciplines, summary.disciplines()),
                        summary.discipline_totals())
        for node in flatten_wbs(wbs):
            logger.debug("WBS %-6s %s%s", node["code"], "  " * (node["level"] - 1),
                         node["description"])
        report.metrics["total_budget"] = summary.total_budget
        report.metrics["wbs_nodes"] = len(wbs)
        il.finish_step("aggregate", report)

        # ── validate ──────────────────────────────────────────────────────
        report = il.start_step("validate")
        validation = validate_workbook(summary, details, validation_config, report,
                                       stated_totals=normalized.stated_totals,
                                       summary_sheet=summary_name)
        il.finish_step("validate", report)

        row_errors = list(normalized.errors)
        for detail in details.values():
            if detail is not None:
                row_errors.extend(detail.row_errors)

        # ── persist ───────────────────────────────────────────────────────
        report = il.start_step("persist")
        save_outcome = None
        storage_error = None
        if summary.rows:
            try:
                save_outcome = store.save_budget(
                    project_id, summary.rows, summary.totals,
                    summary.totals.other_descriptions,
                    notes=f"Imported from Excel: {filename}",
                    audit={
                        "total_budget": summary.total_budget,
                        "breakdown_rows": len(summary.rows),
                        "budget_categories": summary.totals.category_values(),
                        "import_batch_id": import_batch_id,
                        "filename": filename,
                    },
                )
                report.items_processed = len(summary.rows)
                report.detail = f"budget {save_outcome}"
            except StorageError as e:
                logger.error("Persisting budget for project %s failed: %s", project_id, e)
                report.add_error(str(e))
                storage_error = e
        else:
            report.detail = "nothing to save"
        il.finish_step("persist", report, failed=storage_error is not None)

        return assemble_result(
            project_id,
            summary,
            row_errors=row_errors,
            validation=validation,
            wbs=wbs,
            save_outcome=save_outcome,
            storage_error=storage_error,
            import_batch_id=import_batch_id,
            filename=filename or None,
        )
    finally:
        if workbook is not None:
            workbook.close()
        il.close()
        il.write_summary()
