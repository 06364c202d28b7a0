"""
Budget Workbook Import CLI

Imports a vendor construction budget workbook for one project: reads the
BUDGETS summary sheet, aggregates it into breakdown rows and category totals,
reconciles the detail sheets against it, and saves the result to the SQLite
budget database (replacing any earlier import for the project).

Usage:
    python import_budget.py budget.xlsx --project P-100              # Import
    python import_budget.py budget.xlsx --project P-100 --dry-run    # Nothing saved
    python import_budget.py budget.xlsx --project P-100 --json       # JSON result
    python import_budget.py budget.xlsx --project P-100 --report     # Reconciliation report
    python import_budget.py --list-sheets                            # Sheet catalog

    python import_budget.py budget.xlsx --project P-100 \\
        --add-project "P-100:24-118:Refinery Turnaround"             # Register project first

Exit codes:
    0  import succeeded
    1  import completed but success is false (no rows, or save failed)
    2  fatal error (unknown project, unreadable workbook, missing BUDGETS)

Environment variables: see budget_utils.config.ImportConfig.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from budget_import.errors import BudgetImportError
from budget_import.importer import import_workbook
from budget_import.models import ImportResult
from budget_utils.config import ImportConfig, ValidationConfig
from budget_utils.database import SQLiteBudgetStore
from budget_utils.strings import format_currency
from budget_utils.validation import ValidationResult
from sheet_catalog import describe_catalog

logger = logging.getLogger("import_budget")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_FATAL = 2


def parse_project_spec(value: str):
    """Split an ID:JOB:NAME argument; the name may itself contain colons."""
    parts = value.split(":", 2)
    if len(parts) != 3 or not all(p.strip() for p in parts):
        raise argparse.ArgumentTypeError(
            f"expected ID:JOB_NUMBER:NAME, got {value!r}"
        )
    return tuple(p.strip() for p in parts)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import a construction budget workbook for a project")
    parser.add_argument("workbook", nargs="?", type=Path,
                        help="Budget workbook (.xlsx / .xlsm)")
    parser.add_argument("--project", dest="project_id",
                        help="Project identifier the budget belongs to")
    parser.add_argument("--db", type=Path, default=None,
                        help="SQLite database path (default: $BUDGET_IMPORT_DB_PATH)")
    parser.add_argument("--json", action="store_true", dest="output_json",
                        help="Print the import result as JSON")
    parser.add_argument("--report", action="store_true",
                        help="Print the cross-sheet reconciliation report")
    parser.add_argument("--validation-config", type=Path, default=None,
                        help="JSON file overriding tolerances and ratio bands")
    parser.add_argument("--log-dir", type=Path, default=None,
                        help="Write per-step log files under this directory")
    parser.add_argument("--dry-run", action="store_true",
                        help="Run the whole import against an in-memory database")
    parser.add_argument("--add-project", type=parse_project_spec, default=None,
                        metavar="ID:JOB:NAME",
                        help="Register (or rename) a project before importing")
    parser.add_argument("--list-sheets", action="store_true",
                        help="Print the sheet catalog and exit")
    return parser


def open_store(db_path: Path, project_id: str, dry_run: bool, add_project=None) -> SQLiteBudgetStore:
    """Open the target store; for a dry run, an in-memory copy of the project."""
    if not dry_run:
        store = SQLiteBudgetStore(db_path)
        if add_project:
            store.add_project(*add_project)
        return store

    store = SQLiteBudgetStore(":memory:")
    if add_project:
        store.add_project(*add_project)
    elif db_path.exists():
        with SQLiteBudgetStore(db_path) as source:
            project = source.get_project(project_id)
        if project:
            store.add_project(project["id"], project["job_number"], project["name"])
    return store


def print_result(result: ImportResult) -> None:
    """Print a human-readable import summary."""
    status = "OK" if result.success else "FAILED"
    print(f"\n{'=' * 60}")
    print(f"  Budget Import [{status}]")
    print(f"  Project: {result.project_id}")
    if result.filename:
        print(f"  File:    {result.filename}")
    print(f"{'=' * 60}\n")

    totals = result.budget_totals
    print(f"  Labor:                     {format_currency(totals.labor):>18s}")
    print(f"  Materials:                 {format_currency(totals.materials):>18s}")
    print(f"  Equipment:                 {format_currency(totals.equipment):>18s}")
    print(f"  Subcontracts:              {format_currency(totals.subcontracts):>18s}")
    print(f"  Small tools & consumables: {format_currency(totals.small_tools_consumables):>18s}")
    print(f"  Other:                     {format_currency(totals.other):>18s}")
    if result.other_descriptions:
        print(f"    ({', '.join(result.other_descriptions)})")
    print(f"  Total budget:              {format_currency(result.total_budget):>18s}\n")

    action = "created" if result.budget_created else "updated" if result.budget_updated else "not saved"
    print(f"  Breakdown rows: {result.breakdown_rows_created} (budget {action})")

    if result.errors:
        print(f"  Errors: {len(result.errors)}")
        for err in result.errors[:10]:
            print(f"    row {err.row}: {err.message}")
        if len(result.errors) > 10:
            print(f"    ... and {len(result.errors) - 10} more")

    counts = {"error": 0, "warning": 0, "info": 0}
    for finding in result.validation_findings:
        counts[finding.severity] = counts.get(finding.severity, 0) + 1
    print(f"  Validation: {counts['error']} error(s), {counts['warning']} warning(s), "
          f"{counts['info']} info\n")


def findings_to_result(result: ImportResult) -> ValidationResult:
    validation = ValidationResult()
    for finding in result.validation_findings:
        validation.add(**finding.model_dump())
    return validation


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = ImportConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s  %(levelname)-7s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.list_sheets:
        print(describe_catalog())
        return EXIT_OK
    if args.workbook is None or not args.project_id:
        parser.error("WORKBOOK and --project are required")

    try:
        if args.validation_config:
            validation_config = ValidationConfig.load_json(args.validation_config)
        else:
            validation_config = config.load_validation_config()
    except (OSError, ValueError) as e:
        print(f"ERROR: Could not load validation config: {e}", file=sys.stderr)
        return EXIT_FATAL

    db_path = args.db or config.db_path
    log_dir = args.log_dir or config.log_dir

    try:
        store = open_store(db_path, args.project_id, args.dry_run, args.add_project)
        try:
            result = import_workbook(
                args.workbook,
                args.project_id,
                store,
                filename=args.workbook.name,
                config=config,
                validation_config=validation_config,
                logs_dir=log_dir,
            )
        finally:
            store.close()
    except BudgetImportError as e:
        logger.error("Import aborted: %s", e)
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FATAL

    if args.output_json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_result(result)
        if args.dry_run:
            print("  Dry run: nothing was written to", db_path)
    if args.report:
        print(findings_to_result(result).generate_report())

    return EXIT_OK if result.success else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
