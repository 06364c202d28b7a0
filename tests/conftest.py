"""
Pytest fixtures for the budget import tests.

Workbooks are built in memory with openpyxl, including merged discipline
cells, so every test runs against the same kind of payload the importer
receives in production.  No fixture files are checked in.
"""

import io
import sys
from pathlib import Path

import openpyxl
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from budget_import.errors import StorageError  # noqa: E402
from budget_utils.database import SQLiteBudgetStore  # noqa: E402

PROJECT_ID = "P-100"

BUDGETS_HEADER = [
    "NO.", "DISCIPLINE", "COST CODE", "DESCRIPTION", "MANHOURS", "VALUE",
    "% OF DISC", "RATE / MH", "LABOR RATE", "BURDENED RATE",
]


# ── Helpers ───────────────────────────────────────────────────────────────────

def budget_row(discipline, description, manhours=None, value=None, number=None):
    """One BUDGETS row in the fixed positional layout."""
    return [number, discipline, None, description, manhours, value,
            None, None, None, None]


def detail_row(width, **cells):
    """A detail-sheet row of *width* cells with the given {index: value}."""
    row = [None] * width
    for key, value in cells.items():
        row[int(key.lstrip("c"))] = value
    return row


def make_workbook(sheets, merges=None) -> bytes:
    """Build an .xlsx payload.

    Args:
        sheets: {sheet name: list of rows}; first sheet is created first
        merges: {sheet name: ["B2:B6", ...]} ranges to merge after writing

    Returns:
        Workbook bytes
    """
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(list(row))
    for name, ranges in (merges or {}).items():
        for cell_range in ranges:
            wb[name].merge_cells(cell_range)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def scenario_summary_rows():
    """Summary sheet of the reference scenario: FAB + PIPE, total 17,000."""
    return [
        BUDGETS_HEADER,
        budget_row("FAB", "DIRECT LABOR", 100, "$6,000.00", number=1),
        budget_row(None, "MATERIALS", " - ", "$2,000.00"),
        budget_row("PIPE", "DIRECT LABOR", 200, "$9,000.00", number=2),
        budget_row(None, "DISCIPLINE TOTALS", 200, "$9,000.00"),
    ]


class RecordingStore:
    """In-memory BudgetStore that records every call."""

    def __init__(self, projects=None, fail_with=None):
        self.projects = dict(projects or {})
        self.fail_with = fail_with
        self.lookups = []
        self.saves = []
        self.audits = []
        self.budgets = {}

    def get_project(self, project_id):
        self.lookups.append(project_id)
        return self.projects.get(project_id)

    def save_budget(self, project_id, rows, totals, other_descriptions, notes, audit=None):
        if self.fail_with is not None:
            raise self.fail_with
        rows = list(rows)
        self.saves.append({
            "project_id": project_id,
            "rows": [(r.discipline, r.cost_type, r.manhours, r.value) for r in rows],
            "totals": totals.category_values(),
            "other_descriptions": list(other_descriptions),
            "notes": notes,
        })
        outcome = "updated" if project_id in self.budgets else "created"
        self.budgets[project_id] = self.saves[-1]
        if audit is not None:
            self.audits.append((project_id, outcome, audit))
        return outcome

    def append_audit(self, entity_id, action, changes):
        self.audits.append((entity_id, action, changes))

    @property
    def persistence_calls(self):
        return len(self.saves) + len(self.audits)


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def project():
    return {"id": PROJECT_ID, "job_number": "24-118", "name": "Refinery Turnaround"}


@pytest.fixture
def store(project):
    return RecordingStore({PROJECT_ID: project})


@pytest.fixture
def failing_store(project):
    error = StorageError("duplicate key value violates unique constraint",
                         details="Key (project_id, discipline, cost_type) already exists",
                         hint="Check for duplicate rows", code="23505")
    return RecordingStore({PROJECT_ID: project}, fail_with=error)


@pytest.fixture
def sqlite_store(project):
    store = SQLiteBudgetStore(":memory:")
    store.add_project(project["id"], project["job_number"], project["name"])
    yield store
    store.close()


@pytest.fixture
def scenario_workbook():
    """BUDGETS sheet of the reference scenario plus an unmapped NOTES sheet."""
    return make_workbook({
        "BUDGETS": scenario_summary_rows(),
        "NOTES": [["free text the importer never reads"]],
    })
