"""
Tests for budget_import.normalizer (Row Normalizer).

Grids are plain lists here except where merged cells matter; those go
through the Workbook Reader so the forward-fill sees real merged ranges.
"""
import sys
from datetime import datetime
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from budget_import.logging import StepReport
from budget_import.normalizer import ColumnLayout, layout_from_spec, normalize_rows
from budget_import.workbook import open_workbook
from conftest import BUDGETS_HEADER, budget_row, make_workbook
from sheet_catalog import SHEET_CATALOG

SUMMARY_LAYOUT = layout_from_spec(SHEET_CATALOG["BUDGETS"])


def _normalize(rows, layout=SUMMARY_LAYOUT, report=None):
    return normalize_rows([BUDGETS_HEADER] + rows, layout, "BUDGETS", report)


# ── forward-fill ──────────────────────────────────────────────────────────────

def test_forward_fill_through_merged_discipline_cells():
    rows = [budget_row("FAB", f"COST {i}", value=100 * i) for i in range(1, 6)]
    for row in rows[1:]:
        row[1] = None
    payload = make_workbook({"BUDGETS": [BUDGETS_HEADER] + rows},
                            merges={"BUDGETS": ["B2:B6"]})
    grid = open_workbook(payload).read_grid("BUDGETS")

    result = normalize_rows(grid, SUMMARY_LAYOUT, "BUDGETS")

    assert len(result.candidates) == 5
    assert {c.discipline for c in result.candidates} == {"FAB"}


def test_forward_fill_without_merges():
    result = _normalize([
        budget_row("FAB", "DIRECT LABOR", value=1),
        budget_row(None, "MATERIALS", value=2),
        budget_row("PIPE", "DIRECT LABOR", value=3),
        budget_row(None, "EQUIPMENT", value=4),
    ])
    assert [(c.discipline, c.cost_type) for c in result.candidates] == [
        ("FAB", "DIRECT LABOR"),
        ("FAB", "MATERIALS"),
        ("PIPE", "DIRECT LABOR"),
        ("PIPE", "EQUIPMENT"),
    ]


def test_discipline_is_normalized():
    result = _normalize([budget_row("  piping ", "direct  labor", value=1)])
    assert result.candidates[0].discipline == "PIPING"
    assert result.candidates[0].cost_type == "DIRECT LABOR"


def test_rows_before_any_discipline_are_skipped():
    report = StepReport("normalize")
    result = _normalize([
        budget_row(None, "DIRECT LABOR", value=10),
        budget_row("FAB", "DIRECT LABOR", value=20),
    ], report=report)
    assert [c.value for c in result.candidates] == [20.0]
    assert report.skip_counts_by_category() == {"no_discipline": 1}


# ── skip rules ────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("description", ["DISCIPLINE TOTALS", "ALL LABOR", "Grand Total"])
def test_total_rows_never_produce_candidates(description):
    report = StepReport("normalize")
    result = _normalize([
        budget_row("FAB", "DIRECT LABOR", value=10),
        budget_row(None, description, value=10),
        budget_row("PIPE", description, value=99),
    ], report=report)
    assert len(result.candidates) == 1
    assert report.skip_counts_by_category() == {"total_row": 2}


def test_discipline_totals_values_are_kept():
    result = _normalize([
        budget_row("FAB", "DIRECT LABOR", value=6000),
        budget_row(None, "MATERIALS", value=2000),
        budget_row(None, "Discipline  Totals", value="$8,000.00"),
        budget_row("PIPE", "DIRECT LABOR", value=9000),
        budget_row(None, "ALL LABOR", value=9000),
        budget_row("CIVIL", "DISCIPLINE TOTALS"),
    ])
    assert result.stated_totals == {"FAB": 8000.0}
    assert len(result.candidates) == 3


@pytest.mark.parametrize("value", [None, "", "   "])
def test_empty_value_skips_row(value):
    result = _normalize([budget_row("FAB", "DIRECT LABOR", value=value)])
    assert result.candidates == []


def test_empty_description_skips_row():
    result = _normalize([budget_row("FAB", None, value=500)])
    assert result.candidates == []


def test_dash_value_is_zero_not_skipped():
    result = _normalize([budget_row("FAB", "RISK", value=" $-   ")])
    assert len(result.candidates) == 1
    assert result.candidates[0].value == 0.0


def test_unparsable_value_is_zero():
    result = _normalize([budget_row("FAB", "RISK", value="see estimate")])
    assert result.candidates[0].value == 0.0
    assert result.errors == []


def test_fully_blank_rows_are_ignored():
    report = StepReport("normalize")
    result = _normalize([[None] * 10, budget_row("FAB", "RISK", value=1)], report=report)
    assert len(result.candidates) == 1
    assert report.items_skipped == 0
    assert result.rows_read == 1


# ── candidate fields ──────────────────────────────────────────────────────────

def test_candidate_fields_and_source_row():
    result = _normalize([
        budget_row("FAB", "DIRECT LABOR", manhours="1,000", value="$6,000.00"),
        budget_row(None, "MATERIALS", manhours="-", value=2000),
    ])
    first, second = result.candidates
    assert first.manhours == 1000.0
    assert first.value == 6000.0
    assert first.source_sheet == "BUDGETS"
    assert first.source_row == 2
    assert second.manhours is None
    assert second.source_row == 3


# ── row-level errors ──────────────────────────────────────────────────────────

def test_bad_row_is_recorded_and_processing_continues():
    report = StepReport("normalize")
    result = _normalize([
        budget_row("FAB", "DIRECT LABOR", value=datetime(2024, 3, 1)),
        budget_row(None, "MATERIALS", value=250),
    ], report=report)

    assert len(result.candidates) == 1
    assert result.candidates[0].discipline == "FAB"
    assert len(result.errors) == 1
    error = result.errors[0]
    assert error.row == 2
    assert error.sheet == "BUDGETS"
    assert any("2024-03-01" in str(cell) for cell in error.data)
    assert report.items_errored == 1


# ── detail layouts ────────────────────────────────────────────────────────────

def test_equipment_layout_sums_cost_columns():
    layout = layout_from_spec(SHEET_CATALOG["DISC. EQUIPMENT"])
    row = [None] * 19
    row[1], row[3] = "PIPING", "WELDING MACHINE"
    row[16], row[17], row[18] = 1000, "$250.00", None
    result = normalize_rows([[None] * 19, row], layout, "DISC. EQUIPMENT")
    assert result.candidates[0].value == 1250.0
    assert result.candidates[0].cost_type == "EQUIPMENT"


def test_layout_without_forward_fill_uses_default_discipline():
    layout = layout_from_spec(SHEET_CATALOG["GENERAL EQUIPMENT"])
    header = [None] * 19
    first = [None] * 19
    first[1], first[3], first[16] = "PIPING", "CRANE", 500
    second = [None] * 19
    second[3], second[16] = "PICKUP TRUCK", 300
    result = normalize_rows([header, first, second], layout, "GENERAL EQUIPMENT")
    assert [c.discipline for c in result.candidates] == ["PIPING", "GENERAL"]


def test_sheet_without_discipline_column_uses_default():
    layout = ColumnLayout(description=1, values=(5,), default_discipline="GENERAL STAFFING",
                          cost_type="INDIRECT LABOR")
    grid = [["WBS", "POSITION"], ["01", "SUPERINTENDENT", 1, 10, 900, 9000]]
    result = normalize_rows(grid, layout, "STAFF")
    candidate = result.candidates[0]
    assert candidate.discipline == "GENERAL STAFFING"
    assert candidate.cost_type == "INDIRECT LABOR"
    assert candidate.value == 9000.0
