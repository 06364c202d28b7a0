"""
Tests for budget_import.aggregator.
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from budget_import.aggregator import (
    AggregatedBreakdownRow,
    AggregationResult,
    BudgetTotals,
    aggregate,
    check_invariant,
)
from budget_import.classifier import CanonicalCategory, CostTypeClassifier
from budget_import.errors import AggregationInvariantError
from budget_import.normalizer import CandidateLineItem


def item(discipline, cost_type, value, manhours=None, row=2):
    return CandidateLineItem(discipline, cost_type, manhours, value, "BUDGETS", row)


def test_duplicate_key_rows_merge():
    result = aggregate([
        item("PIPING", "MATERIALS", 100.00, row=5),
        item("PIPING", "MATERIALS", 250.50, row=40),
    ])
    assert len(result.rows) == 1
    row = result.rows[0]
    assert row.value == pytest.approx(350.50)
    assert row.source_rows == [5, 40]
    assert result.totals.materials == pytest.approx(350.50)


@pytest.mark.parametrize("first, second, expected", [
    (None, None, None),
    (10.0, None, 10.0),
    (None, 5.0, 5.0),
    (10.0, 5.0, 15.0),
    (0.0, None, 0.0),
])
def test_manhours_merge(first, second, expected):
    result = aggregate([
        item("FAB", "DIRECT LABOR", 1, manhours=first),
        item("FAB", "DIRECT LABOR", 1, manhours=second),
    ])
    assert result.rows[0].manhours == expected


def test_rows_keep_first_seen_order():
    result = aggregate([
        item("PIPE", "DIRECT LABOR", 1),
        item("FAB", "MATERIALS", 1),
        item("PIPE", "DIRECT LABOR", 1),
        item("FAB", "DIRECT LABOR", 1),
    ])
    assert [r.key for r in result.rows] == [
        ("PIPE", "DIRECT LABOR"),
        ("FAB", "MATERIALS"),
        ("FAB", "DIRECT LABOR"),
    ]
    assert result.disciplines() == ["PIPE", "FAB"]
    assert result.candidate_count == 4


def test_totals_by_category_and_invariant():
    result = aggregate([
        item("FAB", "DIRECT LABOR", 6000),
        item("FAB", "MATERIALS", 2000),
        item("PIPE", "DIRECT LABOR", 9000),
        item("PIPE", "SMALL TOOLS & CONSUMABLES", 123.45),
        item("PIPE", "MOBILIZATION", 500),
        item("PIPE", "PER DIEM", 0.1),
    ])
    totals = result.totals
    assert totals.labor == pytest.approx(15000.1)
    assert totals.materials == 2000
    assert totals.small_tools_consumables == pytest.approx(123.45)
    assert totals.other == 500
    assert totals.other_descriptions == ["MOBILIZATION"]
    assert result.total_budget == pytest.approx(result.row_sum(), rel=1e-6)
    assert totals.total == pytest.approx(17623.55)


def test_negative_values_are_kept():
    result = aggregate([item("FAB", "RISK", -250.0), item("FAB", "RISK", 100.0)])
    assert result.rows[0].value == -150.0
    assert result.totals.other == -150.0


def test_discipline_and_cost_type_totals():
    result = aggregate([
        item("FAB", "DIRECT LABOR", 6000, manhours=100),
        item("FAB", "MATERIALS", 2000),
        item("PIPE", "DIRECT LABOR", 9000, manhours=200),
    ])
    assert result.discipline_totals() == {"FAB": 8000, "PIPE": 9000}
    assert result.cost_type_totals() == {"DIRECT LABOR": 15000, "MATERIALS": 2000}
    assert result.cost_type_totals("manhours") == {"DIRECT LABOR": 300, "MATERIALS": 0}
    assert result.get_row("PIPE", "DIRECT LABOR").manhours == 200
    assert result.get_row("PIPE", "MATERIALS") is None


def test_shared_classifier_collects_other_descriptions():
    classifier = CostTypeClassifier()
    aggregate([item("FAB", "FREIGHT", 1)], classifier)
    assert classifier.other_descriptions == ["FREIGHT"]


def test_empty_stream():
    result = aggregate([])
    assert result.rows == []
    assert result.total_budget == 0.0


def test_invariant_violation_raises():
    rows = [AggregatedBreakdownRow("FAB", "MATERIALS", None, 100.0,
                                   category=CanonicalCategory.MATERIALS)]
    totals = BudgetTotals(materials=99.0)
    with pytest.raises(AggregationInvariantError):
        check_invariant(AggregationResult(rows=rows, totals=totals))


def test_invariant_tolerates_float_noise():
    rows = [AggregatedBreakdownRow("FAB", "MATERIALS", None, 0.1 + 0.2)]
    totals = BudgetTotals(materials=0.3)
    check_invariant(AggregationResult(rows=rows, totals=totals))
