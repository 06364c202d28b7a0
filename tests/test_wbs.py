"""
Tests for budget_import.wbs (WBS Structure Builder).
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from budget_import.wbs import (
    INPUT_DISCIPLINE_COLUMN,
    INPUT_FLAG_COLUMN,
    build_wbs,
    extract_input_disciplines,
    flatten_wbs,
    is_demo_discipline,
    parent_for,
    wbs_disciplines,
)


def input_row(flag, name):
    row = [None] * (INPUT_DISCIPLINE_COLUMN + 1)
    row[INPUT_FLAG_COLUMN] = flag
    row[INPUT_DISCIPLINE_COLUMN] = name
    return row


# ── hierarchy lookup ──────────────────────────────────────────────────────────

@pytest.mark.parametrize("discipline, parent", [
    ("PIPING", "MECHANICAL"),
    ("STEEL", "MECHANICAL"),
    ("PIPING DEMO", "MECHANICAL"),
    ("CRANE SUPPORT", "MECHANICAL"),
    ("ELECTRICAL", "I&E"),
    ("I&E DEMO", "I&E"),
    ("CONCRETE", "CIVIL"),
    ("CIVIL-DEMO", "CIVIL"),
    ("civil - grounding", "CIVIL"),
    ("FABRICATION", None),
    ("GENERAL STAFFING", None),
    ("DEMOLITION", None),
])
def test_parent_for(discipline, parent):
    assert parent_for(discipline) == parent


def test_is_demo_discipline():
    assert is_demo_discipline("PIPING DEMO")
    assert is_demo_discipline("demo - steel")
    assert not is_demo_discipline("DEMOLITION")


# ── build_wbs ─────────────────────────────────────────────────────────────────

def test_codes_in_first_seen_order():
    nodes = build_wbs(["FABRICATION", "PIPING", "ELECTRICAL", "STEEL", "CLEAN UP"])

    assert [(n.code, n.description) for n in nodes] == [
        ("01", "FABRICATION"),
        ("02", "MECHANICAL"),
        ("03", "I&E"),
        ("04", "CLEAN UP"),
    ]
    mechanical = nodes[1]
    assert mechanical.discipline is None
    assert [(c.code, c.description) for c in mechanical.children] == [
        ("02.01", "PIPING"),
        ("02.02", "STEEL"),
    ]


def test_demo_variant_sits_under_parent_and_rolls_up():
    nodes = build_wbs(
        ["PIPING", "PIPING DEMO", "FABRICATION"],
        {"PIPING": 9000.0, "PIPING DEMO": 1500.0, "FABRICATION": 8000.0},
    )
    mechanical, fabrication = nodes
    assert mechanical.description == "MECHANICAL"
    demo = mechanical.children[1]
    assert demo.is_demo
    assert demo.code == "01.02"
    assert demo.budget_total == 1500.0
    assert mechanical.budget_total == 10500.0
    assert fabrication.budget_total == 8000.0


def test_duplicates_and_blanks_ignored():
    nodes = build_wbs(["piping", "PIPING", "", "  "])
    assert len(nodes) == 1
    assert len(nodes[0].children) == 1


def test_standalone_demo_discipline_is_top_level():
    nodes = build_wbs(["DEMO"])
    assert nodes[0].description == "DEMO"
    assert nodes[0].is_demo
    assert nodes[0].children == []


def test_to_dict_nests_children():
    data = build_wbs(["PIPING"], {"PIPING": 5.0})[0].to_dict()
    assert data["code"] == "01"
    assert data["discipline"] is None
    assert data["children"][0]["discipline"] == "PIPING"
    assert data["children"][0]["budget_total"] == 5.0


def test_flatten_wbs():
    rows = flatten_wbs(build_wbs(["FABRICATION", "PIPING"]))
    assert [(r["code"], r["parent_code"], r["level"]) for r in rows] == [
        ("01", None, 1),
        ("02", None, 1),
        ("02.01", "02", 2),
    ]


# ── INPUT sheet ───────────────────────────────────────────────────────────────

def test_extract_input_disciplines():
    grid = [
        [None] * 5,
        input_row("INCLUDE", "DISCIPLINE"),
        input_row(1, "Piping"),
        input_row(0, "STEEL"),
        input_row("1", "ELECTRICAL"),
        input_row(1.0, "FABRICATION"),
        input_row(None, None),
        input_row(1, "NOT IN LIST"),
    ]
    assert extract_input_disciplines(grid) == ["PIPING", "ELECTRICAL", "FABRICATION"]


def test_extract_input_disciplines_without_list():
    assert extract_input_disciplines([[None] * 3, ["x"]]) == []


def test_wbs_disciplines_appends_budgeted_extras():
    assert wbs_disciplines(["piping", "STEEL"], ["PIPING", "GENERAL STAFFING"]) == [
        "PIPING", "STEEL", "GENERAL STAFFING",
    ]
    assert wbs_disciplines([], ["FAB"]) == ["FAB"]
