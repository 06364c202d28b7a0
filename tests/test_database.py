"""
Tests for budget_utils.database.SQLiteBudgetStore.

Uses in-memory databases; one test touches a file to check the WAL pragma.
"""
import sqlite3
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from budget_import.aggregator import AggregatedBreakdownRow, BudgetTotals
from budget_import.errors import StorageError
from budget_utils.database import SQLiteBudgetStore, init_pragmas

PROJECT = ("P-100", "24-118", "Refinery Turnaround")


@pytest.fixture
def db():
    store = SQLiteBudgetStore()
    store.add_project(*PROJECT)
    yield store
    store.close()


def rows(*specs):
    return [AggregatedBreakdownRow(d, c, mh, v) for d, c, mh, v in specs]


def test_add_and_get_project(db):
    assert db.get_project("P-100") == {
        "id": "P-100", "job_number": "24-118", "name": "Refinery Turnaround",
    }
    assert db.get_project("P-404") is None


def test_add_project_renames_existing(db):
    db.add_project("P-100", "24-118", "Refinery Turnaround Phase 2")
    assert db.get_project("P-100")["name"] == "Refinery Turnaround Phase 2"


def test_save_budget_created_then_updated(db):
    totals = BudgetTotals(labor=6000.0, other=250.0)
    first = db.save_budget("P-100", rows(("FAB", "DIRECT LABOR", 100.0, 6000.0),
                                         ("FAB", "FREIGHT", None, 250.0)),
                           totals, ["FREIGHT"], "Imported from Excel: a.xlsx")
    assert first == "created"

    budget = db.get_budget("P-100")
    assert budget["total_budget"] == 6250.0
    assert budget["other_budget"] == 250.0
    assert budget["other_budget_description"] == "FREIGHT"
    assert budget["notes"] == "Imported from Excel: a.xlsx"

    second = db.save_budget("P-100", rows(("PIPE", "MATERIALS", None, 10.0)),
                            BudgetTotals(materials=10.0), [], "Imported from Excel: b.xlsx")
    assert second == "updated"
    assert db.get_breakdown_rows("P-100") == [
        {"discipline": "PIPE", "cost_type": "MATERIALS", "manhours": None, "value": 10.0},
    ]
    budget = db.get_budget("P-100")
    assert budget["other_budget_description"] is None
    assert budget["total_budget"] == 10.0


def test_failed_save_rolls_back_and_raises_storage_error(db):
    db.save_budget("P-100", rows(("FAB", "MATERIALS", None, 5.0)),
                   BudgetTotals(materials=5.0), [], "first")
    duplicate = rows(("FAB", "RISK", None, 1.0), ("FAB", "RISK", None, 2.0))

    with pytest.raises(StorageError) as exc_info:
        db.save_budget("P-100", duplicate, BudgetTotals(other=3.0), [], "second")

    assert exc_info.value.details == "IntegrityError"
    assert "Failed to save budget data:" in exc_info.value.describe()
    assert db.get_breakdown_rows("P-100") == [
        {"discipline": "FAB", "cost_type": "MATERIALS", "manhours": None, "value": 5.0},
    ]
    assert db.get_budget("P-100")["notes"] == "first"


def test_unknown_project_violates_foreign_key(db):
    with pytest.raises(StorageError):
        db.save_budget("P-404", rows(("FAB", "RISK", None, 1.0)),
                       BudgetTotals(other=1.0), [], "")
    assert db.get_budget("P-404") is None


def test_audit_entries_round_trip(db):
    db.append_audit("P-100", "created", {"total_budget": 17000.0, "breakdown_rows": 3})
    db.append_audit("P-100", "updated", {"total_budget": 18000.0, "breakdown_rows": 4})
    entries = db.get_audit_entries("P-100")
    assert [e["action"] for e in entries] == ["created", "updated"]
    assert entries[0]["entity_type"] == "project_budget"
    assert entries[1]["changes"]["breakdown_rows"] == 4


class AuditRejectingStore(SQLiteBudgetStore):
    """Store whose audit insert fails once reject_audit is set."""

    reject_audit = False

    def _insert_audit(self, entity_id, action, changes):
        if self.reject_audit:
            raise sqlite3.OperationalError("database is locked")
        super()._insert_audit(entity_id, action, changes)


def test_save_budget_writes_audit_in_same_transaction(db):
    outcome = db.save_budget("P-100", rows(("FAB", "MATERIALS", None, 5.0)),
                             BudgetTotals(materials=5.0), [], "first",
                             audit={"breakdown_rows": 1})
    entries = db.get_audit_entries("P-100")
    assert outcome == "created"
    assert [(e["action"], e["changes"]) for e in entries] == [("created", {"breakdown_rows": 1})]


def test_failed_audit_rolls_back_budget():
    with AuditRejectingStore() as store:
        store.add_project(*PROJECT)
        store.save_budget("P-100", rows(("FAB", "MATERIALS", None, 5.0)),
                          BudgetTotals(materials=5.0), [], "first", audit={"n": 1})

        store.reject_audit = True
        with pytest.raises(StorageError):
            store.save_budget("P-100", rows(("PIPE", "MATERIALS", None, 9.0)),
                              BudgetTotals(materials=9.0), [], "second", audit={"n": 2})

        assert store.get_breakdown_rows("P-100") == [
            {"discipline": "FAB", "cost_type": "MATERIALS", "manhours": None, "value": 5.0},
        ]
        assert store.get_budget("P-100")["notes"] == "first"
        assert [e["action"] for e in store.get_audit_entries("P-100")] == ["created"]


def test_context_manager_closes(tmp_path):
    path = tmp_path / "budget.sqlite"
    with SQLiteBudgetStore(path) as store:
        store.add_project(*PROJECT)
    with SQLiteBudgetStore(path) as store:
        assert store.get_project("P-100")["job_number"] == "24-118"


def test_init_pragmas(tmp_path):
    conn = sqlite3.connect(tmp_path / "pragmas.sqlite")
    init_pragmas(conn)
    assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
    assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
    conn.close()
