"""Persistence collaborator for budget imports.

The import engine talks to a BudgetStore; SQLiteBudgetStore is the
implementation the CLI uses.  Saving a budget replaces every breakdown row
for the project inside one transaction, so readers see either the old set or
the new set and never a mix.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union

from budget_import.errors import StorageError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id          TEXT PRIMARY KEY,
    job_number  TEXT NOT NULL,
    name        TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS project_budgets (
    id                              INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id                      TEXT NOT NULL UNIQUE REFERENCES projects(id),
    total_budget                    REAL NOT NULL DEFAULT 0,
    labor_budget                    REAL NOT NULL DEFAULT 0,
    materials_budget                REAL NOT NULL DEFAULT 0,
    equipment_budget                REAL NOT NULL DEFAULT 0,
    subcontracts_budget             REAL NOT NULL DEFAULT 0,
    small_tools_consumables_budget  REAL NOT NULL DEFAULT 0,
    other_budget                    REAL NOT NULL DEFAULT 0,
    other_budget_description        TEXT,
    notes                           TEXT,
    created_at                      TEXT NOT NULL,
    updated_at                      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS project_budget_breakdowns (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id     TEXT NOT NULL REFERENCES projects(id),
    discipline     TEXT NOT NULL,
    cost_type      TEXT NOT NULL,
    manhours       REAL,
    value          REAL NOT NULL,
    import_source  TEXT NOT NULL DEFAULT 'excel_import',
    created_at     TEXT NOT NULL,
    UNIQUE (project_id, discipline, cost_type)
);

CREATE TABLE IF NOT EXISTS audit_log (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    entity_type  TEXT NOT NULL,
    entity_id    TEXT NOT NULL,
    action       TEXT NOT NULL,
    changes      TEXT NOT NULL,
    created_at   TEXT NOT NULL
);
"""

TOTAL_COLUMNS = {
    "labor": "labor_budget",
    "materials": "materials_budget",
    "equipment": "equipment_budget",
    "subcontracts": "subcontracts_budget",
    "small_tools_consumables": "small_tools_consumables_budget",
    "other": "other_budget",
}


class BudgetStore(Protocol):
    """What the import engine needs from a persistence layer."""

    def get_project(self, project_id: str) -> Optional[Dict[str, Any]]:
        """Return {id, job_number, name} or None when the project is unknown."""
        ...

    def save_budget(self, project_id: str, rows: Iterable[Any], totals: Any,
                    other_descriptions: List[str], notes: str,
                    audit: Optional[Dict[str, Any]] = None) -> str:
        """Replace the project's budget; return 'created' or 'updated'.

        When audit is given, the audit entry is written in the same transaction.
        """
        ...

    def append_audit(self, entity_id: str, action: str,
                     changes: Dict[str, Any]) -> None:
        ...


def init_pragmas(conn: sqlite3.Connection) -> None:
    """Initialize SQLite reliability pragmas.

    - WAL mode so report readers are not blocked by an import
    - NORMAL synchronous mode for speed without data loss
    - Foreign keys enforced

    Args:
        conn: SQLite connection to configure
    """
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA foreign_keys=ON")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _storage_error(exc: sqlite3.Error, hint: Optional[str] = None) -> StorageError:
    return StorageError(
        str(exc),
        details=type(exc).__name__,
        hint=hint,
        code=getattr(exc, "sqlite_errorname", None),
    )


class SQLiteBudgetStore:
    """BudgetStore backed by a single SQLite database file (or ':memory:')."""

    def __init__(self, db_path: Union[Path, str] = ":memory:"):
        self.db_path = str(db_path)
        try:
            self.conn = sqlite3.connect(self.db_path)
            self.conn.row_factory = sqlite3.Row
            init_pragmas(self.conn)
            self.conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise _storage_error(e, hint=f"Could not open database {self.db_path}") from e

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "SQLiteBudgetStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ── projects ─────────────────────────────────────────────────────────

    def add_project(self, project_id: str, job_number: str, name: str) -> None:
        """Register (or rename) a project so imports can target it."""
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT INTO projects (id, job_number, name) VALUES (?, ?, ?) "
                    "ON CONFLICT(id) DO UPDATE SET job_number = excluded.job_number, "
                    "name = excluded.name",
                    (project_id, job_number, name),
                )
        except sqlite3.Error as e:
            raise _storage_error(e) from e

    def get_project(self, project_id: str) -> Optional[Dict[str, Any]]:
        row = self.conn.execute(
            "SELECT id, job_number, name FROM projects WHERE id = ?",
            (project_id,),
        ).fetchone()
        return dict(row) if row else None

    # ── budgets ──────────────────────────────────────────────────────────

    def save_budget(self, project_id: str, rows: Iterable[Any], totals: Any,
                    other_descriptions: List[str], notes: str,
                    audit: Optional[Dict[str, Any]] = None) -> str:
        """Replace the project's budget and breakdown rows atomically.

        Args:
            project_id: Target project
            rows: AggregatedBreakdownRow-like objects (discipline, cost_type,
                manhours, value)
            totals: BudgetTotals-like object with one attribute per category
            other_descriptions: Unmapped cost-type labels, for the budget record
            notes: Free-text note stored on the budget record
            audit: Audit payload recorded under the save outcome, committed
                or rolled back together with the budget

        Returns:
            'created' when the project had no budget, else 'updated'

        Raises:
            StorageError: on any SQLite failure; the transaction is rolled back
        """
        now = _utc_now()
        category_values = {col: float(getattr(totals, attr))
                           for attr, col in TOTAL_COLUMNS.items()}
        total_budget = sum(category_values.values())
        other_description = ", ".join(other_descriptions) if other_descriptions else None

        try:
            with self.conn:
                existing = self.conn.execute(
                    "SELECT id FROM project_budgets WHERE project_id = ?",
                    (project_id,),
                ).fetchone()

                if existing:
                    assignments = ", ".join(f"{col} = ?" for col in category_values)
                    self.conn.execute(
                        f"UPDATE project_budgets SET total_budget = ?, {assignments}, "
                        "other_budget_description = ?, notes = ?, updated_at = ? "
                        "WHERE project_id = ?",
                        (total_budget, *category_values.values(),
                         other_description, notes, now, project_id),
                    )
                    outcome = "updated"
                else:
                    cols = ", ".join(category_values)
                    marks = ", ".join("?" for _ in category_values)
                    self.conn.execute(
                        f"INSERT INTO project_budgets (project_id, total_budget, {cols}, "
                        "other_budget_description, notes, created_at, updated_at) "
                        f"VALUES (?, ?, {marks}, ?, ?, ?, ?)",
                        (project_id, total_budget, *category_values.values(),
                         other_description, notes, now, now),
                    )
                    outcome = "created"

                self.conn.execute(
                    "DELETE FROM project_budget_breakdowns WHERE project_id = ?",
                    (project_id,),
                )
                self.conn.executemany(
                    "INSERT INTO project_budget_breakdowns "
                    "(project_id, discipline, cost_type, manhours, value, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    [(project_id, r.discipline, r.cost_type, r.manhours, r.value, now)
                     for r in rows],
                )
                if audit is not None:
                    self._insert_audit(project_id, outcome, audit)
        except sqlite3.Error as e:
            logger.error("Budget save for project %s rolled back: %s", project_id, e)
            raise _storage_error(
                e, hint="No breakdown rows were changed; retry the import"
            ) from e

        logger.info("Budget %s for project %s", outcome, project_id)
        return outcome

    def get_budget(self, project_id: str) -> Optional[Dict[str, Any]]:
        row = self.conn.execute(
            "SELECT * FROM project_budgets WHERE project_id = ?", (project_id,)
        ).fetchone()
        return dict(row) if row else None

    def get_breakdown_rows(self, project_id: str) -> List[Dict[str, Any]]:
        """Return the project's breakdown rows ordered by discipline and cost type."""
        cursor = self.conn.execute(
            "SELECT discipline, cost_type, manhours, value "
            "FROM project_budget_breakdowns WHERE project_id = ? "
            "ORDER BY discipline, cost_type",
            (project_id,),
        )
        return [dict(r) for r in cursor.fetchall()]

    # ── audit ────────────────────────────────────────────────────────────

    def append_audit(self, entity_id: str, action: str,
                     changes: Dict[str, Any]) -> None:
        try:
            with self.conn:
                self._insert_audit(entity_id, action, changes)
        except sqlite3.Error as e:
            raise _storage_error(e) from e

    def _insert_audit(self, entity_id: str, action: str,
                      changes: Dict[str, Any]) -> None:
        self.conn.execute(
            "INSERT INTO audit_log (entity_type, entity_id, action, changes, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            ("project_budget", entity_id, action,
             json.dumps(changes, default=str), _utc_now()),
        )

    def get_audit_entries(self, entity_id: str) -> List[Dict[str, Any]]:
        cursor = self.conn.execute(
            "SELECT entity_type, entity_id, action, changes, created_at "
            "FROM audit_log WHERE entity_id = ? ORDER BY id",
            (entity_id,),
        )
        entries = []
        for row in cursor.fetchall():
            entry = dict(row)
            entry["changes"] = json.loads(entry["changes"])
            entries.append(entry)
        return entries
