"""
Step accounting for budget imports.

An import runs five steps (read, normalize, aggregate, validate, persist).
Each step gets a StepReport that counts the rows it handled, records every
row it passed over under a short category, and keeps the error strings it
produced.  ImportLogger owns the reports for one run; given a log directory
it also mirrors each step's log records into <run_id>/<step>.log and leaves
a summary.json next to them.

Typical use from budget_import.importer::

    il = ImportLogger(log_dir)
    report = il.start_step("normalize")
    ...
    il.finish_step("normalize", report)
    il.close()
    il.write_summary()

Skip categories:
    blank_row       description or value cell empty
    total_row       subtotal row (TOTAL, DISCIPLINE TOTALS, ALL LABOR)
    no_discipline   row precedes the first discipline label
    missing_sheet   optional detail sheet absent from the workbook
    empty_sheet     detail sheet present but contributed no rows
    unmapped_sheet  workbook sheet not in the catalog, never read
"""

from __future__ import annotations

import json
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

IMPORT_STEPS = ("read", "normalize", "aggregate", "validate", "persist")

STEP_LOG_FORMAT = "%(asctime)s  %(levelname)-7s  %(name)s  %(message)s"
MAX_LOGGED_ERRORS = 20


@dataclass
class SkipRecord:
    """A row or sheet an import step passed over."""

    category: str
    detail: str
    item: str = ""         # "SHEET!row" or a sheet name

    def to_dict(self) -> dict[str, str]:
        out = {"category": self.category, "detail": self.detail}
        if self.item:
            out["item"] = self.item
        return out


@dataclass
class StepReport:
    """Counts, skips and errors for one import step."""

    step_name: str
    status: str = "not_started"     # started, completed or failed
    elapsed_seconds: float = 0.0
    items_processed: int = 0
    skips: list[SkipRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    detail: str = ""

    @property
    def items_skipped(self) -> int:
        return len(self.skips)

    @property
    def items_errored(self) -> int:
        return len(self.errors)

    def add_skip(self, category: str, detail: str, item: str = "") -> None:
        self.skips.append(SkipRecord(category, detail, item))

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def skip_counts_by_category(self) -> dict[str, int]:
        return dict(Counter(s.category for s in self.skips))

    def _metric_texts(self) -> list[str]:
        texts = []
        for key, val in self.metrics.items():
            if isinstance(val, bool) or not isinstance(val, (int, float)):
                continue
            texts.append(f"{key}: {val:,}" if isinstance(val, int) else f"{key}: {val:,.2f}")
        return texts

    def console_summary(self) -> str:
        """Single line for the terminal, e.g. '12 processed | 3 skipped (3 total row)'."""
        pieces = []
        if self.items_processed:
            pieces.append(f"{self.items_processed:,} processed")
        if self.skips:
            by_category = ", ".join(
                f"{count} {category.replace('_', ' ')}"
                for category, count in sorted(self.skip_counts_by_category().items())
            )
            pieces.append(f"{self.items_skipped:,} skipped ({by_category})")
        if self.errors:
            pieces.append(f"{self.items_errored:,} errors")
        if self.detail:
            pieces.append(self.detail)
        pieces.extend(self._metric_texts())
        return " | ".join(pieces) or "no activity"

    def footer(self) -> str:
        """Block appended to the step's log file when the step finishes."""
        rule = "=" * 60
        lines = [
            "",
            rule,
            f"STEP SUMMARY: {self.step_name}",
            f"  Status:    {self.status}",
            f"  Elapsed:   {self.elapsed_seconds:.3f}s",
            f"  Processed: {self.items_processed}",
            f"  Skipped:   {self.items_skipped}",
            f"  Errors:    {self.items_errored}",
        ]
        if self.skips:
            lines.append("  Skip breakdown:")
            lines.extend(f"    {category}: {count}"
                         for category, count in sorted(self.skip_counts_by_category().items()))
        if self.errors:
            lines.append("  Error details:")
            lines.extend(f"    - {err}" for err in self.errors[:MAX_LOGGED_ERRORS])
            hidden = len(self.errors) - MAX_LOGGED_ERRORS
            if hidden > 0:
                lines.append(f"    ... and {hidden} more")
        lines.append(rule)
        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "step_name": self.step_name,
            "status": self.status,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
            "items_processed": self.items_processed,
            "items_skipped": self.items_skipped,
            "items_errored": self.items_errored,
            "metrics": self.metrics,
        }
        if self.detail:
            out["detail"] = self.detail
        if self.skips:
            out["skips"] = [s.to_dict() for s in self.skips]
        if self.errors:
            out["errors"] = list(self.errors)
        return out


class ImportLogger:
    """Owns the StepReports of one import run.

    With *logs_dir* set, each run writes to its own timestamped directory::

        <logs_dir>/2026-02-22T14-30-00-123456/
            read.log  normalize.log  aggregate.log  validate.log  persist.log
            summary.json

    Without it, reports live in memory and write_summary() does nothing.
    """

    def __init__(self, logs_dir: Path | str | None = None) -> None:
        self.run_id = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")
        self.run_start = time.monotonic()
        self.args_dict: dict[str, Any] = {}
        self.run_dir: Path | None = None
        if logs_dir is not None:
            self.run_dir = Path(logs_dir) / self.run_id
            self.run_dir.mkdir(parents=True, exist_ok=True)

        self._reports: dict[str, StepReport] = {}
        self._open_steps: dict[str, float] = {}
        self._handlers: dict[str, logging.FileHandler] = {}

    def _attach_handler(self, step_name: str) -> None:
        handler = logging.FileHandler(self.run_dir / f"{step_name}.log", encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(STEP_LOG_FORMAT, datefmt="%H:%M:%S"))
        logging.getLogger().addHandler(handler)
        self._handlers[step_name] = handler

    def _detach_handler(self, step_name: str, report: StepReport) -> None:
        handler = self._handlers.pop(step_name, None)
        if handler is None:
            return
        logging.getLogger().removeHandler(handler)
        handler.stream.write(report.footer())
        handler.close()

    def start_step(self, step_name: str) -> StepReport:
        """Open *step_name* and return its (empty) report."""
        if self.run_dir is not None:
            self._attach_handler(step_name)
        self._open_steps[step_name] = time.monotonic()
        report = StepReport(step_name, status="started")
        self._reports[step_name] = report
        return report

    def finish_step(self, step_name: str, report: StepReport | None = None,
                    failed: bool = False) -> StepReport:
        """Close *step_name*, stamping elapsed time and a final status."""
        started = self._open_steps.pop(step_name, self.run_start)
        if report is None:
            report = self._reports.get(step_name) or StepReport(step_name)
        report.elapsed_seconds = time.monotonic() - started
        if failed:
            report.status = "failed"
        elif report.status == "started":
            report.status = "completed"
        self._reports[step_name] = report

        if report.skips or report.errors:
            logger.info("[%s] %s", step_name, report.console_summary())
        self._detach_handler(step_name, report)
        return report

    def close(self) -> None:
        """Mark steps left open by a raising step as failed and detach their handlers."""
        for step_name in list(self._open_steps):
            self.finish_step(step_name, failed=True)

    def get_reports(self) -> dict[str, StepReport]:
        return dict(self._reports)

    def summary(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "total_elapsed_seconds": round(time.monotonic() - self.run_start, 2),
            "args": self.args_dict,
            "steps": {name: report.to_dict() for name, report in self._reports.items()},
        }

    def write_summary(self) -> Path | None:
        """Write summary.json into the run directory, if there is one."""
        if self.run_dir is None:
            return None
        path = self.run_dir / "summary.json"
        path.write_text(json.dumps(self.summary(), indent=2, default=str), encoding="utf-8")
        return path
