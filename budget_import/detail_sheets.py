"""Detail sheet extraction.

Each catalog detail sheet present in the workbook is read independently,
normalized with its own column layout and aggregated on its own, so the
validator can compare it against the summary sheet.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from budget_import.aggregator import AggregatedBreakdownRow, BudgetTotals, aggregate
from budget_import.logging import StepReport
from budget_import.normalizer import RowError, layout_from_spec, normalize_rows
from budget_import.workbook import BudgetWorkbook
from budget_utils.config import SHARED_EQUIPMENT_DISCIPLINES
from sheet_catalog import SHEET_CATALOG, detail_sheet_names

logger = logging.getLogger(__name__)


@dataclass
class DetailSheetResult:
    sheet: str                          # catalog name
    spec: Dict[str, Any]
    rows: List[AggregatedBreakdownRow] = field(default_factory=list)
    totals: BudgetTotals = field(default_factory=BudgetTotals)
    shared_total: float = 0.0
    shared_row_count: int = 0
    row_errors: List[RowError] = field(default_factory=list)
    candidate_count: int = 0
    workbook_sheet: str = ""            # name as spelled in the workbook

    @property
    def is_empty(self) -> bool:
        return not self.rows and self.shared_row_count == 0

    def measure(self, row: AggregatedBreakdownRow) -> float:
        if self.spec["measure"] == "manhours":
            return row.manhours or 0.0
        return row.value

    def by_discipline(self) -> Dict[str, float]:
        """Compared measure per discipline, in first-seen order."""
        totals: Dict[str, float] = {}
        for row in self.rows:
            totals[row.discipline] = totals.get(row.discipline, 0.0) + self.measure(row)
        return totals

    def sheet_total(self) -> float:
        return sum(self.measure(r) for r in self.rows)


def extract_detail_sheet(workbook: BudgetWorkbook, sheet_name: str,
                         report: Optional[StepReport] = None,
                         rel_tolerance: float = 1e-6) -> Optional[DetailSheetResult]:
    """Read, normalize and aggregate one detail sheet.

    Returns:
        DetailSheetResult, or None when the sheet is not in the workbook
    """
    spec = SHEET_CATALOG[sheet_name]
    actual = workbook.resolve_sheet_name(sheet_name)
    if actual is None:
        return None

    grid = workbook.read_grid(actual)
    normalized = normalize_rows(grid, layout_from_spec(spec), actual, report)

    candidates = normalized.candidates
    shared_total = 0.0
    shared_count = 0
    if spec.get("exclude_shared"):
        kept = []
        for item in candidates:
            if item.discipline in SHARED_EQUIPMENT_DISCIPLINES:
                shared_total += item.value
                shared_count += 1
            else:
                kept.append(item)
        candidates = kept

    aggregation = aggregate(candidates, rel_tolerance=rel_tolerance)
    result = DetailSheetResult(
        sheet=sheet_name,
        spec=spec,
        rows=aggregation.rows,
        totals=aggregation.totals,
        shared_total=shared_total,
        shared_row_count=shared_count,
        row_errors=normalized.errors,
        candidate_count=len(normalized.candidates),
        workbook_sheet=actual,
    )
    logger.info("Detail sheet %s: %d candidates, %d rows, %d shared",
                actual, result.candidate_count, len(result.rows), shared_count)
    return result


def extract_detail_sheets(workbook: BudgetWorkbook,
                          report: Optional[StepReport] = None,
                          rel_tolerance: float = 1e-6) -> Dict[str, Optional[DetailSheetResult]]:
    """Extract every catalog detail sheet; absent sheets map to None."""
    results: Dict[str, Optional[DetailSheetResult]] = {}
    for name in detail_sheet_names():
        result = extract_detail_sheet(workbook, name, report, rel_tolerance)
        if result is None and report:
            report.add_skip("missing_sheet", f"{name} not in workbook", name)
        elif result is not None and result.is_empty and report:
            report.add_skip("empty_sheet", f"{name} contributed no rows", name)
        results[name] = result
    return results
