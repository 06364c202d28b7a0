"""Row Normalizer: turns a sheet grid into a flat stream of candidate line items.

Discipline labels sit in merged cells, so only the first row of each block
physically carries one.  Rows are walked strictly in document order with a
single "current discipline" carried forward until the next label appears.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from budget_import.logging import StepReport
from budget_utils.patterns import DISCIPLINE_TOTALS
from budget_utils.strings import (
    is_blank,
    is_total_row,
    normalize_label,
    parse_currency,
    parse_manhours,
)

logger = logging.getLogger(__name__)


@dataclass
class CandidateLineItem:
    discipline: str
    cost_type: str
    manhours: Optional[float]
    value: float
    source_sheet: str
    source_row: int        # 1-based spreadsheet row


@dataclass
class RowError:
    """A row that raised while being normalized; the run continues past it."""

    sheet: str
    row: int
    message: str
    data: Any = None


@dataclass(frozen=True)
class ColumnLayout:
    """Positional layout of one sheet, as the normalizer needs it."""

    description: int
    values: Tuple[int, ...]
    discipline: Optional[int] = None
    manhours: Optional[int] = None
    header_rows: int = 1
    forward_fill: bool = True
    default_discipline: Optional[str] = None
    cost_type: Optional[str] = None     # fixed cost type; else the description


@dataclass
class NormalizedSheet:
    sheet: str
    candidates: List[CandidateLineItem] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)
    rows_read: int = 0
    # discipline -> value of its own DISCIPLINE TOTALS row
    stated_totals: Dict[str, float] = field(default_factory=dict)


def layout_from_spec(spec: Dict[str, Any]) -> ColumnLayout:
    """Build a ColumnLayout from a sheet catalog entry.

    Summary sheets take the cost type from the description column; detail
    sheets use the summary cost type they reconcile against (or the sheet's
    default discipline when they reconcile against every cost type).
    """
    cols = spec["column_mappings"]
    if spec["role"] == "summary":
        return ColumnLayout(
            description=cols["description"],
            values=(cols["value"],),
            discipline=cols["discipline"],
            manhours=cols.get("manhours"),
            header_rows=spec["header_rows"],
        )
    value_fields = spec.get("value_fields") or ["total_cost"]
    return ColumnLayout(
        description=cols["description"],
        values=tuple(cols[f] for f in value_fields),
        discipline=cols.get("discipline"),
        manhours=cols.get("manhours"),
        header_rows=spec["header_rows"],
        forward_fill=spec.get("forward_fill", True),
        default_discipline=spec.get("default_discipline"),
        cost_type=spec.get("summary_cost_type") or spec.get("default_discipline"),
    )


def _cell(row: Sequence[Any], idx: Optional[int]) -> Any:
    if idx is None or idx >= len(row):
        return None
    return row[idx]


def _json_safe(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def snapshot_row(row: Sequence[Any]) -> List[Any]:
    """JSON-safe copy of a raw row, trimmed of trailing empty cells."""
    cells = [_json_safe(v) for v in row]
    while cells and cells[-1] is None:
        cells.pop()
    return cells


def normalize_rows(grid: Sequence[Sequence[Any]], layout: ColumnLayout,
                   sheet_name: str,
                   report: Optional[StepReport] = None) -> NormalizedSheet:
    """Walk *grid* in order and emit one CandidateLineItem per budget row.

    A row is skipped when its description or every value cell is empty, when
    it is a subtotal row, or when no discipline has been established yet.
    The value of each DISCIPLINE TOTALS row is kept in stated_totals under
    the discipline it closes.
    Exceptions raised by one row are recorded as a RowError and processing
    moves on to the next row.

    Args:
        grid: Cell grid from the Workbook Reader
        layout: Column positions for this sheet
        sheet_name: Sheet name recorded on every candidate
        report: Optional step report receiving skip/error accounting

    Returns:
        NormalizedSheet with candidates and row errors in document order
    """
    result = NormalizedSheet(sheet=sheet_name)
    current_discipline: Optional[str] = None

    for idx in range(layout.header_rows, len(grid)):
        row = grid[idx]
        row_number = idx + 1
        where = f"{sheet_name}!{row_number}"
        if all(is_blank(v) for v in row):
            continue
        result.rows_read += 1

        try:
            raw_discipline = _cell(row, layout.discipline)
            if layout.discipline is None:
                current_discipline = layout.default_discipline
            elif not is_blank(raw_discipline):
                current_discipline = normalize_label(raw_discipline)
            elif not layout.forward_fill:
                current_discipline = layout.default_discipline

            raw_description = _cell(row, layout.description)
            raw_values = [_cell(row, i) for i in layout.values]

            if is_blank(raw_description):
                if report:
                    report.add_skip("blank_row", "no description", where)
                continue
            description = normalize_label(raw_description)
            if is_total_row(description):
                if (DISCIPLINE_TOTALS.match(description) and current_discipline is not None
                        and not all(is_blank(v) for v in raw_values)):
                    result.stated_totals[current_discipline] = sum(
                        parse_currency(v) for v in raw_values if not is_blank(v))
                if report:
                    report.add_skip("total_row", description, where)
                continue
            if all(is_blank(v) for v in raw_values):
                if report:
                    report.add_skip("blank_row", f"no value for {description}", where)
                continue
            if current_discipline is None:
                if report:
                    report.add_skip("no_discipline", f"{description} precedes any discipline", where)
                continue

            value = sum(parse_currency(v) for v in raw_values if not is_blank(v))
            manhours = None
            if layout.manhours is not None:
                manhours = parse_manhours(_cell(row, layout.manhours))

            result.candidates.append(CandidateLineItem(
                discipline=current_discipline,
                cost_type=layout.cost_type or description,
                manhours=manhours,
                value=value,
                source_sheet=sheet_name,
                source_row=row_number,
            ))
            if report:
                report.items_processed += 1
        except (ValueError, TypeError) as e:
            logger.warning("Row %s could not be processed: %s", where, e)
            result.errors.append(RowError(
                sheet=sheet_name,
                row=row_number,
                message=f"Row {row_number}: {e}",
                data=snapshot_row(row),
            ))
            if report:
                report.add_error(f"{where}: {e}")

    logger.debug("Normalized %s: %d candidates, %d row errors",
                 sheet_name, len(result.candidates), len(result.errors))
    return result
