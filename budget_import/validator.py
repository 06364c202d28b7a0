"""Cross-Sheet Validator: reconciles detail sheets against the summary sheet.

Severity policy:
  error    both figures present and they differ beyond the absolute AND the
           relative tolerance
  warning  a heuristic relationship (ratio band, subset, orphan discipline)
           does not hold, or a DISCIPLINE TOTALS row disagrees with the
           line items above it
  info     sheet absent, sheet empty, or a figure recorded for context

Validation is advisory.  Nothing here raises on a mismatch; every finding is
returned to the caller.
"""

import logging
from typing import Mapping, Optional

from budget_import.aggregator import AggregationResult
from budget_import.detail_sheets import DetailSheetResult
from budget_import.logging import StepReport
from budget_utils.config import SHARED_EQUIPMENT_DISCIPLINES, ValidationConfig
from budget_utils.strings import format_currency
from budget_utils.validation import (
    SEVERITY_ERROR,
    SEVERITY_INFO,
    SEVERITY_WARNING,
    ValidationResult,
)
from sheet_catalog import SUMMARY_SHEET, detail_sheet_names

logger = logging.getLogger(__name__)


def _fmt(amount: float, measure: str) -> str:
    if measure == "manhours":
        return f"{amount:,.2f} mh"
    return format_currency(amount)


def summary_figure(summary: AggregationResult, discipline: str, cost_type: str,
                   measure: str = "value") -> Optional[float]:
    """The summary sheet's figure for one discipline/cost type, or None."""
    row = summary.get_row(discipline, cost_type)
    if row is None:
        return None
    if measure == "manhours":
        return row.manhours
    return row.value


class CrossSheetValidator:
    """Runs every catalog check for one import."""

    def __init__(self, summary: AggregationResult,
                 config: Optional[ValidationConfig] = None,
                 stated_totals: Optional[Mapping[str, float]] = None,
                 summary_sheet: str = SUMMARY_SHEET):
        self.summary = summary
        self.config = config or ValidationConfig()
        self.stated_totals = dict(stated_totals or {})
        self.summary_sheet = summary_sheet
        self.result = ValidationResult()
        self._summary_disciplines = set(summary.disciplines())

    def validate(self, details: Mapping[str, Optional[DetailSheetResult]]) -> ValidationResult:
        self._check_stated_totals()
        for name in detail_sheet_names():
            detail = details.get(name)
            if detail is None:
                self.result.add(name, SEVERITY_INFO,
                                f"{name} sheet not present in workbook; skipped")
                continue
            self.result.mark_sheet_checked(name)
            if detail.is_empty:
                self.result.add(name, SEVERITY_INFO,
                                f"{name} sheet present but contributed no rows")
                continue

            mode = detail.spec["mode"]
            if mode == "equality":
                self._check_equality(detail)
            elif mode == "ratio":
                self._check_ratio(detail)
            elif mode == "contribution":
                self._check_contribution(detail)
            self._check_shared_equipment(detail)

        logger.info("Validation: %d errors, %d warnings, %d info",
                    self.result.error_count(), self.result.warning_count(),
                    self.result.info_count())
        return self.result

    # ── checks ───────────────────────────────────────────────────────────

    def _check_stated_totals(self) -> None:
        if not self.stated_totals:
            return
        sheet = self.summary_sheet
        self.result.mark_sheet_checked(sheet)
        line_item_totals = self.summary.discipline_totals()
        matched = 0

        for discipline, stated in self.stated_totals.items():
            line_items = line_item_totals.get(discipline, 0.0)
            if self.config.exceeds_tolerance(stated, line_items):
                self.result.add(
                    sheet, SEVERITY_WARNING,
                    f"{discipline} DISCIPLINE TOTALS row shows {format_currency(stated)} "
                    f"but its line items sum to {format_currency(line_items)}",
                    budget_value=stated, detail_value=line_items, discipline=discipline,
                )
            else:
                matched += 1

        self.result.add(sheet, SEVERITY_INFO,
                        f"{matched} of {len(self.stated_totals)} discipline totals "
                        f"agree with their line items")

    def _check_equality(self, detail: DetailSheetResult) -> None:
        sheet = detail.sheet
        cost_type = detail.spec["summary_cost_type"]
        measure = detail.spec["measure"]
        detail_by_discipline = detail.by_discipline()
        matched = 0
        compared = 0

        for discipline, detail_value in detail_by_discipline.items():
            if discipline not in self._summary_disciplines:
                self.result.add(
                    sheet, SEVERITY_WARNING,
                    f"Discipline {discipline} appears on {sheet} but not in the summary sheet",
                    detail_value=detail_value, discipline=discipline, measure=measure,
                )
                continue
            budget_value = summary_figure(self.summary, discipline, cost_type, measure)
            if budget_value is None:
                self.result.add(
                    sheet, SEVERITY_WARNING,
                    f"{discipline} has {sheet} detail but no {cost_type} figure in the summary sheet",
                    detail_value=detail_value, discipline=discipline, measure=measure,
                )
                continue
            compared += 1
            if self.config.exceeds_tolerance(budget_value, detail_value):
                self.result.add(
                    sheet, SEVERITY_ERROR,
                    f"{discipline} {cost_type} mismatch: summary "
                    f"{_fmt(budget_value, measure)} vs {sheet} {_fmt(detail_value, measure)}",
                    budget_value=budget_value, detail_value=detail_value,
                    discipline=discipline, measure=measure,
                )
            else:
                matched += 1

        for row in self.summary.rows:
            if row.cost_type != cost_type or row.discipline in detail_by_discipline:
                continue
            budget_value = row.manhours if measure == "manhours" else row.value
            if not budget_value:
                continue
            self.result.add(
                sheet, SEVERITY_INFO,
                f"{row.discipline} budgets {cost_type} but {sheet} has no rows for it",
                budget_value=budget_value, discipline=row.discipline, measure=measure,
            )

        if compared:
            self.result.add(sheet, SEVERITY_INFO,
                            f"{matched} of {compared} disciplines reconcile on {cost_type}")

    def _ratio_inputs(self, detail: DetailSheetResult):
        spec = detail.spec
        measure = spec["measure"]
        if spec["scope"] == "discipline_total":
            target = spec["default_discipline"]
            budget = self.summary.discipline_totals().get(target)
            label = f"{target} total"
        else:
            target = spec["summary_cost_type"]
            budget = self.summary.cost_type_totals(measure).get(target)
            label = f"{target} total"
        return budget, detail.sheet_total(), label

    def _check_ratio(self, detail: DetailSheetResult) -> None:
        sheet = detail.sheet
        measure = detail.spec["measure"]
        band = self.config.ratio_band(sheet)
        budget, detail_total, label = self._ratio_inputs(detail)

        if band is None:
            self.result.add(sheet, SEVERITY_INFO,
                            f"No expected ratio configured for {sheet}",
                            budget_value=budget, detail_value=detail_total, measure=measure)
            return
        if not budget:
            self.result.add(sheet, SEVERITY_INFO,
                            f"Summary sheet has no {label}; {sheet} ratio not computed",
                            detail_value=detail_total, measure=measure)
            return

        low, high = band
        ratio = detail_total / budget
        if low <= ratio <= high:
            self.result.add(
                sheet, SEVERITY_INFO,
                f"{sheet} is {ratio:.3f}x the summary {label} (expected {low:g} to {high:g})",
                budget_value=budget, detail_value=detail_total, measure=measure,
            )
        else:
            self.result.add(
                sheet, SEVERITY_WARNING,
                f"{sheet} is {ratio:.3f}x the summary {label}, outside the expected "
                f"{low:g} to {high:g}",
                budget_value=budget, detail_value=detail_total, measure=measure,
            )

    def _check_contribution(self, detail: DetailSheetResult) -> None:
        sheet = detail.sheet
        spec = detail.spec
        measure = spec["measure"]
        discipline = spec["default_discipline"]
        cost_type = spec["summary_cost_type"]
        detail_total = detail.sheet_total()
        budget_value = summary_figure(self.summary, discipline, cost_type, measure)

        if budget_value is None:
            self.result.add(
                sheet, SEVERITY_INFO,
                f"{sheet} totals {_fmt(detail_total, measure)}; summary sheet has no "
                f"{discipline} {cost_type} figure",
                detail_value=detail_total, discipline=discipline, measure=measure,
            )
            return

        diff = detail_total - budget_value
        if diff > self.config.abs_tolerance and diff > self.config.rel_tolerance * abs(budget_value):
            self.result.add(
                sheet, SEVERITY_WARNING,
                f"{sheet} exceeds the {discipline} {cost_type} budget it is part of",
                budget_value=budget_value, detail_value=detail_total,
                discipline=discipline, measure=measure,
            )
            return

        share = f" ({detail_total / budget_value:.1%})" if budget_value else ""
        self.result.add(
            sheet, SEVERITY_INFO,
            f"{sheet} contributes {_fmt(detail_total, measure)} to {discipline} "
            f"{cost_type}{share}",
            budget_value=budget_value, detail_value=detail_total,
            discipline=discipline, measure=measure,
        )

    def _check_shared_equipment(self, detail: DetailSheetResult) -> None:
        if detail.spec["category"] != "EQUIPMENT":
            return
        sheet = detail.sheet
        if detail.spec.get("exclude_shared"):
            if detail.shared_row_count:
                self.result.add(
                    sheet, SEVERITY_INFO,
                    f"{detail.shared_row_count} shared equipment rows "
                    f"({format_currency(detail.shared_total)}) excluded from the "
                    f"per-discipline comparison",
                    detail_value=detail.shared_total,
                )
            return
        for row in detail.rows:
            if row.discipline in SHARED_EQUIPMENT_DISCIPLINES:
                self.result.add(
                    sheet, SEVERITY_WARNING,
                    f"{sheet} carries shared equipment under {row.discipline!r}; "
                    f"it should hold discipline-specific equipment only",
                    detail_value=row.value, discipline=row.discipline,
                )


def validate_workbook(summary: AggregationResult,
                      details: Mapping[str, Optional[DetailSheetResult]],
                      config: Optional[ValidationConfig] = None,
                      report: Optional[StepReport] = None,
                      stated_totals: Optional[Mapping[str, float]] = None,
                      summary_sheet: str = SUMMARY_SHEET) -> ValidationResult:
    """Run all cross-sheet checks and return every finding.

    stated_totals are the summary sheet's own DISCIPLINE TOTALS figures; when
    given, each is reconciled against the discipline's line items.
    """
    result = CrossSheetValidator(summary, config, stated_totals,
                                 summary_sheet).validate(details)
    if report:
        report.items_processed = len(result.checked_sheets)
        report.metrics.update({
            "errors": result.error_count(),
            "warnings": result.warning_count(),
            "info": result.info_count(),
        })
    return result
