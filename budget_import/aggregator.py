"""Aggregator: merges candidate line items on (discipline, cost_type).

The same discipline/cost-type pair can legitimately appear on several
physical rows (a block split across a page break, for example).  Those rows
are one logical budget line and are summed into a single breakdown row.

Each Aggregator instance owns its state; nothing is shared between runs.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from budget_import.classifier import CanonicalCategory, CostTypeClassifier
from budget_import.errors import AggregationInvariantError
from budget_import.logging import StepReport
from budget_import.normalizer import CandidateLineItem

logger = logging.getLogger(__name__)


@dataclass
class AggregatedBreakdownRow:
    discipline: str
    cost_type: str
    manhours: Optional[float]
    value: float
    category: CanonicalCategory = CanonicalCategory.OTHER
    source_rows: List[int] = field(default_factory=list)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.discipline, self.cost_type)

    def merge(self, item: CandidateLineItem) -> None:
        """Fold another candidate with the same key into this row."""
        self.value += item.value
        if self.manhours is None and item.manhours is None:
            self.manhours = None
        else:
            self.manhours = (self.manhours or 0.0) + (item.manhours or 0.0)
        self.source_rows.append(item.source_row)


@dataclass
class BudgetTotals:
    labor: float = 0.0
    materials: float = 0.0
    equipment: float = 0.0
    subcontracts: float = 0.0
    small_tools_consumables: float = 0.0
    other: float = 0.0
    other_descriptions: List[str] = field(default_factory=list)

    def add(self, category: CanonicalCategory, value: float) -> None:
        setattr(self, category.value, getattr(self, category.value) + value)

    @property
    def total(self) -> float:
        return (self.labor + self.materials + self.equipment + self.subcontracts
                + self.small_tools_consumables + self.other)

    def category_values(self) -> Dict[str, float]:
        return {c.value: getattr(self, c.value) for c in CanonicalCategory}


@dataclass
class AggregationResult:
    rows: List[AggregatedBreakdownRow]
    totals: BudgetTotals
    candidate_count: int = 0

    @property
    def total_budget(self) -> float:
        return self.totals.total

    def row_sum(self) -> float:
        return sum(r.value for r in self.rows)

    def get_row(self, discipline: str, cost_type: str) -> Optional[AggregatedBreakdownRow]:
        for row in self.rows:
            if row.discipline == discipline and row.cost_type == cost_type:
                return row
        return None

    def disciplines(self) -> List[str]:
        """Distinct disciplines in first-seen order."""
        seen: List[str] = []
        for row in self.rows:
            if row.discipline not in seen:
                seen.append(row.discipline)
        return seen

    def discipline_totals(self) -> Dict[str, float]:
        totals: Dict[str, float] = {}
        for row in self.rows:
            totals[row.discipline] = totals.get(row.discipline, 0.0) + row.value
        return totals

    def cost_type_totals(self, measure: str = "value") -> Dict[str, float]:
        """Sum of *measure* ('value' or 'manhours') per cost type."""
        totals: Dict[str, float] = {}
        for row in self.rows:
            amount = row.value if measure == "value" else (row.manhours or 0.0)
            totals[row.cost_type] = totals.get(row.cost_type, 0.0) + amount
        return totals


class Aggregator:
    """Accumulates candidates for one sheet into breakdown rows and totals."""

    def __init__(self, classifier: Optional[CostTypeClassifier] = None):
        self.classifier = classifier or CostTypeClassifier()
        self._rows: Dict[Tuple[str, str], AggregatedBreakdownRow] = {}
        self._candidate_count = 0

    def add(self, item: CandidateLineItem) -> AggregatedBreakdownRow:
        self._candidate_count += 1
        key = (item.discipline, item.cost_type)
        row = self._rows.get(key)
        if row is None:
            row = AggregatedBreakdownRow(
                discipline=item.discipline,
                cost_type=item.cost_type,
                manhours=item.manhours,
                value=item.value,
                category=self.classifier.classify(item.cost_type),
                source_rows=[item.source_row],
            )
            self._rows[key] = row
        else:
            row.merge(item)
            logger.debug("Merged %s/%s from row %d", item.discipline,
                         item.cost_type, item.source_row)
        return row

    def result(self, rel_tolerance: float = 1e-6) -> AggregationResult:
        """Build the totals and check them against the breakdown rows.

        Raises:
            AggregationInvariantError: if category totals and row values
                disagree beyond *rel_tolerance*
        """
        rows = list(self._rows.values())
        totals = BudgetTotals(other_descriptions=list(self.classifier.other_descriptions))
        for row in rows:
            totals.add(row.category, row.value)

        result = AggregationResult(rows=rows, totals=totals,
                                   candidate_count=self._candidate_count)
        check_invariant(result, rel_tolerance)
        return result


def check_invariant(result: AggregationResult, rel_tolerance: float = 1e-6) -> None:
    """Category totals must equal the sum of breakdown row values."""
    category_sum = result.totals.total
    row_sum = result.row_sum()
    scale = max(abs(category_sum), abs(row_sum), 1.0)
    if abs(category_sum - row_sum) > rel_tolerance * scale:
        raise AggregationInvariantError(category_sum, row_sum)


def aggregate(candidates: Iterable[CandidateLineItem],
              classifier: Optional[CostTypeClassifier] = None,
              rel_tolerance: float = 1e-6,
              report: Optional[StepReport] = None) -> AggregationResult:
    """Aggregate an ordered candidate stream for one sheet."""
    aggregator = Aggregator(classifier)
    for item in candidates:
        aggregator.add(item)
    result = aggregator.result(rel_tolerance)
    if report:
        report.items_processed += result.candidate_count
        report.metrics["breakdown_rows"] = report.metrics.get("breakdown_rows", 0) + len(result.rows)
    logger.info("Aggregated %d candidates into %d breakdown rows (total %.2f)",
                result.candidate_count, len(result.rows), result.total_budget)
    return result
