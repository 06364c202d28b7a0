"""Cost-Type Classifier: maps a cost-type label onto a canonical category.

Classification never fails.  Labels missing from the lookup table fall into
OTHER.  Every label that ends up in OTHER is recorded once, in first-seen
order, for operator review.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional

from budget_utils.config import COST_TYPE_CATEGORIES
from budget_utils.strings import normalize_label

logger = logging.getLogger(__name__)


class CanonicalCategory(str, Enum):
    LABOR = "labor"
    MATERIALS = "materials"
    EQUIPMENT = "equipment"
    SUBCONTRACTS = "subcontracts"
    SMALL_TOOLS_CONSUMABLES = "small_tools_consumables"
    OTHER = "other"


_LOOKUP: Dict[str, CanonicalCategory] = {
    label: CanonicalCategory(category)
    for label, category in COST_TYPE_CATEGORIES.items()
}


def lookup_category(cost_type: str) -> Optional[CanonicalCategory]:
    """Exact-match lookup; None when the label is not in the table."""
    return _LOOKUP.get(normalize_label(cost_type))


class CostTypeClassifier:
    """Classifies labels and remembers the unmapped ones in first-seen order."""

    def __init__(self):
        self.other_descriptions: List[str] = []
        self._seen_other = set()

    def classify(self, cost_type: str) -> CanonicalCategory:
        """Return the category; every label landing in OTHER is recorded once."""
        label = normalize_label(cost_type)
        category = _LOOKUP.get(label, CanonicalCategory.OTHER)
        if category is CanonicalCategory.OTHER and label not in self._seen_other:
            self._seen_other.add(label)
            self.other_descriptions.append(label)
            if label not in _LOOKUP:
                logger.info("Unmapped cost type %r classified as other", label)
        return category


def classify(cost_type: str) -> CanonicalCategory:
    """Stateless classification for callers that do not track unmapped labels."""
    return lookup_category(cost_type) or CanonicalCategory.OTHER
