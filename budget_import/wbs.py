"""WBS Structure Builder: groups disciplines into a two-level work breakdown.

Parent groups (MECHANICAL, I&E, CIVIL) collect their child disciplines,
including demo variants.  A discipline with no declared parent is its own
top-level node.  Codes are "NN" for top-level nodes and "NN.MM" for
children, numbered in first-seen order.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from budget_utils.config import DISCIPLINE_PARENTS, PARENT_GROUPS
from budget_utils.patterns import DEMO_DISCIPLINE, INCLUDED_FLAG
from budget_utils.strings import is_blank, normalize_label

logger = logging.getLogger(__name__)

INPUT_FLAG_COLUMN = 32          # AG
INPUT_DISCIPLINE_COLUMN = 33    # AH


@dataclass
class WbsNode:
    code: str
    description: str
    children: List["WbsNode"] = field(default_factory=list)
    is_demo: bool = False
    budget_total: float = 0.0
    discipline: Optional[str] = None    # None for synthetic parent groups

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "description": self.description,
            "discipline": self.discipline,
            "is_demo": self.is_demo,
            "budget_total": self.budget_total,
            "children": [c.to_dict() for c in self.children],
        }


def is_demo_discipline(discipline: str) -> bool:
    return bool(DEMO_DISCIPLINE.search(discipline))


def parent_for(discipline: str) -> Optional[str]:
    """Return the parent group of *discipline*, or None when it stands alone.

    Demo variants not listed explicitly follow their base discipline:
    "PIPING DEMO" -> MECHANICAL, "I&E DEMO" -> I&E.
    """
    label = normalize_label(discipline)
    if label in DISCIPLINE_PARENTS:
        return DISCIPLINE_PARENTS[label]
    if label in PARENT_GROUPS:
        return label
    if is_demo_discipline(label):
        base = normalize_label(DEMO_DISCIPLINE.sub(" ", label)).strip(" -")
        if base in DISCIPLINE_PARENTS:
            return DISCIPLINE_PARENTS[base]
        if base in PARENT_GROUPS:
            return base
    return None


def _flag_value(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, (int, float)):
        return int(raw) if raw in (0, 1) else None
    if isinstance(raw, str) and INCLUDED_FLAG.match(raw):
        return int(float(raw))
    return None


def extract_input_disciplines(grid: Sequence[Sequence[Any]]) -> List[str]:
    """Read the included-discipline list from the INPUT sheet grid.

    The list starts at the first row with a discipline name in column AH and
    a 0/1 flag in column AG, and ends at the first empty discipline cell
    after that.  Only disciplines flagged 1 are returned, upper-cased, in
    sheet order.
    """
    disciplines: List[str] = []
    started = False
    for row in grid:
        name = row[INPUT_DISCIPLINE_COLUMN] if len(row) > INPUT_DISCIPLINE_COLUMN else None
        flag = _flag_value(row[INPUT_FLAG_COLUMN]) if len(row) > INPUT_FLAG_COLUMN else None
        if not started:
            if is_blank(name) or flag is None:
                continue
            started = True
        elif is_blank(name):
            break
        label = normalize_label(name)
        if flag == 1 and label not in disciplines:
            disciplines.append(label)
    logger.info("INPUT sheet lists %d included disciplines", len(disciplines))
    return disciplines


def build_wbs(disciplines: Iterable[str],
              discipline_totals: Optional[Dict[str, float]] = None) -> List[WbsNode]:
    """Build the two-level WBS for *disciplines*.

    Args:
        disciplines: Distinct disciplines in first-seen order
        discipline_totals: Budget value per discipline; children roll up
            into their parent's budget_total

    Returns:
        Top-level nodes in first-seen order
    """
    totals = discipline_totals or {}
    roots: List[WbsNode] = []
    groups: Dict[str, WbsNode] = {}
    placed = set()

    for raw in disciplines:
        discipline = normalize_label(raw)
        if not discipline or discipline in placed:
            continue
        placed.add(discipline)
        amount = totals.get(discipline, 0.0)
        demo = is_demo_discipline(discipline)
        parent = parent_for(discipline)

        if parent is None:
            roots.append(WbsNode(
                code=f"{len(roots) + 1:02d}",
                description=discipline,
                is_demo=demo,
                budget_total=amount,
                discipline=discipline,
            ))
            continue

        group = groups.get(parent)
        if group is None:
            group = WbsNode(code=f"{len(roots) + 1:02d}", description=parent)
            groups[parent] = group
            roots.append(group)
        group.children.append(WbsNode(
            code=f"{group.code}.{len(group.children) + 1:02d}",
            description=discipline,
            is_demo=demo,
            budget_total=amount,
            discipline=discipline,
        ))
        group.budget_total += amount

    return roots


def flatten_wbs(nodes: Iterable[WbsNode]) -> List[Dict[str, Any]]:
    """Depth-first rows of (code, parent_code, level, description, ...)."""
    rows: List[Dict[str, Any]] = []

    def _walk(node: WbsNode, parent_code: Optional[str], level: int) -> None:
        rows.append({
            "code": node.code,
            "parent_code": parent_code,
            "level": level,
            "description": node.description,
            "is_demo": node.is_demo,
            "budget_total": node.budget_total,
        })
        for child in node.children:
            _walk(child, node.code, level + 1)

    for node in nodes:
        _walk(node, None, 1)
    return rows


def wbs_disciplines(input_disciplines: Sequence[str],
                    budget_disciplines: Sequence[str]) -> List[str]:
    """Disciplines for the WBS: the INPUT list first, then any budgeted extras."""
    ordered = [normalize_label(d) for d in input_disciplines]
    for discipline in budget_disciplines:
        if discipline not in ordered:
            if input_disciplines:
                logger.debug("Budgeted discipline %s is not in the INPUT list", discipline)
            ordered.append(discipline)
    return ordered
