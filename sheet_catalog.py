"""
Sheet Catalog

Static catalog of every sheet the budget importer understands, documenting the
fixed column layout and reconciliation semantics of each.  This module is the
single source of truth for how a vendor budget workbook is structured: which
sheet is authoritative, which columns hold what, and how each detail sheet is
expected to relate to the summary sheet.

Columns are addressed by 0-based position, never by header text; vendor
header wording drifts between workbook versions, positions do not.

Entry keys:
    role               summary | input | detail
    category           broad cost category the sheet describes
    subcategory        finer label, or None
    description        human-readable note
    column_mappings    field name -> 0-based column index
    header_rows        rows to skip before data starts
    value_fields       detail sheets: fields summed into the row value
    summary_cost_type  detail sheets: summary cost type the sheet reconciles
                       against (None = every cost type of the discipline)
    mode               equality | ratio | contribution
    measure            value | manhours
    scope              discipline | sheet_total | discipline_total
    default_discipline discipline used when the sheet has no discipline column
                       (or, with forward_fill off, when the cell is blank)
    forward_fill       carry the last discipline down through blank cells
    exclude_shared     set rows with a shared equipment discipline aside
"""

from budget_utils.config import DEFAULT_SUMMARY_SHEET, SHARED_STAFFING_DISCIPLINE

SUMMARY_SHEET = DEFAULT_SUMMARY_SHEET

INPUT_SHEET_NAMES = ("INPUT", "INPUTS")

SHEET_CATALOG = {
    "BUDGETS": {
        "role": "summary",
        "category": "SUMMARY",
        "subcategory": None,
        "description": "Authoritative per-discipline, per-cost-type budget",
        "column_mappings": {
            "discipline_number": 0,
            "discipline": 1,
            "cost_code": 2,
            "description": 3,
            "manhours": 4,
            "value": 5,
            "percent_of_discipline": 6,
            "rate_per_manhour": 7,
            "labor_rate": 8,
            "burdened_rate": 9,
        },
        "header_rows": 1,
    },

    "INPUT": {
        "role": "input",
        "category": "STRUCTURE",
        "subcategory": None,
        "description": "Discipline list with include flags (columns AG / AH)",
        "column_mappings": {
            "include_flag": 32,
            "discipline": 33,
        },
        "header_rows": 0,
    },

    "DIRECTS": {
        "role": "detail",
        "category": "LABOR",
        "subcategory": "DIRECT",
        "description": "Direct craft labor by discipline",
        "column_mappings": {
            "wbs_code": 0,
            "discipline": 1,
            "description": 2,
            "crew_size": 3,
            "duration": 4,
            "manhours": 5,
            "rate": 6,
            "total_cost": 7,
        },
        "header_rows": 1,
        "value_fields": ["total_cost"],
        "summary_cost_type": "DIRECT LABOR",
        "mode": "equality",
        "measure": "manhours",
        "scope": "discipline",
        "default_discipline": None,
        "forward_fill": True,
    },

    "INDIRECTS": {
        "role": "detail",
        "category": "LABOR",
        "subcategory": "INDIRECT",
        "description": "Indirect labor; part of the GENERAL STAFFING indirect budget",
        "column_mappings": {
            "wbs_code": 0,
            "description": 1,
            "quantity": 2,
            "duration": 3,
            "rate": 4,
            "total_cost": 5,
        },
        "header_rows": 1,
        "value_fields": ["total_cost"],
        "summary_cost_type": "INDIRECT LABOR",
        "mode": "contribution",
        "measure": "value",
        "scope": "discipline",
        "default_discipline": SHARED_STAFFING_DISCIPLINE,
        "forward_fill": True,
    },

    "STAFF": {
        "role": "detail",
        "category": "LABOR",
        "subcategory": "STAFF",
        "description": "Supervision and staff positions; a slice of indirect labor",
        "column_mappings": {
            "wbs_code": 0,
            "description": 1,
            "quantity": 2,
            "duration": 3,
            "monthly_rate": 4,
            "total_cost": 5,
        },
        "header_rows": 1,
        "value_fields": ["total_cost"],
        "summary_cost_type": "INDIRECT LABOR",
        "mode": "ratio",
        "measure": "value",
        "scope": "sheet_total",
        "default_discipline": SHARED_STAFFING_DISCIPLINE,
        "forward_fill": True,
    },

    "MATERIALS": {
        "role": "detail",
        "category": "MATERIAL",
        "subcategory": None,
        "description": "Material takeoff by discipline",
        "column_mappings": {
            "wbs_code": 0,
            "discipline": 1,
            "cost_code": 2,
            "description": 3,
            "quantity": 4,
            "unit": 5,
            "total_cost": 6,
        },
        "header_rows": 1,
        "value_fields": ["total_cost"],
        "summary_cost_type": "MATERIALS",
        "mode": "equality",
        "measure": "value",
        "scope": "discipline",
        "default_discipline": None,
        "forward_fill": True,
    },

    "GENERAL EQUIPMENT": {
        "role": "detail",
        "category": "EQUIPMENT",
        "subcategory": None,
        "description": "Equipment rental; blank or GENERAL discipline rows are shared",
        "column_mappings": {
            "wbs_code": 0,
            "discipline": 1,
            "cost_code": 2,
            "description": 3,
            "quantity": 4,
            "duration": 5,
            "rate": 6,
            "equipment_cost": 16,
            "fog_cost": 17,
            "maintenance_cost": 18,
        },
        "header_rows": 1,
        "value_fields": ["equipment_cost", "fog_cost", "maintenance_cost"],
        "summary_cost_type": "EQUIPMENT",
        "mode": "equality",
        "measure": "value",
        "scope": "discipline",
        "default_discipline": "GENERAL",
        "forward_fill": False,
        "exclude_shared": True,
    },

    "DISC. EQUIPMENT": {
        "role": "detail",
        "category": "EQUIPMENT",
        "subcategory": "DISCIPLINE",
        "description": "Discipline-specific equipment; a subset of the equipment budget",
        "column_mappings": {
            "wbs_code": 0,
            "discipline": 1,
            "cost_code": 2,
            "description": 3,
            "quantity": 4,
            "duration": 5,
            "rate": 6,
            "equipment_cost": 16,
            "fog_cost": 17,
            "maintenance_cost": 18,
        },
        "header_rows": 1,
        "value_fields": ["equipment_cost", "fog_cost", "maintenance_cost"],
        "summary_cost_type": "EQUIPMENT",
        "mode": "ratio",
        "measure": "value",
        "scope": "sheet_total",
        "default_discipline": None,
        "forward_fill": True,
    },

    "SUBS": {
        "role": "detail",
        "category": "SUBCONTRACT",
        "subcategory": None,
        "description": "Subcontractor quotes by discipline",
        "column_mappings": {
            "wbs_code": 0,
            "discipline": 1,
            "description": 2,
            "contractor": 3,
            "lump_sum": 4,
            "unit_price": 5,
            "total_cost": 6,
        },
        "header_rows": 1,
        "value_fields": ["total_cost"],
        "summary_cost_type": "SUBCONTRACTS",
        "mode": "equality",
        "measure": "value",
        "scope": "discipline",
        "default_discipline": None,
        "forward_fill": True,
    },

    "SCAFFOLDING": {
        "role": "detail",
        "category": "SUBCONTRACT",
        "subcategory": "SCAFFOLDING",
        "description": "Scaffolding subcontract; budgeted under the SCAFFOLDING discipline",
        "column_mappings": {
            "wbs_code": 0,
            "description": 1,
            "area": 2,
            "duration": 3,
            "unit_rate": 4,
            "total_cost": 5,
            "contractor": 6,
        },
        "header_rows": 1,
        "value_fields": ["total_cost"],
        "summary_cost_type": "SUBCONTRACTS",
        "mode": "equality",
        "measure": "value",
        "scope": "discipline",
        "default_discipline": "SCAFFOLDING",
        "forward_fill": True,
    },

    "CONSTRUCTABILITY": {
        "role": "detail",
        "category": "OTHER",
        "subcategory": "RISK",
        "description": "Full constructability estimate; the summary budgets only a subset",
        "column_mappings": {
            "wbs_code": 0,
            "description": 1,
            "mitigation": 2,
            "cost_impact": 3,
            "total_cost": 4,
        },
        "header_rows": 1,
        "value_fields": ["total_cost"],
        "summary_cost_type": None,
        "mode": "ratio",
        "measure": "value",
        "scope": "discipline_total",
        "default_discipline": "CONSTRUCTABILITY",
        "forward_fill": True,
    },
}


# --------------------------------------------------------------------------
# Helper Functions
# --------------------------------------------------------------------------

def get_sheet_spec(sheet_name: str):
    """
    Retrieve the catalog entry for a sheet.

    Lookup is by exact name first, then case-insensitively, so a workbook
    saved with "Materials" still maps to the MATERIALS entry.  INPUTS is an
    alias of INPUT.

    Args:
        sheet_name: Sheet name as it appears in the workbook

    Returns:
        Catalog entry dict, or None for sheets the importer ignores.
    """
    if sheet_name in SHEET_CATALOG:
        return SHEET_CATALOG[sheet_name]
    key = sheet_name.strip().upper()
    if key in INPUT_SHEET_NAMES:
        return SHEET_CATALOG["INPUT"]
    return SHEET_CATALOG.get(key)


def detail_sheet_names():
    """
    Return the names of all detail sheets, in catalog order.

    Returns:
        List of sheet names whose role is 'detail'.
    """
    return [name for name, spec in SHEET_CATALOG.items() if spec["role"] == "detail"]


def find_input_sheet(sheet_names):
    """
    Locate the INPUT/INPUTS structure sheet among a workbook's sheet names.

    Args:
        sheet_names: Iterable of sheet names present in the workbook

    Returns:
        The matching sheet name as it appears in the workbook, or None.
    """
    for name in sheet_names:
        if name.strip().upper() in INPUT_SHEET_NAMES:
            return name
    return None


def describe_catalog():
    """
    Return a human-readable summary of all sheets in the catalog.

    Returns:
        Formatted string with sheet names, roles, reconciliation rules and
        column counts.
    """
    lines = [
        "=" * 80,
        "BUDGET WORKBOOK SHEET CATALOG",
        "=" * 80,
        "",
    ]

    for name, spec in SHEET_CATALOG.items():
        col_count = len(spec["column_mappings"])
        category = spec["category"]
        if spec.get("subcategory"):
            category = f"{category}/{spec['subcategory']}"
        lines.append(f"{name:18s} | {spec['role']:7s} | {category:24s} | {col_count} columns")
        lines.append(f"                     {spec['description']}")
        if spec["role"] == "detail":
            target = spec["summary_cost_type"] or "all cost types"
            lines.append(
                f"                     {spec['mode']} on {spec['measure']} "
                f"vs {target} ({spec['scope'].replace('_', ' ')})"
            )
        lines.append("")

    return "\n".join(lines)
