"""Validation finding containers for the budget import tools.

Provides:
- ValidationFinding: one immutable cross-sheet observation
- ValidationResult: collects findings, counts them per severity and renders
  the plain-text reconciliation report
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from budget_utils.strings import format_currency

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"
SEVERITY_INFO = "info"

SEVERITIES = (SEVERITY_ERROR, SEVERITY_WARNING, SEVERITY_INFO)


@dataclass(frozen=True)
class ValidationFinding:
    """A single cross-sheet observation.  Never mutated after creation."""

    sheet: str
    severity: str          # 'error', 'warning' or 'info'
    message: str
    budget_value: Optional[float] = None
    detail_value: Optional[float] = None
    discipline: Optional[str] = None
    measure: str = "value"  # 'value' (currency) or 'manhours'

    def __post_init__(self):
        if self.severity not in SEVERITIES:
            raise ValueError(f"Unknown severity: {self.severity!r}")

    @property
    def difference(self) -> Optional[float]:
        """detail - budget, when both figures are present."""
        if self.budget_value is None or self.detail_value is None:
            return None
        return self.detail_value - self.budget_value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        d: Dict[str, Any] = {
            "sheet": self.sheet,
            "severity": self.severity,
            "message": self.message,
            "budget_value": self.budget_value,
            "detail_value": self.detail_value,
        }
        if self.discipline is not None:
            d["discipline"] = self.discipline
        if self.measure != "value":
            d["measure"] = self.measure
        return d

    def format_amount(self, amount: float) -> str:
        if self.measure == "manhours":
            return f"{amount:,.2f} mh"
        return format_currency(amount)


class ValidationResult:
    """Collects every finding of one validation run.

    Findings are kept in the order they were produced; none are ever dropped.
    """

    def __init__(self):
        """Initialize empty validation result."""
        self.findings: List[ValidationFinding] = []
        self.checked_sheets: List[str] = []

    def add(self, sheet: str, severity: str, message: str,
            budget_value: Optional[float] = None,
            detail_value: Optional[float] = None,
            discipline: Optional[str] = None,
            measure: str = "value") -> ValidationFinding:
        """Create a finding, record it and return it.

        Args:
            sheet: Sheet the finding is about
            severity: 'error', 'warning' or 'info'
            message: Human-readable description
            budget_value: Figure taken from the summary sheet, if any
            detail_value: Figure recomputed from the detail sheet, if any
            discipline: Discipline the comparison was made for, if any
            measure: 'value' for currency figures, 'manhours' for hours
        """
        finding = ValidationFinding(sheet, severity, message,
                                    budget_value, detail_value, discipline, measure)
        self.findings.append(finding)
        return finding

    def mark_sheet_checked(self, sheet: str) -> None:
        if sheet not in self.checked_sheets:
            self.checked_sheets.append(sheet)

    def get_findings_by_severity(self, severity: str) -> List[ValidationFinding]:
        """Get all findings of a specific severity.

        Args:
            severity: 'error', 'warning', or 'info'

        Returns:
            List of findings matching the severity
        """
        return [f for f in self.findings if f.severity == severity]

    def get_findings_for_sheet(self, sheet: str) -> List[ValidationFinding]:
        return [f for f in self.findings if f.sheet == sheet]

    def error_count(self) -> int:
        """Get total number of error-level findings."""
        return len(self.get_findings_by_severity(SEVERITY_ERROR))

    def warning_count(self) -> int:
        """Get total number of warning-level findings."""
        return len(self.get_findings_by_severity(SEVERITY_WARNING))

    def info_count(self) -> int:
        """Get total number of info-level findings."""
        return len(self.get_findings_by_severity(SEVERITY_INFO))

    def is_valid(self) -> bool:
        """Check if validation passed (no errors)."""
        return self.error_count() == 0

    def summary_text(self) -> str:
        """Generate human-readable validation summary."""
        lines = []
        lines.append("Validation Summary:")
        lines.append(f"  Sheets Checked: {len(self.checked_sheets)}")
        lines.append(f"  Findings: {len(self.findings)}")
        lines.append(f"    - Errors: {self.error_count()}")
        lines.append(f"    - Warnings: {self.warning_count()}")
        lines.append(f"    - Info: {self.info_count()}")
        return "\n".join(lines)

    def generate_report(self) -> str:
        """Render the reconciliation report, grouped by sheet.

        Sheets appear in the order their first finding was produced.
        """
        lines = ["=" * 60, "  Budget Reconciliation Report", "=" * 60, ""]
        if not self.findings:
            lines.append("  All detail sheets reconcile with the summary sheet.")
            lines.append("")

        sheets: List[str] = []
        for finding in self.findings:
            if finding.sheet not in sheets:
                sheets.append(finding.sheet)

        for sheet in sheets:
            lines.append(f"{sheet}:")
            for finding in self.get_findings_for_sheet(sheet):
                lines.append(f"  [{finding.severity.upper():7s}] {finding.message}")
                if finding.budget_value is not None:
                    lines.append(f"            Budget: {finding.format_amount(finding.budget_value)}")
                if finding.detail_value is not None:
                    lines.append(f"            Detail: {finding.format_amount(finding.detail_value)}")
                if finding.difference is not None:
                    lines.append(f"            Difference: {finding.format_amount(finding.difference)}")
            lines.append("")

        lines.append(self.summary_text())
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "checked_sheets": self.checked_sheets,
            "findings": [f.to_dict() for f in self.findings],
            "summary": {
                "findings": len(self.findings),
                "errors": self.error_count(),
                "warnings": self.warning_count(),
                "info": self.info_count(),
                "is_valid": self.is_valid(),
            },
        }
