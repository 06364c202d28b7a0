"""
Pydantic models for the import result contract.

ImportResult is the only thing callers of the import engine see.  Optional
fields default to None or empty so that a failed persistence step still
yields a complete, valid result.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, model_validator


class ImportErrorEntry(BaseModel):
    """One row-level error.  row is 0 when the error is not tied to a row."""
    row: int = Field(..., ge=0, description="1-based spreadsheet row, or 0", examples=[14])
    message: str = Field(..., description="What went wrong", examples=["Row 14: Unexpected date in value cell"])
    data: Any = Field(None, description="Raw row snapshot, when available")


class BudgetTotalsOut(BaseModel):
    """Category totals of the summary sheet."""
    labor: float = 0.0
    materials: float = 0.0
    equipment: float = 0.0
    subcontracts: float = 0.0
    small_tools_consumables: float = 0.0
    other: float = 0.0


class FindingOut(BaseModel):
    """A cross-sheet validation finding."""
    sheet: str
    severity: str = Field(..., description="error | warning | info")
    message: str
    budget_value: float | None = None
    detail_value: float | None = None
    discipline: str | None = None
    measure: str = "value"


class ImportResult(BaseModel):
    """Outcome of one workbook import."""
    success: bool = Field(..., description="True when at least one breakdown row was produced and saved")
    project_id: str = Field(..., examples=["b1f0c2d4"])
    total_budget: float = Field(0.0, description="Sum of every category total")
    breakdown_rows_created: int = Field(0, ge=0)
    budget_created: bool = False
    budget_updated: bool = False
    errors: list[ImportErrorEntry] = Field(default_factory=list)

    budget_totals: BudgetTotalsOut = Field(default_factory=BudgetTotalsOut)
    other_descriptions: list[str] = Field(default_factory=list,
                                          description="Cost-type labels classified as other")
    validation_findings: list[FindingOut] = Field(default_factory=list)
    wbs_structure: list[dict[str, Any]] = Field(default_factory=list)
    import_batch_id: str | None = None
    filename: str | None = None

    @model_validator(mode="after")
    def _created_xor_updated(self) -> "ImportResult":
        if self.budget_created and self.budget_updated:
            raise ValueError("budget_created and budget_updated are mutually exclusive")
        return self

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
