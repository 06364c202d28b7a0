"""Configuration management utilities for the budget import tools.

Provides:
- Static lookup tables (cost type -> category, discipline -> parent)
- Config base class with JSON round-tripping
- ValidationConfig: tolerances and expected-ratio bands for the
  cross-sheet validator, tunable per customer dataset
- ImportConfig: environment-driven settings for the CLI
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


# ── Cost-type classification table ───────────────────────────────────────────
# Exact-match lookup on the normalized (upper-cased) cost-type label.  Labels
# not listed here fall into "other"; the classifier records them for review.

COST_TYPE_CATEGORIES: Dict[str, str] = {
    # Labor
    "DIRECT LABOR": "labor",
    "INDIRECT LABOR": "labor",
    "TAXES & INSURANCE": "labor",
    "PERDIEM": "labor",
    "PER DIEM": "labor",
    # Materials
    "MATERIALS": "materials",
    # Equipment
    "EQUIPMENT": "equipment",
    # Subcontracts
    "SUBCONTRACTS": "subcontracts",
    # Small tools & consumables
    "SMALL TOOLS & CONSUMABLES": "small_tools_consumables",
    # Other (listed explicitly so they are never mistaken for unmapped labels)
    "ADD ONS": "other",
    "RISK": "other",
}

# ── Discipline hierarchy ─────────────────────────────────────────────────────
# Child discipline -> parent WBS group.  Disciplines absent from this table
# (FABRICATION, MOBILIZATION, CLEAN UP, GENERAL STAFFING, ...) are standalone
# top-level nodes.  "<NAME> DEMO" variants follow their base discipline.

DISCIPLINE_PARENTS: Dict[str, str] = {
    # Mechanical group
    "PIPING": "MECHANICAL",
    "STEEL": "MECHANICAL",
    "EQUIPMENT": "MECHANICAL",
    "CRANE SUPPORT": "MECHANICAL",
    # I&E group
    "INSTRUMENTATION": "I&E",
    "ELECTRICAL": "I&E",
    "HYDRO-TESTING": "I&E",
    # Civil group
    "CIVIL": "CIVIL",
    "CONCRETE": "CIVIL",
    "GROUNDING": "CIVIL",
    "GROUTING": "CIVIL",
    "BUILDING-REMODELING": "CIVIL",
    "BUILDING REMODELING": "CIVIL",
    "CIVIL - GROUNDING": "CIVIL",
}

# Parent groups whose own name may appear as a demo discipline ("I&E DEMO")
PARENT_GROUPS = frozenset({"MECHANICAL", "I&E", "CIVIL"})

# Equipment rows attributed to these labels are shared, project-wide equipment
SHARED_EQUIPMENT_DISCIPLINES = frozenset({"", "GENERAL"})

# Discipline that carries project-wide indirect staffing on the summary sheet
SHARED_STAFFING_DISCIPLINE = "GENERAL STAFFING"

DEFAULT_SUMMARY_SHEET = "BUDGETS"


class Config:
    """Base configuration class for organizing application settings."""

    def __init__(self):
        """Initialize configuration with default values."""
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary.

        Returns:
            Dictionary of all config attributes
        """
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            Config instance with values from dictionary
        """
        config = cls()
        for key, value in data.items():
            setattr(config, key, value)
        return config

    def save_json(self, path: Path) -> None:
        """Save configuration to JSON file.

        Args:
            path: Path to save configuration file
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

    @classmethod
    def load_json(cls, path: Path) -> "Config":
        """Load configuration from JSON file.

        Args:
            path: Path to configuration file

        Returns:
            Config instance loaded from file

        Raises:
            FileNotFoundError: If file doesn't exist
            json.JSONDecodeError: If file is not valid JSON
        """
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)


class ValidationConfig(Config):
    """Tolerances and expected-ratio bands for cross-sheet validation.

    The ratio bands are empirical observations from vendor workbooks, not
    contractual values.  Override them per customer with a JSON file:

        {"ratio_bands": {"STAFF": [0.05, 0.25]}, "rel_tolerance": 0.01}

    Keys given in the file replace the defaults; ratio_bands entries are
    merged so a file can tune one sheet without restating the others.
    """

    DEFAULT_RATIO_BANDS: Dict[str, Tuple[float, float]] = {
        # STAFF is a slice of the indirect-labor total
        "STAFF": (0.10, 0.20),
        # CONSTRUCTABILITY is the full estimate; BUDGETS holds a subset of it
        "CONSTRUCTABILITY": (20.0, 40.0),
        # Discipline equipment never exceeds the summary equipment total
        "DISC. EQUIPMENT": (0.0, 1.0),
    }

    def __init__(self):
        """Initialize validation configuration."""
        super().__init__()
        self.abs_tolerance = 0.01
        self.rel_tolerance = 0.005
        self.invariant_rel_tolerance = 1e-6
        self.ratio_bands: Dict[str, Tuple[float, float]] = dict(self.DEFAULT_RATIO_BANDS)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationConfig":
        config = cls()
        for key, value in data.items():
            if key == "ratio_bands":
                for sheet, band in value.items():
                    low, high = band
                    config.ratio_bands[sheet] = (float(low), float(high))
            else:
                setattr(config, key, value)
        return config

    def ratio_band(self, sheet_name: str) -> Optional[Tuple[float, float]]:
        """Return the (low, high) band for a sheet, or None if unconfigured."""
        return self.ratio_bands.get(sheet_name)

    def exceeds_tolerance(self, budget_value: float, detail_value: float) -> bool:
        """True when two figures differ beyond BOTH the absolute and relative bands."""
        diff = abs(budget_value - detail_value)
        return diff > self.abs_tolerance and diff > self.rel_tolerance * abs(budget_value)


class ImportConfig(Config):
    """Application-level configuration loaded from environment variables.

    All env vars have defaults so the CLI works without any configuration.

    Environment variables:
        BUDGET_IMPORT_DB_PATH: SQLite database path (default: budget_import.sqlite)
        BUDGET_IMPORT_LOG_LEVEL: Root log level (default: INFO)
        BUDGET_IMPORT_LOG_DIR: Directory for per-step log files (default: off)
        BUDGET_IMPORT_VALIDATION_CONFIG: JSON file overriding ValidationConfig
        BUDGET_IMPORT_SUMMARY_SHEET: Name of the summary sheet (default: BUDGETS)
    """

    def __init__(self) -> None:
        super().__init__()
        self.db_path = Path(os.getenv("BUDGET_IMPORT_DB_PATH", "budget_import.sqlite"))
        self.log_level = os.getenv("BUDGET_IMPORT_LOG_LEVEL", "INFO").upper()
        raw_log_dir = os.getenv("BUDGET_IMPORT_LOG_DIR", "")
        self.log_dir: Optional[Path] = Path(raw_log_dir) if raw_log_dir else None
        raw_validation = os.getenv("BUDGET_IMPORT_VALIDATION_CONFIG", "")
        self.validation_config_path: Optional[Path] = (
            Path(raw_validation) if raw_validation else None
        )
        self.summary_sheet = os.getenv("BUDGET_IMPORT_SUMMARY_SHEET", DEFAULT_SUMMARY_SHEET)

    @classmethod
    def from_env(cls) -> "ImportConfig":
        """Create an ImportConfig instance populated from environment variables."""
        return cls()

    def load_validation_config(self) -> ValidationConfig:
        """Return the ValidationConfig, applying the JSON override if one is set."""
        if self.validation_config_path is None:
            return ValidationConfig()
        return ValidationConfig.load_json(self.validation_config_path)
