"""Workbook Reader: opens a budget workbook and exposes sheets as cell grids.

Merged ranges are resolved by repeating the anchor cell's value into every
cell the range covers, so downstream code never has to know which cells were
merged in the vendor's layout.

The workbook is opened with data_only=True (cached formula results rather
than formula text).  read_only mode is not used because it does not expose
merged_cells.
"""

import io
import logging
import zipfile
from pathlib import Path
from typing import Any, List, Optional, Union

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from budget_import.errors import MissingSheetError, WorkbookReadError
from budget_utils.patterns import WORKBOOK_EXTENSIONS

logger = logging.getLogger(__name__)

Grid = List[List[Any]]


class BudgetWorkbook:
    """A loaded workbook: sheet lookup plus grid extraction."""

    def __init__(self, workbook: openpyxl.Workbook, filename: str = ""):
        self._wb = workbook
        self.filename = filename

    @property
    def sheet_names(self) -> List[str]:
        return list(self._wb.sheetnames)

    def resolve_sheet_name(self, name: str) -> Optional[str]:
        """Return the workbook's own spelling of *name*, or None if absent.

        Exact match wins; otherwise the first case-insensitive match.
        """
        if name in self._wb.sheetnames:
            return name
        wanted = name.strip().upper()
        for candidate in self._wb.sheetnames:
            if candidate.strip().upper() == wanted:
                return candidate
        return None

    def has_sheet(self, name: str) -> bool:
        return self.resolve_sheet_name(name) is not None

    def read_grid(self, name: str) -> Grid:
        """Return the used range of sheet *name* as a rectangular grid.

        Raises:
            MissingSheetError: if the sheet is not in the workbook
        """
        actual = self.resolve_sheet_name(name)
        if actual is None:
            raise MissingSheetError(name, self.sheet_names)
        ws = self._wb[actual]

        max_row = ws.max_row or 0
        max_col = ws.max_column or 0
        grid: Grid = [
            list(row)
            for row in ws.iter_rows(min_row=1, max_row=max_row,
                                    min_col=1, max_col=max_col,
                                    values_only=True)
        ]

        for merged in ws.merged_cells.ranges:
            anchor = ws.cell(row=merged.min_row, column=merged.min_col).value
            for r in range(merged.min_row, min(merged.max_row, max_row) + 1):
                for c in range(merged.min_col, min(merged.max_col, max_col) + 1):
                    grid[r - 1][c - 1] = anchor

        logger.debug("Read sheet %s: %d rows x %d columns, %d merged ranges",
                     actual, max_row, max_col, len(ws.merged_cells.ranges))
        return grid

    def close(self) -> None:
        self._wb.close()


def open_workbook(payload: Union[bytes, bytearray, str, Path, io.IOBase],
                  filename: str = "") -> BudgetWorkbook:
    """Open a workbook from raw bytes, a path, or a binary file object.

    Raises:
        WorkbookReadError: if the payload is not a readable .xlsx/.xlsm workbook
    """
    if isinstance(payload, (bytes, bytearray)):
        source = io.BytesIO(payload)
    elif isinstance(payload, (str, Path)):
        source = str(payload)
        filename = filename or Path(payload).name
    else:
        source = payload

    if filename and not WORKBOOK_EXTENSIONS.search(filename):
        logger.warning("%s does not have an .xlsx/.xlsm extension; trying anyway", filename)

    try:
        wb = openpyxl.load_workbook(source, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as e:
        raise WorkbookReadError(f"Could not read workbook {filename or '<payload>'}: {e}") from e

    logger.info("Opened workbook %s with sheets: %s",
                filename or "<payload>", ", ".join(wb.sheetnames))
    return BudgetWorkbook(wb, filename)
