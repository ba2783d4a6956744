"""Spreadsheet grid backing the row store.

The workbook is an openpyxl ``Workbook``; each logical table lives on one
worksheet whose first row holds the header. Rows are addressed 1-based, as
in the spreadsheet itself. Only the narrow set of range operations the row
store needs is exposed here.
"""

from __future__ import annotations

import logging
import os

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from openpyxl.worksheet.worksheet import Worksheet

logger = logging.getLogger(__name__)

PLACEHOLDER_SHEET_NAMES = ("Sheet", "Sheet1")
TEXT_FORMAT_ROWS = 1000


def is_empty_cell(value: object) -> bool:
    return value is None or value == ""


def _store_value(value: object) -> object:
    if value == "":
        return None
    return value


class SheetGrid:
    def __init__(self, workbook: "GridWorkbook", worksheet: Worksheet) -> None:
        self.workbook = workbook
        self.worksheet = worksheet

    @property
    def name(self) -> str:
        return self.worksheet.title

    def header(self) -> list[str]:
        """Header cells from column 1 up to the first empty cell."""
        names: list[str] = []
        for (value,) in self.worksheet.iter_cols(min_row=1, max_row=1, values_only=True):
            if is_empty_cell(value):
                break
            names.append(str(value))
        return names

    def last_row(self) -> int:
        last = 0
        for index, values in enumerate(self.worksheet.iter_rows(values_only=True), start=1):
            if any(not is_empty_cell(value) for value in values):
                last = index
        return last

    def last_column(self) -> int:
        last = 0
        for values in self.worksheet.iter_rows(values_only=True):
            for index, value in enumerate(values, start=1):
                if index > last and not is_empty_cell(value):
                    last = index
        return last

    def data_rows(self) -> list[list[object]]:
        """Rows 2..last, padded to the width of the data range."""
        last_row = self.last_row()
        width = self.last_column()
        if last_row < 2 or width == 0:
            return []
        rows = []
        for values in self.worksheet.iter_rows(min_row=2, max_row=last_row, max_col=width, values_only=True):
            row = list(values)
            row.extend([None] * (width - len(row)))
            rows.append(row)
        return rows

    def set_cell(self, row: int, column: int, value: object) -> None:
        cell = self.worksheet.cell(row=row, column=column)
        cell.value = _store_value(value)
        if isinstance(cell.value, str) and cell.value.startswith("="):
            # keep user text from being interpreted as a formula
            cell.data_type = "s"
        self.workbook.dirty = True

    def write_row(self, row: int, values: list[object]) -> None:
        for column, value in enumerate(values, start=1):
            self.set_cell(row, column, value)

    def write_rows(self, start_row: int, rows: list[list[object]]) -> None:
        for offset, values in enumerate(rows):
            self.write_row(start_row + offset, values)

    def append_rows(self, rows: list[list[object]]) -> int:
        """Write rows below the data range and return the first row index used."""
        start_row = max(self.last_row(), 1) + 1
        self.write_rows(start_row, rows)
        return start_row

    def delete_row(self, row: int) -> None:
        self.worksheet.delete_rows(row, 1)
        self.workbook.dirty = True

    def clear_data(self) -> None:
        last_row = self.last_row()
        if last_row < 2:
            return
        for cells in self.worksheet.iter_rows(min_row=2, max_row=last_row):
            for cell in cells:
                cell.value = None
        self.workbook.dirty = True

    def clear_columns(self, first_column: int, last_column: int) -> None:
        last_row = self.last_row()
        if last_row == 0 or last_column < first_column:
            return
        for cells in self.worksheet.iter_rows(
            min_row=1, max_row=last_row, min_col=first_column, max_col=last_column
        ):
            for cell in cells:
                cell.value = None
        self.workbook.dirty = True

    def style_header(self, width: int) -> None:
        for column in range(1, width + 1):
            self.worksheet.cell(row=1, column=column).font = Font(bold=True)
        self.worksheet.freeze_panes = "A2"
        self.workbook.dirty = True

    def header_is_styled(self) -> bool:
        first = self.worksheet.cell(row=1, column=1)
        return bool(first.font and first.font.bold) and self.worksheet.freeze_panes == "A2"

    def set_text_columns(self, columns: list[int]) -> None:
        last = max(self.last_row(), TEXT_FORMAT_ROWS)
        for column in columns:
            for row in range(2, last + 1):
                self.worksheet.cell(row=row, column=column).number_format = "@"
        self.workbook.dirty = True


class GridWorkbook:
    def __init__(self, book: Workbook | None = None) -> None:
        self.book = book if book is not None else Workbook()
        self.dirty = False

    def sheet_names(self) -> list[str]:
        return list(self.book.sheetnames)

    def has_sheet(self, name: str) -> bool:
        return name in self.book.sheetnames

    def sheet(self, name: str) -> SheetGrid:
        if name not in self.book.sheetnames:
            self.book.create_sheet(title=name)
            self.dirty = True
            logger.info("sheet_created", extra={"sheet": name})
        return SheetGrid(self, self.book[name])

    def remove_placeholder_sheets(self) -> list[str]:
        removed = []
        for name in PLACEHOLDER_SHEET_NAMES:
            if name not in self.book.sheetnames or len(self.book.sheetnames) < 2:
                continue
            if SheetGrid(self, self.book[name]).last_row() > 0:
                continue
            self.book.remove(self.book[name])
            removed.append(name)
            self.dirty = True
        return removed


class WorkbookStore:
    """Loads, caches and saves the backing workbook.

    With an empty ``path`` the workbook only lives in memory.
    """

    def __init__(self, path: str | None) -> None:
        self.path = path or None
        self._cached: GridWorkbook | None = None

    def open(self) -> GridWorkbook:
        if self._cached is None:
            self._cached = self._load()
        return self._cached

    def _load(self) -> GridWorkbook:
        if self.path and os.path.exists(self.path):
            return GridWorkbook(load_workbook(self.path))
        return GridWorkbook()

    def commit(self, workbook: GridWorkbook) -> None:
        if not workbook.dirty:
            return
        if self.path:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            root, ext = os.path.splitext(self.path)
            tmp_path = f"{root}.tmp{ext or '.xlsx'}"
            workbook.book.save(tmp_path)
            os.replace(tmp_path, self.path)
        workbook.dirty = False

    def discard(self) -> None:
        if self.path:
            self._cached = None
