from __future__ import annotations

import logging
from typing import Literal

from app.tbms.core.error_catalog import AppError, ErrorCatalog
from app.tbms.db.schema import TableSchema, get_schema
from app.tbms.db.workbook import GridWorkbook, SheetGrid, is_empty_cell
from app.tbms.repos.codec import RowCodec, stringify
from app.tbms.repos.headers import HeaderReconciler

logger = logging.getLogger(__name__)

UpsertOutcome = Literal["updated", "inserted"]

_FIRST_DATA_ROW = 2


class RowRepository:
    """Table-level CRUD on the backing workbook.

    Every operation reconciles the sheet header first, so the grid is in
    canonical column order by the time rows are read or written.
    Identifiers are matched by stringified equality.
    """

    def __init__(
        self,
        workbook: GridWorkbook,
        codec: RowCodec | None = None,
        reconciler: HeaderReconciler | None = None,
    ) -> None:
        self.workbook = workbook
        self.codec = codec or RowCodec()
        self.reconciler = reconciler or HeaderReconciler()

    def _open(self, table: str) -> tuple[TableSchema, SheetGrid]:
        schema = get_schema(table)
        grid = self.workbook.sheet(schema.name)
        self.reconciler.reconcile(grid, schema)
        return schema, grid

    def _find_row(self, schema: TableSchema, grid: SheetGrid, row_id: object) -> tuple[int, list[object]] | None:
        key = stringify(row_id)
        if not key:
            return None
        for offset, row in enumerate(grid.data_rows()):
            if stringify(row[0]) == key:
                return _FIRST_DATA_ROW + offset, row
        return None

    def _require_id(self, schema: TableSchema, row_id: object) -> None:
        if is_empty_cell(row_id):
            raise AppError(
                ErrorCatalog.INVALID_PARAMETERS,
                details={"message": f"{schema.id_column} is required", "sheet": schema.name},
            )

    def read_all(self, table: str) -> list[dict[str, object]]:
        schema, grid = self._open(table)
        records = []
        for offset, row in enumerate(grid.data_rows()):
            record = self.codec.decode(schema, row)
            if record is None:
                continue
            if self.codec.ensure_identifier(schema, record):
                grid.set_cell(_FIRST_DATA_ROW + offset, 1, record[schema.id_column])
                logger.info(
                    "row_identifier_assigned",
                    extra={"sheet": schema.name, "row": _FIRST_DATA_ROW + offset, "id": record[schema.id_column]},
                )
            records.append(record)
        return records

    def read_filtered(self, table: str, column: str, value: object) -> list[dict[str, object]]:
        key = stringify(value)
        return [record for record in self.read_all(table) if stringify(record.get(column)) == key]

    def find_by_id(self, table: str, row_id: object) -> dict[str, object] | None:
        schema, grid = self._open(table)
        match = self._find_row(schema, grid, row_id)
        if match is None:
            return None
        _, row = match
        return self.codec.decode(schema, row)

    def replace_all(self, table: str, records: list[dict[str, object]] | None) -> int:
        schema, grid = self._open(table)
        grid.clear_data()
        grid.write_row(1, schema.names)
        if records:
            grid.write_rows(_FIRST_DATA_ROW, [self.codec.encode(schema, record) for record in records])
        return len(records or [])

    def upsert(self, table: str, record: dict[str, object]) -> UpsertOutcome:
        schema, grid = self._open(table)
        row_id = record.get(schema.id_column)
        self._require_id(schema, row_id)

        match = self._find_row(schema, grid, row_id)
        if match is None:
            grid.append_rows([self.codec.encode(schema, record)])
            return "inserted"

        row_index, existing = match
        merged = []
        for index, name in enumerate(schema.names):
            incoming = record.get(name)
            stored = existing[index] if index < len(existing) else None
            if is_empty_cell(incoming) and not is_empty_cell(stored):
                merged.append(stored)
            else:
                merged.append("" if incoming is None else incoming)
        grid.write_row(row_index, merged)
        return "updated"

    def append(self, table: str, record: dict[str, object]) -> dict[str, object]:
        return self.append_many(table, [record])[0]

    def append_many(self, table: str, records: list[dict[str, object]]) -> list[dict[str, object]]:
        schema, grid = self._open(table)
        if records:
            grid.append_rows([self.codec.encode(schema, record) for record in records])
        return records

    def delete_by_id(self, table: str, row_id: object) -> bool:
        schema, grid = self._open(table)
        self._require_id(schema, row_id)
        match = self._find_row(schema, grid, row_id)
        if match is None:
            return False
        row_index, _ = match
        grid.delete_row(row_index)
        return True

    def _write_fields(self, schema: TableSchema, grid: SheetGrid, row_index: int, fields: dict[str, object]) -> None:
        for name, value in fields.items():
            column = schema.index_of(name)
            if column is None:
                raise AppError(
                    ErrorCatalog.INVALID_PARAMETERS,
                    details={"message": f"unknown column {name}", "sheet": schema.name},
                )
            grid.set_cell(row_index, column + 1, "" if value is None else value)

    def update_fields(self, table: str, row_id: object, fields: dict[str, object]) -> bool:
        """Overwrite only ``fields`` on the row with ``row_id``."""
        schema, grid = self._open(table)
        self._require_id(schema, row_id)
        match = self._find_row(schema, grid, row_id)
        if match is None:
            return False
        row_index, _ = match
        self._write_fields(schema, grid, row_index, fields)
        return True

    def update_first_where(self, table: str, match: dict[str, object], fields: dict[str, object]) -> bool:
        schema, grid = self._open(table)
        keys = {}
        for name, value in match.items():
            column = schema.index_of(name)
            if column is None:
                return False
            keys[column] = stringify(value)
        for offset, row in enumerate(grid.data_rows()):
            if all(stringify(row[column] if column < len(row) else None) == key for column, key in keys.items()):
                self._write_fields(schema, grid, _FIRST_DATA_ROW + offset, fields)
                return True
        return False
