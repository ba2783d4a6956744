from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from app.tbms.core.logging import log_json
from app.tbms.core.metrics import metrics
from app.tbms.db.schema import TableSchema
from app.tbms.db.workbook import SheetGrid

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[\s_\-]+")


def normalize_header(name: object) -> str:
    return _SEPARATORS.sub("", str(name)).lower()


@dataclass(frozen=True)
class ColumnMapping:
    """Physical column index (0-based) per canonical column, ``None`` when absent."""

    sheet: str
    indices: tuple[int | None, ...]
    migrated: bool = False

    @classmethod
    def identity(cls, schema: TableSchema, *, migrated: bool = False) -> "ColumnMapping":
        return cls(sheet=schema.name, indices=tuple(range(len(schema.columns))), migrated=migrated)

    @property
    def absent(self) -> list[int]:
        return [position for position, index in enumerate(self.indices) if index is None]


def map_columns(actual: list[str], schema: TableSchema) -> ColumnMapping:
    positions: dict[str, int] = {}
    for index, name in enumerate(actual):
        positions.setdefault(normalize_header(name), index)
    return ColumnMapping(
        sheet=schema.name,
        indices=tuple(positions.get(normalize_header(name)) for name in schema.names),
    )


def _remap_row(row: list[object], mapping: ColumnMapping) -> list[object]:
    return [row[index] if index is not None and index < len(row) else "" for index in mapping.indices]


class HeaderReconciler:
    """Keeps a sheet's physical header identical to its canonical schema.

    Runs before every read or write. A drifted header (renamed, reordered,
    added or removed columns) is matched to the canonical columns by
    normalized name and the data rows are rewritten in canonical order, so
    after the first call the header matches exactly and further calls do
    nothing.
    """

    def reconcile(self, grid: SheetGrid, schema: TableSchema) -> ColumnMapping:
        actual = grid.header()
        canonical = schema.names

        if not actual:
            grid.write_row(1, canonical)
            grid.style_header(len(canonical))
            return ColumnMapping.identity(schema)

        if actual == canonical:
            return ColumnMapping.identity(schema)

        mapping = map_columns(actual, schema)
        remapped = [_remap_row(row, mapping) for row in grid.data_rows()]

        width = grid.last_column()
        if width > len(canonical):
            grid.clear_columns(len(canonical) + 1, width)

        grid.write_row(1, canonical)
        grid.style_header(len(canonical))
        grid.write_rows(2, remapped)

        metrics.increment_sheet_migration(schema.name)
        log_json(
            logger,
            {
                "event": "sheet_header_migrated",
                "sheet": schema.name,
                "previous_header": actual,
                "absent_columns": [canonical[position] for position in mapping.absent],
                "rows": len(remapped),
            },
        )
        return ColumnMapping.identity(schema, migrated=True)
