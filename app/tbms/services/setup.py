from __future__ import annotations

import logging

from app.tbms.db.schema import SHEETS, ColumnType

logger = logging.getLogger(__name__)


class SheetSetupService:
    def __init__(self, backend):
        self.workbook = backend.workbook
        self.rows = backend.rows

    def init_sheets(self) -> dict:
        """Create and reconcile every sheet; safe to run repeatedly."""
        created = []
        for name, schema in SHEETS.items():
            if not self.workbook.has_sheet(name):
                created.append(name)
            grid = self.workbook.sheet(name)
            self.rows.reconciler.reconcile(grid, schema)
            if not grid.header_is_styled():
                grid.style_header(len(schema.columns))
            time_columns = [
                index + 1 for index, column in enumerate(schema.columns) if column.type is ColumnType.TIME
            ]
            if time_columns:
                grid.set_text_columns(time_columns)
        removed = self.workbook.remove_placeholder_sheets()
        if created or removed:
            logger.info("sheets_initialized", extra={"created": created, "removed": removed})
        return {"created": created, "removed": removed}

    def init_with_data(self, sheets: dict[str, list[dict]] | None) -> dict:
        """Seed tables that are still empty; tables holding rows are skipped."""
        self.init_sheets()
        results = {}
        for name, records in (sheets or {}).items():
            if name not in SHEETS:
                continue
            existing = self.rows.read_all(name)
            if existing:
                results[name] = {"status": "skipped", "reason": "data exists", "count": len(existing)}
                continue
            results[name] = {"status": "ok", "count": self.rows.replace_all(name, records)}
        return results
