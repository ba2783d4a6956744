from __future__ import annotations

import math
import uuid
from datetime import date, datetime, time, tzinfo

from app.tbms.db.schema import ColumnType, TableSchema
from app.tbms.db.workbook import is_empty_cell

TIME_FORMAT = "%H:%M"
DATE_FORMAT = "%Y-%m-%d"


def stringify(value: object) -> str:
    """Comparison key for identifiers and filter values.

    ``5``, ``5.0`` and ``"5"`` all stringify to ``"5"``.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_number(value: object) -> int | float:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        number = value
    else:
        try:
            number = float(str(value).strip())
        except (TypeError, ValueError):
            return 0
    if isinstance(number, float):
        if math.isnan(number) or math.isinf(number):
            return 0
        if number.is_integer():
            return int(number)
    return number


def _to_boolean(value: object) -> bool:
    if value is True:
        return True
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


class RowCodec:
    """Translates physical sheet rows to typed records and back."""

    def __init__(self, timezone: tzinfo | None = None) -> None:
        self.timezone = timezone

    def _local(self, value: datetime) -> datetime:
        if value.tzinfo is not None and self.timezone is not None:
            return value.astimezone(self.timezone)
        return value

    def decode_value(self, column_type: ColumnType, value: object) -> object:
        if isinstance(value, time):
            return value.strftime(TIME_FORMAT)
        if isinstance(value, datetime):
            value = self._local(value)
            if column_type is ColumnType.TIME:
                return value.strftime(TIME_FORMAT)
            return value.strftime(DATE_FORMAT)
        if isinstance(value, date):
            return value.strftime(DATE_FORMAT)
        if column_type is ColumnType.BOOLEAN:
            return _to_boolean(value)
        if column_type is ColumnType.NUMBER:
            return _to_number(value)
        if is_empty_cell(value):
            return ""
        return stringify(value)

    def decode(self, schema: TableSchema, row: list[object]) -> dict[str, object] | None:
        """Typed record for ``row``, or ``None`` when the row carries no text."""
        record: dict[str, object] = {}
        for index, column in enumerate(schema.columns):
            raw = row[index] if index < len(row) else None
            record[column.name] = self.decode_value(column.type, raw)
        if self.is_absent(schema, record):
            return None
        return record

    @staticmethod
    def is_absent(schema: TableSchema, record: dict[str, object]) -> bool:
        return all(
            record.get(column.name) in ("", None)
            for column in schema.columns
            if column.type.is_text_bearing
        )

    @staticmethod
    def new_identifier(schema: TableSchema) -> str:
        return f"{schema.id_prefix}_{uuid.uuid4().hex[:12]}"

    def ensure_identifier(self, schema: TableSchema, record: dict[str, object]) -> bool:
        """Fill an empty identifier in place; returns whether one was generated."""
        if record.get(schema.id_column) not in ("", None):
            return False
        record[schema.id_column] = self.new_identifier(schema)
        return True

    @staticmethod
    def encode(schema: TableSchema, record: dict[str, object]) -> list[object]:
        values = []
        for name in schema.names:
            value = record.get(name)
            values.append("" if value is None else value)
        return values
