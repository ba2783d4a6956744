"""Canonical sheet schemas.

Each logical table is an ordered list of columns; the first column is the
row identifier. Column order is both the physical write order and the key
order of decoded records. Every column carries an explicit type tag that
the row codec consults when decoding cell values.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from app.tbms.core.error_catalog import AppError, ErrorCatalog


class ColumnType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    TIME = "time"
    DATE = "date"

    @property
    def is_text_bearing(self) -> bool:
        return self in (ColumnType.TEXT, ColumnType.TIME, ColumnType.DATE)


@dataclass(frozen=True)
class Column:
    name: str
    type: ColumnType = ColumnType.TEXT


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: tuple[Column, ...]
    id_prefix: str

    @property
    def names(self) -> list[str]:
        return [column.name for column in self.columns]

    @property
    def id_column(self) -> str:
        return self.columns[0].name

    def index_of(self, column_name: str) -> int | None:
        for index, column in enumerate(self.columns):
            if column.name == column_name:
                return index
        return None

    def has_column(self, column_name: str) -> bool:
        return self.index_of(column_name) is not None


def _table(
    name: str,
    id_prefix: str,
    columns: list[str],
    *,
    number: tuple[str, ...] = (),
    boolean: tuple[str, ...] = (),
    time: tuple[str, ...] = (),
    date: tuple[str, ...] = (),
) -> TableSchema:
    typed = {}
    for kind, names in (
        (ColumnType.NUMBER, number),
        (ColumnType.BOOLEAN, boolean),
        (ColumnType.TIME, time),
        (ColumnType.DATE, date),
    ):
        for column_name in names:
            if column_name not in columns:
                raise ValueError(f"{name}.{column_name} is typed but not declared")
            typed[column_name] = kind
    return TableSchema(
        name=name,
        columns=tuple(Column(column_name, typed.get(column_name, ColumnType.TEXT)) for column_name in columns),
        id_prefix=id_prefix,
    )


SHEETS: dict[str, TableSchema] = {
    schema.name: schema
    for schema in (
        _table(
            "Users",
            "usr",
            ["id", "username", "password", "name", "role", "email", "storeId"],
        ),
        _table(
            "Stores",
            "sto",
            ["id", "code", "name", "company", "companyNo", "address", "phone", "email", "manager", "memo", "active"],
            boolean=("active",),
        ),
        _table(
            "Staff",
            "stf",
            [
                "id",
                "storeId",
                "name",
                "nickName",
                "clothSize",
                "kioskPwd",
                "dob",
                "address",
                "niNo",
                "eVisa",
                "mobile",
                "startDate",
                "rate",
                "sortCode",
                "accountNo",
                "email",
                "memo",
                "active",
            ],
            number=("rate",),
            boolean=("active",),
            date=("dob", "startDate"),
        ),
        _table(
            "Attendance",
            "att",
            ["id", "staffId", "storeId", "date", "clockIn", "clockOut", "photoIn", "photoOut", "memo"],
            time=("clockIn", "clockOut"),
            date=("date",),
        ),
        _table(
            "StockTemplate",
            "itm",
            ["id", "category", "name", "unit", "min"],
            number=("min",),
        ),
        _table(
            "StoreStock",
            "sst",
            ["id", "storeId", "itemId", "category", "name", "unit", "min", "qty"],
            number=("min", "qty"),
        ),
        _table(
            "StockCounts",
            "cnt",
            ["id", "storeId", "week", "date", "itemId", "category", "name", "unit", "qty", "submittedAt", "submittedBy"],
            number=("qty",),
            date=("date",),
        ),
        _table(
            "Sales",
            "sal",
            ["id", "storeId", "date", "cash", "card", "other", "total", "memo", "createdBy"],
            number=("cash", "card", "other", "total"),
            date=("date",),
        ),
        _table(
            "EditLog",
            "log",
            ["id", "attendanceId", "field", "oldValue", "newValue", "editedAt", "editedBy", "clientVersion"],
        ),
        _table(
            "TimeChangeRequests",
            "tcr",
            [
                "id",
                "attendanceId",
                "staffId",
                "storeId",
                "date",
                "field",
                "currentValue",
                "requestedValue",
                "reason",
                "status",
                "createdAt",
                "reviewedBy",
                "reviewedAt",
                "acknowledgedAt",
            ],
            date=("date",),
        ),
    )
}


def get_schema(name: str | None) -> TableSchema:
    if not name or name not in SHEETS:
        raise AppError(ErrorCatalog.INVALID_SHEET, details={"sheet": name})
    return SHEETS[name]
