from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from app.tbms.core.error_catalog import AppError, ErrorCatalog
from app.tbms.core.logging import log_json
from app.tbms.db.schema import get_schema

logger = logging.getLogger(__name__)

STOCK_COUNTS_SHEET = "StockCounts"
STORE_STOCK_SHEET = "StoreStock"


@dataclass
class StockCountResult:
    count: int
    week: str
    updated: int
    unmatched: list[str]
    submitted_at: str


def iso_week_key(day: date) -> str:
    """``YYYYWW`` of the ISO-8601 week containing ``day``.

    Weeks start on Monday and belong to the year of their Thursday, so the
    last days of December can fall in week 1 of the next year and the first
    days of January in week 52 or 53 of the previous one.
    """
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}{iso_week:02d}"


def parse_count_date(value: str | None) -> date:
    if not value or not value.strip():
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "date is required"})
    text = value.strip()
    try:
        if "T" in text:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError as exc:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "date must be YYYY-MM-DD", "date": value},
        ) from exc


class StockCountService:
    def __init__(self, backend):
        self.rows = backend.rows
        self.backend = backend

    def submit(self, *, store_id: str, count_date: str, items: list, submitted_by: str = "") -> StockCountResult:
        if not store_id or not str(store_id).strip():
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "storeId is required"})
        day = parse_count_date(count_date)
        if not items:
            raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "items must not be empty"})

        schema = get_schema(STOCK_COUNTS_SHEET)
        week = iso_week_key(day)
        submitted_at = self.backend.timestamp()
        lines = [
            {
                "id": self.rows.codec.new_identifier(schema),
                "storeId": store_id,
                "week": week,
                "date": day.isoformat(),
                "itemId": item.itemId,
                "category": item.category,
                "name": item.name,
                "unit": item.unit,
                "qty": item.qty,
                "submittedAt": submitted_at,
                "submittedBy": submitted_by,
            }
            for item in items
        ]
        self.rows.append_many(STOCK_COUNTS_SHEET, lines)

        updated = 0
        unmatched = []
        for item in items:
            if self.rows.update_first_where(
                STORE_STOCK_SHEET,
                {"storeId": store_id, "itemId": item.itemId},
                {"qty": item.qty},
            ):
                updated += 1
            else:
                unmatched.append(item.itemId)

        log_json(
            logger,
            {
                "event": "stock_count_submitted",
                "store_id": store_id,
                "week": week,
                "lines": len(lines),
                "updated": updated,
                "unmatched": unmatched,
            },
        )
        return StockCountResult(
            count=len(lines),
            week=week,
            updated=updated,
            unmatched=unmatched,
            submitted_at=submitted_at,
        )
