from __future__ import annotations

import logging

from app.tbms.core.error_catalog import AppError, ErrorCatalog
from app.tbms.db.schema import get_schema

logger = logging.getLogger(__name__)

ATTENDANCE_SHEET = "Attendance"


class AttendanceService:
    """Photo clock-in and clock-out on the Attendance sheet.

    Clock-in always appends a new row. Clock-out writes exactly two cells,
    ``clockOut`` and ``photoOut``, of the matched row; every other field is
    left as stored. Photo storage is best effort and never fails the call.
    """

    def __init__(self, backend):
        self.rows = backend.rows
        self.photos = backend.photos

    def clock_in(self, row: dict, photo: str | None = None) -> dict:
        schema = get_schema(ATTENDANCE_SHEET)
        record = dict(row)
        if not record.get(schema.id_column):
            record[schema.id_column] = self.rows.codec.new_identifier(schema)
        if photo:
            record["photoIn"] = self.photos.store_or_empty(photo, prefix="in")
        else:
            record["photoIn"] = record.get("photoIn") or ""
        self.rows.append(ATTENDANCE_SHEET, record)
        logger.info(
            "attendance_clock_in",
            extra={"id": record[schema.id_column], "staff_id": record.get("staffId"), "has_photo": bool(record["photoIn"])},
        )
        return {"id": record[schema.id_column], "photoIn": record["photoIn"]}

    def clock_out(self, attendance_id: str, clock_out: str, photo: str | None = None) -> dict:
        if self.rows.find_by_id(ATTENDANCE_SHEET, attendance_id) is None:
            raise AppError(
                ErrorCatalog.ROW_NOT_FOUND,
                details={"sheet": ATTENDANCE_SHEET, "id": attendance_id},
            )
        photo_out = self.photos.store_or_empty(photo, prefix="out")
        self.rows.update_fields(
            ATTENDANCE_SHEET,
            attendance_id,
            {"clockOut": clock_out, "photoOut": photo_out},
        )
        logger.info("attendance_clock_out", extra={"id": attendance_id, "has_photo": bool(photo_out)})
        return {"id": attendance_id, "photoOut": photo_out}
