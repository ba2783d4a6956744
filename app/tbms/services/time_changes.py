from __future__ import annotations

import logging

from app.tbms.core.error_catalog import AppError, ErrorCatalog
from app.tbms.db.schema import get_schema

logger = logging.getLogger(__name__)

TIME_CHANGE_SHEET = "TimeChangeRequests"

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
REVIEW_OUTCOMES = (STATUS_APPROVED, STATUS_REJECTED)


def _status(record: dict) -> str:
    return str(record.get("status") or "").strip().lower()


class TimeChangeService:
    """Lifecycle of attendance time-change requests.

    pending -> approved | rejected (reviewer), then -> acknowledged
    (requester, once). Requests are never deleted and reviewing never
    writes to the attendance record itself.
    """

    def __init__(self, backend):
        self.rows = backend.rows
        self.backend = backend

    def _get(self, request_id: str) -> dict:
        record = self.rows.find_by_id(TIME_CHANGE_SHEET, request_id)
        if record is None:
            raise AppError(ErrorCatalog.REQUEST_NOT_FOUND, details={"id": request_id})
        return record

    def create(
        self,
        *,
        attendance_id: str,
        staff_id: str,
        store_id: str,
        date: str = "",
        field: str,
        current_value: str = "",
        requested_value: str = "",
        reason: str = "",
    ) -> dict:
        schema = get_schema(TIME_CHANGE_SHEET)
        record = {
            "id": self.rows.codec.new_identifier(schema),
            "attendanceId": attendance_id,
            "staffId": staff_id,
            "storeId": store_id,
            "date": date,
            "field": field,
            "currentValue": current_value,
            "requestedValue": requested_value,
            "reason": reason,
            "status": STATUS_PENDING,
            "createdAt": self.backend.timestamp(),
            "reviewedBy": "",
            "reviewedAt": "",
            "acknowledgedAt": "",
        }
        self.rows.append(TIME_CHANGE_SHEET, record)
        logger.info("time_change_created", extra={"id": record["id"], "attendance_id": attendance_id})
        return record

    def review(self, request_id: str, status: str, reviewed_by: str) -> dict:
        outcome = (status or "").strip().lower()
        record = self._get(request_id)
        current = _status(record)
        if outcome not in REVIEW_OUTCOMES or current != STATUS_PENDING:
            raise AppError(
                ErrorCatalog.INVALID_TRANSITION,
                details={"id": request_id, "from": current, "to": outcome},
            )
        changes = {
            "status": outcome,
            "reviewedBy": reviewed_by,
            "reviewedAt": self.backend.timestamp(),
        }
        self.rows.update_fields(TIME_CHANGE_SHEET, request_id, changes)
        record.update(changes)
        logger.info(
            "time_change_reviewed",
            extra={"id": request_id, "status": outcome, "reviewed_by": reviewed_by},
        )
        return record

    def acknowledge(self, request_id: str) -> dict:
        record = self._get(request_id)
        current = _status(record)
        if current not in REVIEW_OUTCOMES or record.get("acknowledgedAt"):
            raise AppError(
                ErrorCatalog.INVALID_TRANSITION,
                details={"id": request_id, "from": current, "to": "acknowledged"},
            )
        changes = {"acknowledgedAt": self.backend.timestamp()}
        self.rows.update_fields(TIME_CHANGE_SHEET, request_id, changes)
        record.update(changes)
        return record
