from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from app.tbms.core.config import settings
from app.tbms.core.context import Backend, BackendContext
from app.tbms.core.error_catalog import AppError, ErrorCatalog
from app.tbms.core.errors import is_lock_timeout
from app.tbms.core.metrics import metrics
from app.tbms.db.schema import SHEETS, get_schema
from app.tbms.schemas import actions as a
from app.tbms.services.attendance import AttendanceService
from app.tbms.services.edit_log import EditLogService
from app.tbms.services.setup import SheetSetupService
from app.tbms.services.stock_counts import StockCountService
from app.tbms.services.time_changes import TimeChangeService

logger = logging.getLogger(__name__)

STORE_SCOPE_COLUMN = "storeId"


def _require_row(row: dict | None) -> dict:
    if not row:
        raise AppError(ErrorCatalog.INVALID_PARAMETERS, details={"message": "row is required"})
    return row


def _split_sheets(value: str | None) -> list[str]:
    raw = value if value else settings.STORE_DATA_DEFAULT_SHEETS
    return [name.strip() for name in raw.split(",") if name.strip()]


def get_all(backend: Backend, action: a.GetAllAction) -> dict:
    return {"data": {name: backend.rows.read_all(name) for name in SHEETS}}


def get_sheet(backend: Backend, action: a.GetSheetAction) -> dict:
    return {"data": backend.rows.read_all(get_schema(action.sheet).name)}


def get_store_data(backend: Backend, action: a.GetStoreDataAction) -> dict:
    data = {}
    for name in _split_sheets(action.sheets):
        schema = get_schema(name)
        if schema.has_column(STORE_SCOPE_COLUMN):
            data[name] = backend.rows.read_filtered(name, STORE_SCOPE_COLUMN, action.storeId)
        else:
            data[name] = backend.rows.read_all(name)
    return {"storeId": action.storeId, "data": data}


def get_setting(backend: Backend, action: a.GetSettingAction) -> dict:
    return {"key": action.key, "value": backend.settings.get(action.key)}


def init(backend: Backend, action: a.InitAction) -> dict:
    return SheetSetupService(backend).init_sheets()


def save_sheet(backend: Backend, action: a.SaveSheetAction) -> dict:
    schema = get_schema(action.sheet)
    return {"count": backend.rows.replace_all(schema.name, action.rows or [])}


def upsert(backend: Backend, action: a.UpsertAction) -> dict:
    schema = get_schema(action.sheet)
    return {"action": backend.rows.upsert(schema.name, _require_row(action.row))}


def delete_row(backend: Backend, action: a.DeleteRowAction) -> dict:
    schema = get_schema(action.sheet)
    return {"deleted": backend.rows.delete_by_id(schema.name, action.id)}


def append_row(backend: Backend, action: a.AppendRowAction) -> dict:
    schema = get_schema(action.sheet)
    record = dict(_require_row(action.row))
    backend.rows.codec.ensure_identifier(schema, record)
    backend.rows.append(schema.name, record)
    return {"id": record[schema.id_column]}


def clock_in_photo(backend: Backend, action: a.ClockInPhotoAction) -> dict:
    return AttendanceService(backend).clock_in(_require_row(action.row), action.photo)


def clock_out_photo(backend: Backend, action: a.ClockOutPhotoAction) -> dict:
    return AttendanceService(backend).clock_out(action.id, action.clockOut, action.photo)


def submit_stock_count(backend: Backend, action: a.SubmitStockCountAction) -> dict:
    result = StockCountService(backend).submit(
        store_id=action.storeId,
        count_date=action.date,
        items=action.items,
        submitted_by=action.submittedBy,
    )
    return {
        "count": result.count,
        "week": result.week,
        "updated": result.updated,
        "unmatched": result.unmatched,
        "submittedAt": result.submitted_at,
    }


def append_edit_log(backend: Backend, action: a.AppendEditLogAction) -> dict:
    entry = EditLogService(backend).append(
        attendance_id=action.attendanceId,
        field=action.field,
        old_value=action.oldValue,
        new_value=action.newValue,
        edited_by=action.editedBy,
        client_version=action.clientVersion,
    )
    return {"id": entry["id"], "editedAt": entry["editedAt"]}


def create_time_change_request(backend: Backend, action: a.CreateTimeChangeRequestAction) -> dict:
    record = TimeChangeService(backend).create(
        attendance_id=action.attendanceId,
        staff_id=action.staffId,
        store_id=action.storeId,
        date=action.date,
        field=action.field,
        current_value=action.currentValue,
        requested_value=action.requestedValue,
        reason=action.reason,
    )
    return {"id": record["id"], "request": record}


def review_time_change_request(backend: Backend, action: a.ReviewTimeChangeRequestAction) -> dict:
    return {"request": TimeChangeService(backend).review(action.id, action.status, action.reviewedBy)}


def ack_time_change_request(backend: Backend, action: a.AckTimeChangeRequestAction) -> dict:
    return {"request": TimeChangeService(backend).acknowledge(action.id)}


def save_setting(backend: Backend, action: a.SaveSettingAction) -> dict:
    backend.settings.save(action.key, action.value)
    return {"key": action.key}


def init_data(backend: Backend, action: a.InitDataAction) -> dict:
    return {"results": SheetSetupService(backend).init_with_data(action.sheets)}


HANDLERS: dict[type, Callable[[Backend, object], dict]] = {
    a.GetAllAction: get_all,
    a.GetSheetAction: get_sheet,
    a.GetStoreDataAction: get_store_data,
    a.GetSettingAction: get_setting,
    a.InitAction: init,
    a.SaveSheetAction: save_sheet,
    a.UpsertAction: upsert,
    a.DeleteRowAction: delete_row,
    a.AppendRowAction: append_row,
    a.ClockInPhotoAction: clock_in_photo,
    a.ClockOutPhotoAction: clock_out_photo,
    a.SubmitStockCountAction: submit_stock_count,
    a.AppendEditLogAction: append_edit_log,
    a.CreateTimeChangeRequestAction: create_time_change_request,
    a.ReviewTimeChangeRequestAction: review_time_change_request,
    a.AckTimeChangeRequestAction: ack_time_change_request,
    a.SaveSettingAction: save_setting,
    a.InitDataAction: init_data,
}

_missing = set(a.READ_ACTION_MODELS + a.WRITE_ACTION_MODELS) - set(HANDLERS) - {a.PingAction}
if _missing:
    raise RuntimeError(f"actions without handlers: {sorted(model.__name__ for model in _missing)}")


class ActionDispatcher:
    """Runs one parsed action inside a serialized backend session."""

    def __init__(self, context: BackendContext):
        self.context = context

    def ping(self) -> dict:
        return {
            "status": "ok",
            "time": datetime.now(timezone.utc).isoformat(),
            "version": settings.APP_VERSION,
        }

    def dispatch(self, action: a.Action) -> dict:
        name = action.action
        if isinstance(action, a.PingAction):
            return self.ping()
        handler = HANDLERS[type(action)]
        try:
            with self.context.session() as backend:
                payload = handler(backend, action)
        except AppError as exc:
            metrics.record_action(name, exc.error.code)
            raise
        except Exception as exc:
            error = ErrorCatalog.INTERNAL_ERROR
            if is_lock_timeout(exc):
                error = ErrorCatalog.LOCK_TIMEOUT
                metrics.increment_lock_wait_timeout()
            else:
                logger.exception("action_failed", extra={"action": name})
            metrics.record_action(name, error.code)
            raise AppError(error, details={"type": exc.__class__.__name__}) from exc
        metrics.record_action(name, "ok")
        return {"status": "ok", **payload}
