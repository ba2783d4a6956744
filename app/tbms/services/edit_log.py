from app.tbms.db.schema import get_schema

EDIT_LOG_SHEET = "EditLog"


class EditLogService:
    """Append-only audit trail of attendance edits."""

    def __init__(self, backend):
        self.rows = backend.rows
        self.backend = backend

    def append(
        self,
        *,
        attendance_id: str,
        field: str,
        old_value: str,
        new_value: str,
        edited_by: str = "",
        client_version: str = "",
    ) -> dict:
        schema = get_schema(EDIT_LOG_SHEET)
        entry = {
            "id": self.rows.codec.new_identifier(schema),
            "attendanceId": attendance_id,
            "field": field,
            "oldValue": old_value,
            "newValue": new_value,
            "editedAt": self.backend.timestamp(),
            "editedBy": edited_by,
            "clientVersion": client_version,
        }
        self.rows.append(EDIT_LOG_SHEET, entry)
        return entry
