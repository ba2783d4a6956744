import json

from openpyxl import load_workbook
from sqlalchemy.exc import OperationalError

from app.tbms.schemas.actions import GetAllAction
from app.tbms.services import dispatch
from tests.sheet_helpers import PNG_DATA_URL


def _post(client, payload):
    return client.post("/exec", json=payload)


def test_ping_is_default_read(client):
    response = client.get("/exec")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["version"] == "TBMS 2.1"
    assert payload["time"]


def test_init_creates_sheets(client):
    response = client.get("/exec", params={"action": "init"})

    assert response.status_code == 200
    assert "Attendance" in response.json()["created"]

    response = client.get("/exec", params={"action": "getAll"})
    data = response.json()["data"]
    assert set(data) >= {"Users", "Stores", "Staff", "Attendance", "StockTemplate", "StoreStock"}
    assert all(rows == [] for rows in data.values())


def test_upsert_then_get_sheet_persists_to_workbook(client, tmp_path):
    response = _post(
        client,
        {"action": "upsert", "sheet": "Staff", "row": {"id": "stf_1", "storeId": "sto_1", "name": "Alice", "rate": 11.5}},
    )
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "action": "inserted"}

    response = _post(client, {"action": "upsert", "sheet": "Staff", "row": {"id": "stf_1", "nickName": "Al"}})
    assert response.json()["action"] == "updated"

    response = client.get("/exec", params={"action": "getSheet", "sheet": "Staff"})
    rows = response.json()["data"]
    assert len(rows) == 1
    assert rows[0]["name"] == "Alice"
    assert rows[0]["nickName"] == "Al"
    assert rows[0]["rate"] == 11.5
    assert rows[0]["active"] is False

    book = load_workbook(tmp_path / "tbms.xlsx")
    assert book["Staff"]["A2"].value == "stf_1"


def test_save_sheet_append_and_delete(client):
    response = _post(
        client,
        {"action": "saveSheet", "sheet": "Stores", "rows": [{"id": "sto_1", "name": "A"}, {"id": "sto_2", "name": "B"}]},
    )
    assert response.json() == {"status": "ok", "count": 2}

    response = _post(client, {"action": "appendRow", "sheet": "Stores", "row": {"name": "C"}})
    assert response.json()["id"].startswith("sto_")

    response = _post(client, {"action": "deleteRow", "sheet": "Stores", "id": "sto_1"})
    assert response.json() == {"status": "ok", "deleted": True}

    response = _post(client, {"action": "deleteRow", "sheet": "Stores", "id": "sto_1"})
    assert response.json() == {"status": "ok", "deleted": False}

    rows = client.get("/exec", params={"action": "getSheet", "sheet": "Stores"}).json()["data"]
    assert [row["name"] for row in rows] == ["B", "C"]


def test_unknown_action(client):
    response = _post(client, {"action": "explode"})

    assert response.status_code == 400
    payload = response.json()
    assert payload["status"] == "error"
    assert payload["code"] == "UNKNOWN_ACTION"
    assert payload["error"] == "Unknown action"
    assert payload["trace_id"]


def test_write_action_is_not_accepted_on_get(client):
    response = client.get("/exec", params={"action": "deleteRow", "sheet": "Stores", "id": "sto_1"})

    assert response.status_code == 400
    assert response.json()["code"] == "UNKNOWN_ACTION"


def test_invalid_sheet(client):
    response = _post(client, {"action": "upsert", "sheet": "Payroll", "row": {"id": "p1"}})

    assert response.status_code == 400
    payload = response.json()
    assert payload["code"] == "INVALID_SHEET"
    assert payload["error"] == "Invalid sheet name"

    response = client.get("/exec", params={"action": "getSheet"})
    assert response.json()["code"] == "INVALID_SHEET"


def test_upsert_without_identifier(client):
    response = _post(client, {"action": "upsert", "sheet": "Staff", "row": {"name": "Nobody"}})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PARAMETERS"


def test_text_plain_body_is_parsed_as_json(client):
    body = json.dumps({"action": "upsert", "sheet": "Stores", "row": {"id": "sto_1", "name": "A"}})

    response = client.post("/exec", content=body, headers={"Content-Type": "text/plain;charset=utf-8"})

    assert response.status_code == 200
    assert response.json()["action"] == "inserted"


def test_invalid_json_body(client):
    response = client.post("/exec", content="{not json", headers={"Content-Type": "text/plain"})

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_missing_required_field(client):
    response = _post(client, {"action": "clockOutPhoto", "clockOut": "17:00"})

    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == "VALIDATION_ERROR"
    assert any(error["field"] == "id" for error in payload["details"]["errors"])


def test_settings_round_trip(client):
    response = _post(client, {"action": "saveSetting", "key": "payroll", "value": {"cutoff": 25, "weeks": [1, 2]}})
    assert response.json() == {"status": "ok", "key": "payroll"}

    response = client.get("/exec", params={"action": "getSetting", "key": "payroll"})
    assert response.json()["value"] == {"cutoff": 25, "weeks": [1, 2]}

    response = client.get("/exec", params={"action": "getSetting", "key": "unknown"})
    assert response.json()["value"] is None


def test_get_store_data_filters_by_store(client):
    _post(
        client,
        {
            "action": "saveSheet",
            "sheet": "Staff",
            "rows": [
                {"id": "stf_1", "storeId": "sto_1", "name": "Alice"},
                {"id": "stf_2", "storeId": "sto_2", "name": "Bob"},
            ],
        },
    )
    _post(client, {"action": "saveSheet", "sheet": "Stores", "rows": [{"id": "sto_1"}, {"id": "sto_2"}]})

    response = client.get("/exec", params={"action": "getStoreData", "storeId": "sto_1"})
    payload = response.json()
    assert payload["storeId"] == "sto_1"
    assert [row["name"] for row in payload["data"]["Staff"]] == ["Alice"]
    assert payload["data"]["Attendance"] == []

    response = client.get("/exec", params={"action": "getStoreData", "storeId": "sto_1", "sheets": "Stores,Staff"})
    data = response.json()["data"]
    assert len(data["Stores"]) == 2
    assert len(data["Staff"]) == 1


def test_init_data_skips_populated_tables(client):
    _post(client, {"action": "upsert", "sheet": "Stores", "row": {"id": "sto_1"}})

    response = _post(
        client,
        {
            "action": "initData",
            "sheets": {"Stores": [{"id": "sto_9"}], "StockTemplate": [{"id": "itm_1", "name": "Milk"}]},
        },
    )

    results = response.json()["results"]
    assert results["Stores"]["status"] == "skipped"
    assert results["StockTemplate"] == {"status": "ok", "count": 1}


def test_photo_clock_in_and_out(client, tmp_path):
    response = _post(
        client,
        {
            "action": "clockInPhoto",
            "row": {"staffId": "stf_1", "storeId": "sto_1", "date": "2026-01-05", "clockIn": "09:00"},
            "photo": PNG_DATA_URL,
        },
    )
    assert response.status_code == 200
    created = response.json()
    assert (tmp_path / "photos" / created["photoIn"]).exists()

    response = _post(client, {"action": "clockOutPhoto", "id": created["id"], "clockOut": "17:00", "photo": "junk"})
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "id": created["id"], "photoOut": ""}

    rows = client.get("/exec", params={"action": "getSheet", "sheet": "Attendance"}).json()["data"]
    assert rows[0]["clockIn"] == "09:00"
    assert rows[0]["clockOut"] == "17:00"

    response = _post(client, {"action": "clockOutPhoto", "id": "att_missing", "clockOut": "17:00"})
    assert response.status_code == 404
    assert response.json()["code"] == "ROW_NOT_FOUND"


def test_submit_stock_count(client):
    _post(
        client,
        {"action": "upsert", "sheet": "StoreStock", "row": {"id": "sst_1", "storeId": "sto_1", "itemId": "itm_1", "qty": 0}},
    )

    response = _post(
        client,
        {
            "action": "submitStockCount",
            "storeId": "sto_1",
            "date": "2026-01-01",
            "items": [{"itemId": "itm_1", "name": "Milk", "qty": 6}, {"itemId": "itm_2", "qty": 1}],
            "submittedBy": "stf_1",
        },
    )

    payload = response.json()
    assert payload["count"] == 2
    assert payload["week"] == "202601"
    assert payload["updated"] == 1
    assert payload["unmatched"] == ["itm_2"]

    stock = client.get("/exec", params={"action": "getSheet", "sheet": "StoreStock"}).json()["data"]
    assert stock[0]["qty"] == 6


def test_time_change_request_lifecycle(client):
    response = _post(
        client,
        {
            "action": "createTimeChangeRequest",
            "attendanceId": "att_1",
            "staffId": "stf_1",
            "storeId": "sto_1",
            "field": "clockOut",
            "currentValue": "17:00",
            "requestedValue": "18:00",
        },
    )
    request_id = response.json()["id"]
    assert response.json()["request"]["status"] == "pending"

    response = _post(client, {"action": "reviewTimeChangeRequest", "id": request_id, "status": "approved", "reviewedBy": "mgr"})
    assert response.json()["request"]["status"] == "approved"

    response = _post(client, {"action": "ackTimeChangeRequest", "id": request_id})
    assert response.json()["request"]["acknowledgedAt"]

    response = _post(client, {"action": "ackTimeChangeRequest", "id": request_id})
    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_TRANSITION"

    response = _post(client, {"action": "reviewTimeChangeRequest", "id": "tcr_missing", "status": "approved"})
    assert response.status_code == 404
    assert response.json()["code"] == "REQUEST_NOT_FOUND"


def test_append_edit_log(client):
    response = _post(
        client,
        {"action": "appendEditLog", "attendanceId": "att_1", "field": "clockIn", "oldValue": "09:20", "newValue": "09:00"},
    )

    payload = response.json()
    assert payload["id"].startswith("log_")
    assert payload["editedAt"]


def test_lock_timeout_returns_conflict(client):
    with client.app.state.backend.serializer.hold():
        response = client.get("/exec", params={"action": "getAll"})

    assert response.status_code == 409
    payload = response.json()
    assert payload["code"] == "LOCK_TIMEOUT"
    assert payload["details"] == {"timeout_sec": 0.5}


def test_unexpected_error_returns_internal_error(client, monkeypatch):
    def explode(backend, action):
        raise RuntimeError("boom")

    monkeypatch.setitem(dispatch.HANDLERS, GetAllAction, explode)

    response = client.get("/exec", params={"action": "getAll"}, headers={"Origin": "https://kiosk.example"})

    assert response.status_code == 500
    assert response.headers["access-control-allow-origin"] == "*"
    payload = response.json()
    assert payload["code"] == "INTERNAL_ERROR"
    assert payload["error"] == "Internal server error"
    assert payload["details"] == {"type": "RuntimeError"}
    assert not client.app.state.backend.serializer.locked()


def test_nested_row_values_are_rejected_without_writing(client):
    _post(client, {"action": "upsert", "sheet": "Staff", "row": {"id": "s1", "name": "Alice"}})

    response = _post(client, {"action": "upsert", "sheet": "Staff", "row": {"id": "s1", "name": {"a": 1}}})

    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == "VALIDATION_ERROR"
    assert any(error["field"].startswith("row.name") for error in payload["details"]["errors"])

    rows = client.get("/exec", params={"action": "getSheet", "sheet": "Staff"}).json()["data"]
    assert [(row["id"], row["name"]) for row in rows] == [("s1", "Alice")]


def test_list_values_in_seed_rows_are_rejected(client):
    response = _post(client, {"action": "saveSheet", "sheet": "Stores", "rows": [{"id": "sto_1", "name": ["A"]}]})

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert client.get("/exec", params={"action": "getSheet", "sheet": "Stores"}).json()["data"] == []


def test_non_string_action(client):
    response = _post(client, {"action": ["upsert"]})

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_database_lock_inside_action_is_lock_timeout(client, monkeypatch):
    def locked(backend, action):
        raise OperationalError("UPDATE app_settings", {}, Exception("database is locked"))

    monkeypatch.setitem(dispatch.HANDLERS, GetAllAction, locked)

    response = client.get("/exec", params={"action": "getAll"})

    assert response.status_code == 409
    assert response.json()["code"] == "LOCK_TIMEOUT"
