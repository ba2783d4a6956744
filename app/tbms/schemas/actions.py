from typing import Annotated, Any, Literal, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from app.tbms.core.error_catalog import AppError, ErrorCatalog


class ActionModel(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


CellValue = bool | int | float | str | None
Row = dict[str, CellValue]


class GetAllAction(ActionModel):
    action: Literal["getAll"]


class GetSheetAction(ActionModel):
    action: Literal["getSheet"]
    sheet: str | None = None


class GetStoreDataAction(ActionModel):
    action: Literal["getStoreData"]
    storeId: str
    sheets: str | None = None


class GetSettingAction(ActionModel):
    action: Literal["getSetting"]
    key: str


class InitAction(ActionModel):
    action: Literal["init"]


class PingAction(ActionModel):
    action: Literal["ping"]


class SaveSheetAction(ActionModel):
    action: Literal["saveSheet"]
    sheet: str | None = None
    rows: list[Row] | None = None


class UpsertAction(ActionModel):
    action: Literal["upsert"]
    sheet: str | None = None
    row: Row | None = None


class DeleteRowAction(ActionModel):
    action: Literal["deleteRow"]
    sheet: str | None = None
    id: str | None = None


class AppendRowAction(ActionModel):
    action: Literal["appendRow"]
    sheet: str | None = None
    row: Row | None = None


class ClockInPhotoAction(ActionModel):
    action: Literal["clockInPhoto"]
    row: Row
    photo: str | None = None


class ClockOutPhotoAction(ActionModel):
    action: Literal["clockOutPhoto"]
    id: str = Field(min_length=1)
    clockOut: str
    photo: str | None = None


class StockCountItem(ActionModel):
    itemId: str = Field(min_length=1)
    category: str = ""
    name: str = ""
    unit: str = ""
    qty: float = 0


class SubmitStockCountAction(ActionModel):
    action: Literal["submitStockCount"]
    storeId: str = ""
    date: str = ""
    items: list[StockCountItem] = Field(default_factory=list)
    submittedBy: str = ""


class AppendEditLogAction(ActionModel):
    action: Literal["appendEditLog"]
    attendanceId: str = Field(min_length=1)
    field: str = Field(min_length=1)
    oldValue: str = ""
    newValue: str = ""
    editedBy: str = ""
    clientVersion: str = ""


class CreateTimeChangeRequestAction(ActionModel):
    action: Literal["createTimeChangeRequest"]
    attendanceId: str = Field(min_length=1)
    staffId: str = ""
    storeId: str = ""
    date: str = ""
    field: str = Field(min_length=1)
    currentValue: str = ""
    requestedValue: str = ""
    reason: str = ""


class ReviewTimeChangeRequestAction(ActionModel):
    action: Literal["reviewTimeChangeRequest"]
    id: str = Field(min_length=1)
    status: str
    reviewedBy: str = ""


class AckTimeChangeRequestAction(ActionModel):
    action: Literal["ackTimeChangeRequest"]
    id: str = Field(min_length=1)


class SaveSettingAction(ActionModel):
    action: Literal["saveSetting"]
    key: str = Field(min_length=1)
    value: Any = None


class InitDataAction(ActionModel):
    action: Literal["initData"]
    sheets: dict[str, list[Row]] = Field(default_factory=dict)


READ_ACTION_MODELS = (
    GetAllAction,
    GetSheetAction,
    GetStoreDataAction,
    GetSettingAction,
    InitAction,
    PingAction,
)

WRITE_ACTION_MODELS = (
    SaveSheetAction,
    UpsertAction,
    DeleteRowAction,
    AppendRowAction,
    ClockInPhotoAction,
    ClockOutPhotoAction,
    SubmitStockCountAction,
    AppendEditLogAction,
    CreateTimeChangeRequestAction,
    ReviewTimeChangeRequestAction,
    AckTimeChangeRequestAction,
    SaveSettingAction,
    InitDataAction,
)

ReadAction = Annotated[Union[READ_ACTION_MODELS], Field(discriminator="action")]
WriteAction = Annotated[Union[WRITE_ACTION_MODELS], Field(discriminator="action")]
Action = Union[ReadAction, WriteAction]


def action_name(model: type[ActionModel]) -> str:
    return get_args(model.model_fields["action"].annotation)[0]


READ_ACTIONS = frozenset(action_name(model) for model in READ_ACTION_MODELS)
WRITE_ACTIONS = frozenset(action_name(model) for model in WRITE_ACTION_MODELS)

_read_adapter = TypeAdapter(ReadAction)
_write_adapter = TypeAdapter(WriteAction)


def _validation_details(exc: ValidationError) -> dict:
    return {
        "errors": [
            {
                "field": ".".join(str(item) for item in error.get("loc", ())[1:]) or None,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "validation_error"),
            }
            for error in exc.errors(include_url=False)
        ]
    }


def _parse(adapter: TypeAdapter, known: frozenset[str], data: object):
    if not isinstance(data, dict):
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "request must be a JSON object"})
    name = data.get("action")
    if name is not None and not isinstance(name, str):
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "action must be a string"})
    if name not in known:
        raise AppError(ErrorCatalog.UNKNOWN_ACTION, details={"action": name})
    try:
        return adapter.validate_python(data)
    except ValidationError as exc:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details=_validation_details(exc)) from exc


def parse_read_action(data: object):
    return _parse(_read_adapter, READ_ACTIONS, data)


def parse_write_action(data: object):
    return _parse(_write_adapter, WRITE_ACTIONS, data)
