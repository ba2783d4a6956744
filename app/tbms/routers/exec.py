import json

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from app.tbms.core.context import BackendContext, get_backend_context
from app.tbms.core.error_catalog import AppError, ErrorCatalog
from app.tbms.schemas.actions import parse_read_action, parse_write_action
from app.tbms.services.dispatch import ActionDispatcher

router = APIRouter()


def get_dispatcher(context: BackendContext = Depends(get_backend_context)) -> ActionDispatcher:
    return ActionDispatcher(context)


@router.get("/exec")
async def exec_read(request: Request, dispatcher: ActionDispatcher = Depends(get_dispatcher)):
    params = dict(request.query_params)
    params.setdefault("action", "ping")
    request.state.action = params["action"]
    action = parse_read_action(params)
    return await run_in_threadpool(dispatcher.dispatch, action)


@router.post("/exec")
async def exec_write(request: Request, dispatcher: ActionDispatcher = Depends(get_dispatcher)):
    body = await request.body()
    try:
        data = json.loads(body or b"{}")
    except ValueError as exc:
        raise AppError(
            ErrorCatalog.VALIDATION_ERROR,
            details={"message": "request body must be JSON"},
        ) from exc
    if isinstance(data, dict):
        request.state.action = data.get("action")
    action = parse_write_action(data)
    return await run_in_threadpool(dispatcher.dispatch, action)
