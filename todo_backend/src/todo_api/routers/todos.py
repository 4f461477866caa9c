from __future__ import annotations

import json
from typing import Any, List

from fastapi import APIRouter, Depends, Request

from .. import handlers
from ..errors import BadRequest
from ..gateway import PersistenceGateway, get_gateway
from ..schemas import MessageOut, TodoOut
from ..settings import Settings, get_settings

router = APIRouter(
    prefix="/api/todos",
    tags=["todos"],
)


async def _read_json_body(request: Request) -> Any:
    """
    Decode the request body without imposing a shape.
    An empty body decodes to None.
    """
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        raise BadRequest("Malformed JSON body!") from e


# PUBLIC_INTERFACE
@router.post(
    "/add",
    response_model=MessageOut,
    summary="Add Todo",
    description="Validate the body and store it as a new Todo item.",
    responses={
        200: {"description": "Todo stored"},
        400: {"description": "Missing body, description or category", "model": MessageOut},
        500: {"description": "Storage error", "model": MessageOut},
        504: {"description": "Storage timeout", "model": MessageOut},
    },
)
async def add_todo(
    request: Request,
    gateway: PersistenceGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> MessageOut:
    """
    Create a new Todo.
    """
    body = await _read_json_body(request)
    result = await handlers.add_todo(body, gateway, settings, path=request.url.path)
    return MessageOut(**result)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TodoOut],
    summary="List Todos",
    description="Return all stored Todo items ordered by id.",
    responses={
        200: {"description": "List retrieved successfully"},
        500: {"description": "Storage error", "model": MessageOut},
        504: {"description": "Storage timeout", "model": MessageOut},
    },
)
async def get_todos(
    request: Request,
    gateway: PersistenceGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> List[TodoOut]:
    """
    List every Todo.
    """
    items = await handlers.get_todos(gateway, settings, path=request.url.path)
    return [TodoOut(**it) for it in items]
