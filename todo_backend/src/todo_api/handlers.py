from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Dict, List, TypeVar

from .errors import BadRequest, StorageTimeout
from .gateway import PersistenceGateway
from .models import TodoEntity
from .schemas import validate_create_payload
from .settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _bounded(call: Awaitable[T], timeout: float, operation: str) -> T:
    try:
        return await asyncio.wait_for(call, timeout)
    except asyncio.TimeoutError as e:
        raise StorageTimeout(f"{operation} exceeded {timeout}s") from e


# PUBLIC_INTERFACE
async def add_todo(
    body: Any, gateway: PersistenceGateway, settings: Settings, path: str = "/api/todos/add"
) -> Dict[str, str]:
    """
    Validate an inbound body and persist it as a new todo.

    Raises:
        BadRequest: body, description or category missing (checked in that order),
            or rejected by the category policy. Nothing is persisted.
        StorageError / StorageTimeout: the store failed or did not answer in time.

    Returns:
        The acknowledgment {"message": "addTodo"}.
    """
    logger.debug("addTodo %s", path)
    try:
        payload = validate_create_payload(body, strict_categories=settings.strict_categories)
    except BadRequest as e:
        logger.info("Rejected todo: %s", e.message)
        raise

    timeout = settings.storage_timeout_seconds
    await _bounded(gateway.connect(), timeout, "connect")
    await _bounded(gateway.insert_many([payload.to_record()]), timeout, "insert")
    return {"message": "addTodo"}


# PUBLIC_INTERFACE
async def get_todos(
    gateway: PersistenceGateway, settings: Settings, path: str = "/api/todos"
) -> List[TodoEntity]:
    """Return every persisted todo."""
    logger.debug("getTodos %s", path)
    timeout = settings.storage_timeout_seconds
    await _bounded(gateway.connect(), timeout, "connect")
    return await _bounded(gateway.find_all(), timeout, "find")
