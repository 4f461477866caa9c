from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from functools import lru_cache
from typing import Any, Dict, Iterable, List

from .errors import StorageError
from .models import TodoEntity
from .settings import get_settings

logger = logging.getLogger(__name__)

# Applied by the store to fields a record omits
STORE_DEFAULTS: Dict[str, Any] = {"done": False}


def check_record(record: Any) -> Dict[str, Any]:
    """
    Enforce the stored document schema on a single record and fill defaults.
    Raises StorageError for anything that would be persisted partially.
    """
    if not isinstance(record, Mapping):
        raise StorageError(f"Record must be a mapping, got {type(record).__name__}")
    doc = {**STORE_DEFAULTS, **record}
    for key in ("description", "category"):
        value = doc.get(key)
        if not isinstance(value, str) or not value:
            raise StorageError(f"Record field '{key}' must be a non-empty string")
    if not isinstance(doc["done"], bool):
        raise StorageError("Record field 'done' must be a boolean")
    return {"description": doc["description"], "category": doc["category"], "done": doc["done"]}


# PUBLIC_INTERFACE
class PersistenceGateway(ABC):
    """
    Async contract for the store backing the todo handlers.

    connect() is idempotent: the liveness check and the underlying open run
    under one lock, so concurrent first callers cause a single open.
    """

    def __init__(self) -> None:
        self._connected = False
        self._connect_lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Open the backing store unless it is already open."""
        if self._connected:
            return
        async with self._connect_lock:
            if self._connected:
                return
            try:
                await self._open()
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Could not connect to store: {e}") from e
            self._connected = True
            logger.info("Connected to %s", type(self).__name__)

    def _require_connection(self) -> None:
        if not self._connected:
            raise StorageError("Gateway is not connected")

    @abstractmethod
    async def _open(self) -> None:
        """Perform the underlying connection attempt."""

    @abstractmethod
    async def insert_many(self, records: Iterable[Mapping[str, Any]]) -> List[TodoEntity]:
        """
        Validate and store a batch of records atomically.
        Return the inserted entities with their assigned ids.
        """

    @abstractmethod
    async def find_all(self) -> List[TodoEntity]:
        """Return every stored entity ordered by id."""


class InMemoryGateway(PersistenceGateway):
    """
    Process-local document store suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        super().__init__()
        self._items: Dict[int, TodoEntity] = {}
        self._next_id = 1

    async def _open(self) -> None:
        return None

    async def insert_many(self, records: Iterable[Mapping[str, Any]]) -> List[TodoEntity]:
        self._require_connection()
        # Validate the whole batch before storing any of it
        docs = [check_record(r) for r in records]
        inserted: List[TodoEntity] = []
        for doc in docs:
            entity: TodoEntity = {"id": self._next_id, **doc}  # type: ignore[typeddict-item]
            self._items[entity["id"]] = entity
            self._next_id += 1
            inserted.append(entity.copy())  # type: ignore[arg-type]
        return inserted

    async def find_all(self) -> List[TodoEntity]:
        self._require_connection()
        # Return copies to avoid external mutation
        return [self._items[i].copy() for i in sorted(self._items)]  # type: ignore[misc]


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_gateway() -> PersistenceGateway:
    """
    Return the process-wide gateway for the configured backend.
    - memory: InMemoryGateway
    - sqlite: SQLiteGateway
    """
    settings = get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteGateway

        return SQLiteGateway(settings.sqlite_db_path)
    return InMemoryGateway()
