from __future__ import annotations

import asyncio
import os
import sqlite3
import threading
from collections.abc import Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Generator, Iterable, List

from .errors import StorageError
from .gateway import PersistenceGateway, check_record
from .models import TodoEntity


@dataclass(frozen=True)
class _Cols:
    table: str = "todos"
    id: str = "id"
    description: str = "description"
    category: str = "category"
    done: str = "done"


_COLS = _Cols()


class _CommitGuard:
    """
    Shared between an insert running in a worker thread and the coroutine awaiting it.
    Once abandoned, the pending transaction is rolled back instead of committed.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._abandoned = False

    def abandon(self) -> None:
        with self._lock:
            self._abandoned = True

    def commit(self, conn: sqlite3.Connection) -> None:
        with self._lock:
            if self._abandoned:
                conn.rollback()
                raise StorageError("Insert abandoned by caller before commit")
            conn.commit()


class SQLiteGateway(PersistenceGateway):
    """
    SQLite document store implementing the PersistenceGateway interface.
    Blocking sqlite3 calls run in a worker thread.
    """

    def __init__(self, db_path: str) -> None:
        super().__init__()
        self._db_path = db_path

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        os.makedirs(os.path.dirname(self._db_path) or ".", exist_ok=True)
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_COLS.description} TEXT NOT NULL CHECK ({_COLS.description} <> ''),
                    {_COLS.category} TEXT NOT NULL CHECK ({_COLS.category} <> ''),
                    {_COLS.done} INTEGER NOT NULL DEFAULT 0
                )
                """
            )

    def _row_to_entity(self, row: sqlite3.Row) -> TodoEntity:
        return {
            "id": int(row[_COLS.id]),
            "description": str(row[_COLS.description]),
            "category": str(row[_COLS.category]),
            "done": bool(row[_COLS.done]),
        }

    def _write_rows(self, conn: sqlite3.Connection, docs: List[Dict[str, Any]]) -> List[int]:
        ids = []
        for doc in docs:
            cur = conn.execute(
                f"""
                INSERT INTO {_COLS.table} ({_COLS.description}, {_COLS.category}, {_COLS.done})
                VALUES (?, ?, ?)
                """,
                (doc["description"], doc["category"], 1 if doc["done"] else 0),
            )
            ids.append(cur.lastrowid)
        return ids

    def _insert(self, docs: List[Dict[str, Any]], guard: _CommitGuard) -> List[TodoEntity]:
        # One connection, one commit: the batch is stored entirely or not at all.
        # Closing without a commit rolls the batch back.
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        try:
            ids = self._write_rows(conn, docs)
            guard.commit(conn)
            placeholders = ", ".join("?" for _ in ids)
            rows = conn.execute(
                f"SELECT * FROM {_COLS.table} WHERE {_COLS.id} IN ({placeholders}) ORDER BY {_COLS.id}",
                ids,
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]
        finally:
            conn.close()

    def _select_all(self) -> List[TodoEntity]:
        with self._conn() as conn:
            rows = conn.execute(f"SELECT * FROM {_COLS.table} ORDER BY {_COLS.id}").fetchall()
            return [self._row_to_entity(r) for r in rows]

    async def _open(self) -> None:
        try:
            await asyncio.to_thread(self._init_db)
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Could not open sqlite store at {self._db_path}: {e}") from e

    async def insert_many(self, records: Iterable[Mapping[str, Any]]) -> List[TodoEntity]:
        self._require_connection()
        docs = [check_record(r) for r in records]
        if not docs:
            return []
        guard = _CommitGuard()
        try:
            return await asyncio.to_thread(self._insert, docs, guard)
        except asyncio.CancelledError:
            # The worker thread keeps running; make sure it does not commit
            guard.abandon()
            raise
        except sqlite3.Error as e:
            raise StorageError(f"Insert failed: {e}") from e

    async def find_all(self) -> List[TodoEntity]:
        self._require_connection()
        try:
            return await asyncio.to_thread(self._select_all)
        except sqlite3.Error as e:
            raise StorageError(f"Query failed: {e}") from e
