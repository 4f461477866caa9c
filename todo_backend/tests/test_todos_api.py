import asyncio
import logging
import os
import time

import pytest
from fastapi.testclient import TestClient

# Ensure we default to memory backend for tests to avoid filesystem dependencies
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

# Import the FastAPI app
from todo_api.db import SQLiteGateway  # noqa: E402
from todo_api.errors import StorageError  # noqa: E402
from todo_api.gateway import InMemoryGateway, get_gateway  # noqa: E402
from todo_api.main import app  # noqa: E402
from todo_api.settings import get_settings  # noqa: E402

from conftest import make_settings  # noqa: E402


class SlowGateway(InMemoryGateway):
    async def insert_many(self, records):
        await asyncio.sleep(1)
        return await super().insert_many(records)


class BrokenGateway(InMemoryGateway):
    async def insert_many(self, records):
        raise StorageError("duplicate key error collection: todos")

    async def find_all(self):
        raise StorageError("network timeout")


class SlowListGateway(InMemoryGateway):
    async def find_all(self):
        await asyncio.sleep(1)
        return await super().find_all()


class SlowFirstOpenGateway(InMemoryGateway):
    def __init__(self):
        super().__init__()
        self.open_calls = 0

    async def _open(self):
        self.open_calls += 1
        if self.open_calls == 1:
            await asyncio.sleep(1)


class SlowSQLiteGateway(SQLiteGateway):
    def _write_rows(self, conn, docs):
        ids = super()._write_rows(conn, docs)
        time.sleep(0.3)
        return ids


@pytest.fixture
def gateway():
    return InMemoryGateway()


@pytest.fixture
def client(gateway):
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_settings] = lambda: make_settings()
    yield TestClient(app)
    app.dependency_overrides.clear()


def stored(gateway):
    async def read():
        await gateway.connect()
        return await gateway.find_all()

    return asyncio.run(read())


class TestHealth:
    def test_health_check(self, client):
        res = client.get("/")
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "Healthy"
        assert data["backend"] in ("memory", "sqlite")


class TestAddTodo:
    def test_no_body(self, client, gateway):
        res = client.post("/api/todos/add")
        assert res.status_code == 400
        assert res.json() == {"message": "No body!"}
        assert gateway.connected is False

    def test_json_null_body(self, client):
        res = client.post("/api/todos/add", content="null", headers={"Content-Type": "application/json"})
        assert res.status_code == 400
        assert res.json() == {"message": "No body!"}

    def test_malformed_json(self, client, gateway):
        res = client.post("/api/todos/add", content="{oops", headers={"Content-Type": "application/json"})
        assert res.status_code == 400
        assert res.json() == {"message": "Malformed JSON body!"}
        assert gateway.connected is False

    def test_empty_object(self, client, gateway):
        res = client.post("/api/todos/add", json={})
        assert res.status_code == 400
        assert res.json() == {"message": "No description!"}
        assert gateway.connected is False

    def test_missing_category(self, client, gateway):
        res = client.post("/api/todos/add", json={"description": "x"})
        assert res.status_code == 400
        assert res.json() == {"message": "No category!"}
        assert gateway.connected is False

    def test_valid_todo_is_stored(self, client, gateway):
        res = client.post("/api/todos/add", json={"description": "x", "category": "y"})
        assert res.status_code == 200
        assert res.json() == {"message": "addTodo"}
        assert stored(gateway) == [{"id": 1, "description": "x", "category": "y", "done": False}]

    def test_strict_category_policy(self, client, gateway):
        app.dependency_overrides[get_settings] = lambda: make_settings(category_policy="strict")
        res = client.post("/api/todos/add", json={"description": "x", "category": "y"})
        assert res.status_code == 400
        assert res.json() == {"message": "Invalid category!"}

        res_ok = client.post("/api/todos/add", json={"description": "x", "category": "hobby"})
        assert res_ok.status_code == 200
        assert [t["category"] for t in stored(gateway)] == ["hobby"]


class TestStorageFailures:
    def test_insert_failure_maps_to_storage_error(self, client):
        app.dependency_overrides[get_gateway] = lambda: BrokenGateway()
        res = client.post("/api/todos/add", json={"description": "x", "category": "y"})
        assert res.status_code == 500
        assert res.json() == {"message": "storage error"}

    def test_list_failure_maps_to_storage_error(self, client):
        app.dependency_overrides[get_gateway] = lambda: BrokenGateway()
        res = client.get("/api/todos")
        assert res.status_code == 500
        assert res.json() == {"message": "storage error"}

    def test_slow_insert_maps_to_storage_timeout(self, client):
        app.dependency_overrides[get_gateway] = lambda: SlowGateway()
        app.dependency_overrides[get_settings] = lambda: make_settings(storage_timeout_seconds=0.05)
        res = client.post("/api/todos/add", json={"description": "x", "category": "y"})
        assert res.status_code == 504
        assert res.json() == {"message": "storage timeout"}

    def test_slow_list_maps_to_storage_timeout(self, client):
        app.dependency_overrides[get_gateway] = lambda: SlowListGateway()
        app.dependency_overrides[get_settings] = lambda: make_settings(storage_timeout_seconds=0.05)
        res = client.get("/api/todos")
        assert res.status_code == 504
        assert res.json() == {"message": "storage timeout"}

    def test_slow_connect_times_out_and_next_request_reconnects(self, client):
        gw = SlowFirstOpenGateway()
        app.dependency_overrides[get_gateway] = lambda: gw
        app.dependency_overrides[get_settings] = lambda: make_settings(storage_timeout_seconds=0.05)

        res = client.post("/api/todos/add", json={"description": "x", "category": "y"})
        assert res.status_code == 504
        assert res.json() == {"message": "storage timeout"}
        assert gw.connected is False

        res_retry = client.post("/api/todos/add", json={"description": "x", "category": "y"})
        assert res_retry.status_code == 200
        assert gw.open_calls == 2
        assert len(stored(gw)) == 1

    def test_timed_out_sqlite_insert_is_not_stored(self, client, tmp_path):
        path = str(tmp_path / "todos.db")
        app.dependency_overrides[get_gateway] = lambda: SlowSQLiteGateway(path)
        app.dependency_overrides[get_settings] = lambda: make_settings(storage_timeout_seconds=0.1)

        res = client.post("/api/todos/add", json={"description": "x", "category": "y"})
        assert res.status_code == 504
        assert res.json() == {"message": "storage timeout"}

        # Let the abandoned worker thread finish
        time.sleep(0.5)
        assert stored(SQLiteGateway(path)) == []


class TestListTodos:
    def test_empty_store(self, client):
        res = client.get("/api/todos")
        assert res.status_code == 200
        assert res.json() == []

    def test_lists_added_todos(self, client):
        client.post("/api/todos/add", json={"description": "Buy milk", "category": "shopping"})
        client.post("/api/todos/add", json={"description": "Read book", "category": "learning"})

        res = client.get("/api/todos")
        assert res.status_code == 200
        assert res.json() == [
            {"id": 1, "description": "Buy milk", "category": "shopping", "done": False},
            {"id": 2, "description": "Read book", "category": "learning", "done": False},
        ]


class TestRequestLogging:
    def test_handlers_log_request_path(self, client, caplog):
        caplog.set_level(logging.DEBUG, logger="todo_api.handlers")
        client.post("/api/todos/add", json={"description": "x", "category": "y"})
        client.get("/api/todos")
        assert "addTodo /api/todos/add" in caplog.text
        assert "getTodos /api/todos" in caplog.text
