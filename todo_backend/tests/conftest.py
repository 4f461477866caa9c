import os

import pytest

# Ensure we default to memory backend for tests to avoid filesystem dependencies
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from todo_api.settings import Settings  # noqa: E402


def make_settings(**overrides) -> Settings:
    values = {
        "persistence_backend": "memory",
        "sqlite_db_path": "./data/todos.db",
        "cors_allow_origins": ["*"],
        "category_policy": "lenient",
        "storage_timeout_seconds": 5.0,
        "log_level": "INFO",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()
