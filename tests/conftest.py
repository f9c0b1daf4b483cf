import os

os.environ.setdefault("APP_ENVIRONMENT", "test")
os.environ.setdefault("APP_DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient

from firegrid.datasources.base import InMemoryDocumentStore
from firegrid.main import create_app
from firegrid.settings import Settings


@pytest.fixture
def order_rows() -> list[dict]:
    return [
        {"id": 1, "customer": "Ana", "status": "paid", "amount": 120, "createdAt": "2025-01-15"},
        {"id": 2, "customer": "bruno", "status": "pending", "amount": "45.5", "createdAt": "2025-02-03"},
        {"id": 3, "customer": "Carla", "status": "paid", "amount": 300, "createdAt": "2025-02-20"},
        {"id": 4, "customer": "Ana", "status": None, "amount": None, "createdAt": None},
        {"id": 5, "customer": "Dário", "status": "refunded", "amount": "n/a", "createdAt": "2025-03-01"},
    ]


@pytest.fixture
def editor_settings() -> Settings:
    """Long delays so background saves never race the assertions"""
    return Settings(
        environment="test",
        database_url="sqlite://",
        autosave_debounce_seconds=60,
        save_status_saved_seconds=60,
        save_status_error_seconds=60,
    )


@pytest.fixture
def client(editor_settings: Settings):
    """API client over an in-memory document store"""
    app = create_app(editor_settings, store=InMemoryDocumentStore())
    with TestClient(app) as test_client:
        yield test_client
