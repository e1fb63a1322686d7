"""Shared test fixtures and configuration for the test suite."""

from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

# Add the parent directory to the path for imports
import sys

sys.path.append(str(Path(__file__).parent.parent))

from task_api.config import Settings
from task_api.main import create_app
from task_api.services.auth_service import AuthService
from task_api.services.task_service import TaskService
from task_api.services.user_repository import InMemoryUserRepository
from task_api.storage.database import DatabaseTaskStore
from task_api.storage.memory import MemoryTaskStore
from task_api.storage.sqlite import SqliteTaskStore

TEST_JWT_SECRET = "test-jwt-secret-at-least-32-bytes-long"


def build_settings(tmp_path: Path, **overrides) -> Settings:
    """Settings isolated from the developer's environment and filesystem."""
    values = dict(
        storage_backend="memory",
        sqlite_path=tmp_path / "tasks.db",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'relational.db'}",
        log_level="DEBUG",
        log_to_file=False,
        environment="test",
        jwt_secret=TEST_JWT_SECRET,
        bcrypt_rounds=4,
        rate_limit_enabled=False,
        seed_demo_users=False,
        seed_sample_tasks=False,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Create test settings backed by the in-memory store."""
    return build_settings(tmp_path)


@pytest.fixture
def memory_store() -> MemoryTaskStore:
    return MemoryTaskStore()


@pytest.fixture
def task_service(memory_store) -> TaskService:
    """Create a task service over a fresh in-memory store."""
    return TaskService(memory_store)


@pytest.fixture(params=["memory", "sqlite", "database"])
async def store(request, tmp_path):
    """Each task store implementation, initialized and closed around the test."""
    if request.param == "memory":
        task_store = MemoryTaskStore()
    elif request.param == "sqlite":
        task_store = SqliteTaskStore(tmp_path / "store.db")
    else:
        task_store = DatabaseTaskStore(f"sqlite+aiosqlite:///{tmp_path / 'store-sa.db'}")

    await task_store.initialize()
    yield task_store
    await task_store.close()


@pytest.fixture
def auth_service(test_settings) -> AuthService:
    """Create an auth service with an empty user directory."""
    return AuthService(InMemoryUserRepository(), test_settings)


@pytest.fixture
def client(test_settings) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    app = create_app(test_settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def client_factory(tmp_path) -> Callable:
    """Build a test client whose settings override the test defaults."""

    @contextmanager
    def _make(raise_server_exceptions: bool = True, **overrides):
        app = create_app(build_settings(tmp_path, **overrides))
        with TestClient(app, raise_server_exceptions=raise_server_exceptions) as test_client:
            yield test_client

    return _make


@pytest.fixture
def registered_user(client) -> dict:
    """Register a user through the API and return its credentials."""
    credentials = {"username": "alice", "password": "secret123", "email": "alice@example.com"}
    response = client.post("/api/auth/register", json=credentials)
    assert response.status_code == 201
    return credentials


@pytest.fixture
def auth_headers(client, registered_user) -> dict:
    """Authorization header for ``registered_user``."""
    response = client.post(
        "/api/auth/login",
        json={"username": registered_user["username"], "password": registered_user["password"]},
    )
    token = response.json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}


# Test data fixtures
@pytest.fixture
def sample_task_data():
    """Sample task data for testing."""
    return {"title": "Test Task", "description": "d", "status": "pending"}


@pytest.fixture
def sample_tasks_bulk():
    """Tasks covering every status."""
    return [
        {"title": "Task 1", "description": "Description 1", "status": "pending"},
        {"title": "Task 2", "description": "Description 2", "status": "in-progress"},
        {"title": "Task 3", "description": "Description 3", "status": "completed"},
        {"title": "Task 4", "description": "Description 4", "status": "pending"},
    ]
