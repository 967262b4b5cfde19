"""Shared pytest fixtures for the memo API tests."""

import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest

# Set test environment variables before importing app modules
_TEST_DIR = tempfile.mkdtemp(prefix="memo-tests-")
os.environ["MEMO_DB_PATH"] = os.path.join(_TEST_DIR, "default.db")
os.environ["PASSWORD_HASH_ITERATIONS"] = "1000"
os.environ["LOG_LEVEL"] = "WARNING"

from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from memo_website.backend.main import create_app  # noqa: E402
from memo_website.backend.services import AuthService, Database, MemoService, Storage  # noqa: E402

PASSWORD = "Secret-pass1!"


class FakeClock:
    """Deterministic timestamps: each call returns the next second."""

    def __init__(self) -> None:
        self.tick = 0

    def __call__(self) -> str:
        self.tick += 1
        return f"2026-01-01T00:{self.tick // 60:02d}:{self.tick % 60:02d}.000000+00:00"


# -----------------------------------------------------------------------------
# Database and service fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "memos.db"


@pytest.fixture
def database(db_path: Path) -> Database:
    return Database(str(db_path))


@pytest.fixture
def auth(database: Database) -> AuthService:
    return AuthService(database)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memo_service(database: Database, clock: FakeClock) -> MemoService:
    return MemoService(Storage(database), clock)


@pytest.fixture
def alice(auth: AuthService) -> str:
    """User id of a registered user."""
    return auth.register("alice@example.com", PASSWORD, name="Alice").id


@pytest.fixture
def bob(auth: AuthService) -> str:
    return auth.register("bob@example.com", PASSWORD, name="Bob").id


# -----------------------------------------------------------------------------
# FastAPI app fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def app(db_path: Path) -> FastAPI:
    return create_app(str(db_path))


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def login_headers(client: TestClient, email: str, password: str = PASSWORD) -> dict[str, str]:
    """Register (if needed) and log in, returning bearer headers.

    The session cookie set by /auth/login is dropped so each request is
    authenticated only by the headers it is given.
    """
    client.post("/auth/register", json={"email": email, "password": password})
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def alice_headers(client: TestClient) -> dict[str, str]:
    return login_headers(client, "alice@example.com")


@pytest.fixture
def bob_headers(client: TestClient) -> dict[str, str]:
    return login_headers(client, "bob@example.com")
