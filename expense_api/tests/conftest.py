from __future__ import annotations

import pathlib
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from expense_api import security
from expense_api.config import Settings
from expense_api.database import Database
from expense_api.server import create_app

TEST_SECRET = "test-signing-secret"


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep PBKDF2 cheap so the suite stays fast."""

    monkeypatch.setattr(security, "HASH_ITERATIONS", 1_000)


@pytest.fixture()
def settings() -> Settings:
    return Settings(jwt_secret=TEST_SECRET, database_url="sqlite://")


@pytest.fixture()
def database():
    test_database = Database("sqlite://", poolclass=StaticPool)
    test_database.init()
    yield test_database
    test_database.dispose()


@pytest.fixture()
def db_session(database):
    with database.session() as session:
        yield session


@pytest.fixture()
def app(settings, database):
    return create_app(settings, database)


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def auth_headers(client):
    """Return a factory registering a user and building its bearer headers."""

    def _factory(identifier: str, secret: str = "pw1") -> dict[str, str]:
        register = client.post("/auth/register", json={"identifier": identifier, "secret": secret})
        assert register.status_code == 201, register.text
        login = client.post("/auth/login", json={"identifier": identifier, "secret": secret})
        assert login.status_code == 200, login.text
        return {"Authorization": f"Bearer {login.json()['token']}"}

    return _factory
