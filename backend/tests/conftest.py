"""
Test fixtures for the Field Service permission engine and API.

Engine tests use the default (metadata-derived) permission configuration.
API tests run the FastAPI app in-process over httpx's ASGI transport with
the database dependency replaced by ``FakeDatabase``, which records every
SQL statement and its parameters instead of talking to PostgreSQL.
"""
import copy
from typing import Any

import httpx
import pytest
import pytest_asyncio
from jose import jwt

from fieldservice.config import settings
from fieldservice.database import get_db
from fieldservice.rbac.deriver import derive_permission_document
from fieldservice.rbac.evaluator import PermissionEvaluator
from fieldservice.rbac.loader import PermissionConfig, load_permission_config



# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_token(role: str | None = "admin", user_id: Any = 1, **claims: Any) -> str:
    """Sign a JWT the way the identity provider would."""
    payload: dict[str, Any] = {"user_id": user_id, **claims}
    if role is not None:
        payload["role"] = role
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers(role: str | None = "admin", user_id: Any = 1) -> dict:
    """Return auth header dict for a given role."""
    return {"Authorization": f"Bearer {make_token(role, user_id)}"}


class FakeResult:
    def __init__(self, rows: list[dict]):
        self._rows = rows

    def mappings(self):
        return self

    def all(self) -> list[dict]:
        return list(self._rows)


class FakeDatabase:
    """Stands in for ``AsyncSession``: records SQL, returns canned rows."""

    def __init__(self):
        self.rows: list[dict] = []
        self.queries: list[tuple[str, tuple]] = []
        self.commits = 0

    async def connection(self):
        return self

    async def exec_driver_sql(self, sql: str, params: tuple = ()):
        self.queries.append((sql, tuple(params)))
        if sql.startswith("SELECT COUNT(*)"):
            return FakeResult([{"total": len(self.rows)}])
        return FakeResult([dict(row) for row in self.rows])

    async def commit(self):
        self.commits += 1

    async def close(self):
        pass

    @property
    def last_sql(self) -> str:
        return self.queries[-1][0]

    @property
    def last_params(self) -> tuple:
        return self.queries[-1][1]


# ---------------------------------------------------------------------------
# Permission engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def config() -> PermissionConfig:
    """Default configuration derived from entity metadata."""
    return load_permission_config()


@pytest.fixture(scope="session")
def evaluator(config) -> PermissionEvaluator:
    return PermissionEvaluator(config)


@pytest.fixture
def document() -> dict:
    """A fresh, mutable copy of the derived permission document."""
    return copy.deepcopy(derive_permission_document())


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def app(config, fake_db):
    from fieldservice.main import create_app

    application = create_app(config)

    async def _get_fake_db():
        yield fake_db

    application.dependency_overrides[get_db] = _get_fake_db
    return application


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client bound to the in-process app."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def headers_for():
    """``headers_for(role, user_id)`` -> Authorization header dict."""
    return auth_headers


@pytest.fixture
def token_for():
    return make_token
