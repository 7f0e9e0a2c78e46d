"""
Shared test fixtures.

Services are exercised against MockSupabaseClient; routes are exercised
through TestClient with the auth lookup and service getters patched.
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are loaded at import time and require these
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")

import pytest
from unittest.mock import patch
from datetime import datetime
from typing import Generator

from models.user import UserContext, UserRole
from services.auth_service import ROLE_PERMISSIONS


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data if data is not None else []
        self.count = count if count is not None else (len(self.data) if isinstance(self.data, list) else 1)


class MockSupabaseQuery:
    """
    Mock Supabase query builder with chainable methods.

    Filters are accepted and ignored; the configured rows come back as-is.
    Inserts, updates and upserts are recorded on the owning client.
    """

    def __init__(self, client: "MockSupabaseClient", table: str, data: list = None, count: int = None):
        self._client = client
        self._table = table
        self._data = data or []
        self._count = count
        self._is_single = False

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        # Simulate insert - add id and timestamps
        rows = [data] if isinstance(data, dict) else list(data)
        stored = []
        for item in rows:
            item = dict(item)
            item.setdefault("id", "test-uuid-123")
            item.setdefault("created_at", datetime.utcnow().isoformat() + "Z")
            stored.append(item)
        self._client.inserted.setdefault(self._table, []).extend(stored)
        self._data = stored
        return self

    def update(self, data):
        # Simulate update - merge with existing data
        self._client.updated.setdefault(self._table, []).append(data)
        self._data = [{**item, **data} for item in self._data]
        return self

    def upsert(self, data, **kwargs):
        self._client.upserted.setdefault(self._table, []).append(data)
        self._data = [data] if isinstance(data, dict) else list(data)
        return self

    def delete(self):
        self._client.deleted.append(self._table)
        return self

    def eq(self, column, value):
        return self

    def neq(self, column, value):
        return self

    def gt(self, column, value):
        return self

    def gte(self, column, value):
        return self

    def lt(self, column, value):
        return self

    def lte(self, column, value):
        return self

    def in_(self, column, values):
        return self

    def is_(self, column, value):
        return self

    def ilike(self, column, pattern):
        return self

    def or_(self, filters):
        return self

    def contains(self, column, value):
        return self

    @property
    def not_(self):
        return self

    def single(self):
        self._is_single = True
        return self

    def order(self, column, **kwargs):
        return self

    def range(self, start, end):
        return self

    def limit(self, count):
        return self

    def execute(self) -> MockSupabaseResponse:
        error = self._client.errors.get(self._table)
        if error is not None:
            raise error
        if self._is_single:
            data = self._data[0] if self._data else None
            return MockSupabaseResponse(data=data, count=1 if data else 0)
        return MockSupabaseResponse(
            data=self._data,
            count=self._count if self._count is not None else len(self._data)
        )


class MockRpcCall:
    def __init__(self, client: "MockSupabaseClient", name: str, params: dict):
        client.rpc_calls.append((name, params))

    def execute(self) -> MockSupabaseResponse:
        return MockSupabaseResponse(data=[])


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables = {}
        self.errors: dict[str, Exception] = {}
        self.inserted: dict[str, list] = {}
        self.updated: dict[str, list] = {}
        self.upserted: dict[str, list] = {}
        self.deleted: list[str] = []
        self.rpc_calls: list[tuple] = []

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = {"data": data, "count": count}

    def set_table_error(self, table_name: str, error: Exception):
        """Make every query on the table raise."""
        self.errors[table_name] = error

    def table(self, name: str) -> MockSupabaseQuery:
        config = self._tables.get(name, {"data": [], "count": None})
        return MockSupabaseQuery(self, name, [dict(row) for row in config["data"]], config["count"])

    def rpc(self, name: str, params: dict = None) -> MockRpcCall:
        return MockRpcCall(self, name, params or {})


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("customers", [
                {"id": "1", "name": "Acme", ...}
            ])
    """
    return MockSupabaseClient()


def make_user(role: UserRole, **overrides) -> UserContext:
    fields = {
        "id": f"user-{role.value}",
        "email": f"{role.value}@example.com",
        "full_name": f"Test {role.value.title()}",
        "role": role,
        "permissions": sorted(ROLE_PERMISSIONS[role]),
    }
    fields.update(overrides)
    return UserContext(**fields)


@pytest.fixture
def admin_user() -> UserContext:
    return make_user(UserRole.ADMIN)


@pytest.fixture
def viewer_user() -> UserContext:
    return make_user(UserRole.VIEWER)


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/health")
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)


@pytest.fixture
def login() -> Generator:
    """
    Authenticate every request as the given user.

    Usage:
        def test_endpoint(test_client, login, admin_user, auth_headers):
            login(admin_user)
            response = test_client.get("/api/clients", headers=auth_headers)
    """
    patcher = patch("services.auth_service.get_user_context")
    mocked = patcher.start()
    mocked.return_value = None

    def _login(user):
        mocked.return_value = user
        return user

    yield _login
    patcher.stop()


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": "Bearer test-token"}
