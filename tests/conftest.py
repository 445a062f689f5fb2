"""
Shared test fixtures.

Run: pytest tests/ -v
"""

import os
import sys
from pathlib import Path

# Add project root to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are loaded at import time
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("SHOPIFY_STORE_DOMAIN", "test-shop.myshopify.com")
os.environ.setdefault("SHOPIFY_ACCESS_TOKEN", "shpat_test")

import pytest
from unittest.mock import patch
from contextlib import ExitStack
from datetime import datetime, timezone
from typing import Generator
from uuid import uuid4

from tests.factories import FakeShopifyClient

# Every module that imports get_supabase_client directly
SUPABASE_CLIENT_TARGETS = (
    "config.database.get_supabase_client",
    "services.import_session_service.get_supabase_client",
    "services.local_catalog_service.get_supabase_client",
    "services.connection_service.get_supabase_client",
    "services.import_configuration_service.get_supabase_client",
)

SERVICE_SINGLETONS = (
    "services.import_service._import_service",
    "services.import_session_service._import_session_service",
    "services.local_catalog_service._local_catalog_service",
    "services.connection_service._connection_service",
    "services.inventory_sync_service._inventory_sync_service",
    "services.schedule_service._schedule_service",
    "services.import_configuration_service._import_configuration_service",
)


# ===================
# MOCK SUPABASE CLIENT
# ===================

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data=None, count: int = None):
        self.data = data if data is not None else []
        self.count = count if count is not None else (len(self.data) if isinstance(self.data, list) else 1)


class MockSupabaseQuery:
    """
    Mock Supabase query builder with chainable methods.

    Filters (eq/neq) apply to select, update and delete; writes persist in
    the owning table.
    """

    def __init__(self, table: "MockSupabaseTable"):
        self._table = table
        self._operation = "select"
        self._payload = None
        self._filters = []
        self._limit = None
        self._is_single = False

    def select(self, *args, **kwargs):
        self._operation = "select"
        return self

    def insert(self, data):
        self._operation = "insert"
        self._payload = data
        return self

    def update(self, data):
        self._operation = "update"
        self._payload = data
        return self

    def delete(self):
        self._operation = "delete"
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def single(self):
        self._is_single = True
        return self

    def order(self, column, **kwargs):
        return self

    def range(self, start, end):
        return self

    def limit(self, count):
        self._limit = count
        return self

    def _matching(self) -> list:
        return [row for row in self._table.rows if all(f(row) for f in self._filters)]

    def execute(self) -> MockSupabaseResponse:
        if self._table.fail_with is not None:
            raise self._table.fail_with

        if self._operation == "insert":
            items = [self._payload] if isinstance(self._payload, dict) else self._payload
            inserted = []
            for item in items:
                row = {"id": str(uuid4()), "created_at": _now(), "updated_at": _now(), **item}
                self._table.rows.append(row)
                inserted.append(dict(row))
            return MockSupabaseResponse(data=inserted)

        matched = self._matching()

        if self._operation == "update":
            for row in matched:
                row.update(self._payload)
                row["updated_at"] = _now()
            return MockSupabaseResponse(data=[dict(row) for row in matched])

        if self._operation == "delete":
            self._table.rows[:] = [row for row in self._table.rows if row not in matched]
            return MockSupabaseResponse(data=[dict(row) for row in matched])

        data = [dict(row) for row in matched]
        if self._limit is not None:
            data = data[:self._limit]
        if self._is_single:
            first = data[0] if data else None
            return MockSupabaseResponse(data=first, count=1 if first else 0)
        return MockSupabaseResponse(data=data, count=self._table.count if self._table.count is not None else len(data))


class MockSupabaseTable:
    """In-memory table."""

    def __init__(self, data: list = None, count: int = None):
        self.rows = [dict(row) for row in (data or [])]
        self.count = count
        self.fail_with = None

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self).select(*args, **kwargs)

    def insert(self, data):
        return MockSupabaseQuery(self).insert(data)

    def update(self, data):
        return MockSupabaseQuery(self).update(data)

    def delete(self):
        return MockSupabaseQuery(self).delete()


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables = {}

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = MockSupabaseTable(data, count)

    def fail_table(self, table_name: str, error: Exception):
        """Make every query against a table raise."""
        self.table(table_name).fail_with = error

    def rows(self, table_name: str) -> list:
        """Current rows of a table (for assertions)."""
        return self.table(table_name).rows

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        if name not in self._tables:
            self._tables[name] = MockSupabaseTable()
        return self._tables[name]


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("imported_products", [
                {"id": "1", "shop": "s.myshopify.com", "sku": "SKU-1", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock and reset service singletons.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("import_sessions", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    with ExitStack() as stack:
        for target in SUPABASE_CLIENT_TARGETS:
            stack.enter_context(patch(target, return_value=mock_supabase))
        for target in SERVICE_SINGLETONS:
            stack.enter_context(patch(target, None))
        yield mock_supabase


@pytest.fixture
def fake_shopify() -> FakeShopifyClient:
    """In-memory Shopify store."""
    return FakeShopifyClient()


@pytest.fixture
def shop() -> str:
    return "test-shop.myshopify.com"


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/health")
            assert response.status_code == 200
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)


@pytest.fixture
def test_client_with_shopify(mock_db, fake_shopify):
    """
    Test client whose services talk to the in-memory Shopify store.

    Usage:
        def test_endpoint(test_client_with_shopify, fake_shopify, mock_supabase):
            response = test_client_with_shopify.post("/api/imports", json={...})
    """
    from fastapi.testclient import TestClient
    from main import app

    with patch("services.import_service.get_shopify_client", return_value=fake_shopify):
        with patch("services.inventory_sync_service.get_shopify_client", return_value=fake_shopify):
            yield TestClient(app)
