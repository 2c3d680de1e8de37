"""
Shared test fixtures.

The Supabase mock keeps rows per table, so a service under test sees its
own inserts and updates on the next query.
"""

import os
import sys
from pathlib import Path

# Add project directory to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

# Settings are loaded at import time
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
from unittest.mock import patch
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Generator, Optional
from uuid import uuid4

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: Any = None, count: int = None):
        self.data = data if data is not None else []
        if count is not None:
            self.count = count
        else:
            self.count = len(self.data) if isinstance(self.data, list) else int(bool(self.data))


def _sort_key(value: Any) -> tuple:
    if value is None:
        return (2, "")
    if isinstance(value, (int, float)):
        return (0, value)
    return (1, str(value))


def _matches(row: dict, filters: list) -> bool:
    for op, column, value in filters:
        current = row.get(column)
        if op == "eq" and str(current) != str(value):
            return False
        if op == "neq" and str(current) == str(value):
            return False
        if op in ("lte", "gte"):
            if current is None:
                return False
            if op == "lte" and not str(current) <= str(value):
                return False
            if op == "gte" and not str(current) >= str(value):
                return False
    return True


class MockSupabaseQuery:
    """
    Chainable query builder backed by MockSupabaseClient's tables.

    Filters apply to select, update and delete. Nothing runs until
    execute().
    """

    def __init__(self, client: "MockSupabaseClient", table: str):
        self._client = client
        self._table = table
        self._operation = "select"
        self._payload: Any = None
        self._filters: list = []
        self._order: Optional[tuple[str, bool]] = None
        self._limit: Optional[int] = None
        self._range: Optional[tuple[int, int]] = None
        self._is_single = False
        self._count: Optional[str] = None

    def select(self, *args, count: str = None, **kwargs):
        self._operation = "select"
        self._count = count
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
        self._filters.append(("eq", column, value))
        return self

    def neq(self, column, value):
        self._filters.append(("neq", column, value))
        return self

    def lte(self, column, value):
        self._filters.append(("lte", column, value))
        return self

    def gte(self, column, value):
        self._filters.append(("gte", column, value))
        return self

    def single(self):
        self._is_single = True
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._order = (column, desc)
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self) -> MockSupabaseResponse:
        self._client.calls.append((self._table, self._operation, deepcopy(self._payload)))

        error = self._client._errors.get((self._table, self._operation)) \
            or self._client._errors.get((self._table, None))
        if error is not None:
            raise error

        rows = self._client._tables.setdefault(self._table, [])

        if self._operation == "insert":
            items = self._payload if isinstance(self._payload, list) else [self._payload]
            inserted = []
            for item in items:
                row = {
                    "id": str(uuid4()),
                    "created_at": datetime.now(timezone.utc).isoformat(),
                    **deepcopy(item),
                }
                rows.append(row)
                inserted.append(deepcopy(row))
            return MockSupabaseResponse(data=inserted)

        matched = [row for row in rows if _matches(row, self._filters)]

        if self._operation == "update":
            for row in matched:
                row.update(deepcopy(self._payload))
            return MockSupabaseResponse(data=deepcopy(matched))

        if self._operation == "delete":
            self._client._tables[self._table] = [row for row in rows if row not in matched]
            return MockSupabaseResponse(data=deepcopy(matched))

        total = len(matched)
        if self._order is not None:
            column, desc = self._order
            matched = sorted(matched, key=lambda row: _sort_key(row.get(column)), reverse=desc)
        if self._range is not None:
            start, end = self._range
            matched = matched[start:end + 1]
        if self._limit is not None:
            matched = matched[:self._limit]

        data = deepcopy(matched)
        if self._is_single:
            return MockSupabaseResponse(data=data[0] if data else None)
        return MockSupabaseResponse(data=data, count=total if self._count else None)


class MockSupabaseClient:
    """Mock Supabase client with in-memory tables."""

    def __init__(self):
        self._tables: dict[str, list[dict]] = {}
        self._errors: dict[tuple[str, Optional[str]], Exception] = {}
        self.calls: list[tuple[str, str, Any]] = []

    def set_table_data(self, table_name: str, data: list):
        """Seed a table."""
        self._tables[table_name] = deepcopy(data)

    def get_table_data(self, table_name: str) -> list[dict]:
        """Current rows of a table."""
        return self._tables.get(table_name, [])

    def set_error(self, table_name: str, error: Exception, operation: str = None):
        """Make every (or one kind of) query on a table raise `error`."""
        self._errors[(table_name, operation)] = error

    def clear_error(self, table_name: str, operation: str = None):
        self._errors.pop((table_name, operation), None)

    def table(self, name: str) -> MockSupabaseQuery:
        return MockSupabaseQuery(self, name)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("products", [
                {"id": "1", "name": "Caesar Salad", "attributes": {}}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Any service built inside the test gets the mock from
    get_supabase_client(), and the orchestrator singleton is rebuilt.
    """
    import services.product_import_service as product_import_module

    product_import_module._service = None
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.catalog_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.import_job_service.get_supabase_client", return_value=mock_supabase):
                yield mock_supabase
    product_import_module._service = None


# ===================
# SAMPLE FILES
# ===================

@pytest.fixture
def sample_csv() -> bytes:
    """Two products with French translations, one without an id."""
    return (
        "id,name,price,description_fr-FR,name_fr-FR\n"
        "\n"
        "p-1,Caesar Salad,12.50,Salade fraîche,Salade César\n"
        ",Tomato Soup,8,Soupe,Soupe à la tomate\n"
    ).encode("utf-8")


@pytest.fixture
def sample_json() -> bytes:
    return (
        b'[{"id": "p-1", "name": "Caesar Salad", "price": 12.5, "vegan": false,'
        b' "description_fr-FR": "Salade"},'
        b' {"name": "Tomato Soup", "price": 8, "vegan": true}]'
    )


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client, mock_supabase):
            mock_supabase.set_table_data("product_imports", [...])
            response = test_client.get("/api/product-imports")
    """
    from fastapi.testclient import TestClient
    from main import app

    with patch("main.check_connection", return_value={"status": "healthy", "products_count": 0, "imports_count": 0}):
        yield TestClient(app)
