"""
Shared pytest fixtures for quote tests.

Provides:
- Environment setup before the app is imported
- Row factories for quotes and material items
- In-memory fake of the Supabase client (filters, ordering, upsert, rpc)
- Authenticated and anonymous test clients for the FastHTML app
"""

import pytest
import os
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch
from uuid import uuid4

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set test environment before importing app
os.environ["TESTING"] = "true"
os.environ["SUPABASE_URL"] = "https://test.supabase.co"
os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
os.environ["APP_SECRET"] = "test-secret"


# ============================================================================
# MOCK FACTORIES
# ============================================================================

def make_uuid():
    """Generate a UUID string."""
    return str(uuid4())


def make_quote_row(
    quote_id=None,
    user_id=None,
    category="Serviços de Pintura",
    description="Pintura de paredes e teto",
    labor_value_cents=285000,
    needs_material=False,
    created_at=None,
):
    """Create a quotes table row."""
    return {
        "id": quote_id or make_uuid(),
        "user_id": user_id or make_uuid(),
        "category_name_snapshot": category,
        "service_description": description,
        "labor_value_cents": labor_value_cents,
        "needs_material": needs_material,
        "created_at": created_at or datetime.now(timezone.utc).isoformat(),
    }


def make_material_row(quote_id, description="Tinta acrílica branca", quantity="2 latas", sort_order=0):
    """Create a quote_material_items table row."""
    return {
        "id": make_uuid(),
        "quote_id": quote_id,
        "description": description,
        "quantity": quantity,
        "sort_order": sort_order,
    }


def days_ago(days):
    return (datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc) - timedelta(days=days)).isoformat()


# ============================================================================
# SUPABASE FAKE
# ============================================================================

class MockSupabaseResponse:
    """Mock response from Supabase queries."""
    def __init__(self, data=None, error=None):
        self.data = data if data is not None else []
        self.error = error


class MockSupabaseQuery:
    """Mock Supabase query builder over an in-memory table."""

    def __init__(self, client, table_name):
        self.client = client
        self.table_name = table_name
        self._filters = []
        self._order = []
        self._limit = None
        self._write = None

    @property
    def _rows(self):
        return self.client._tables.setdefault(self.table_name, [])

    def select(self, columns="*", count=None):
        return self

    def insert(self, data):
        self._write = ("insert", data, None)
        return self

    def upsert(self, data, on_conflict=""):
        self._write = ("upsert", data, on_conflict or "id")
        return self

    def eq(self, column, value):
        self._filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self._order.append((column, desc))
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self):
        self.client.calls.append((self.table_name, self._write[0] if self._write else "select", list(self._filters)))

        if self._write:
            kind, data, key = self._write
            rows = data if isinstance(data, list) else [data]
            for row in rows:
                row = dict(row)
                if kind == "upsert":
                    existing = [r for r in self._rows if r.get(key) == row.get(key)]
                    if existing:
                        existing[0].update(row)
                        continue
                self._rows.append(row)
            return MockSupabaseResponse(data=rows)

        result = [r for r in self._rows if all(r.get(col) == val for col, val in self._filters)]
        for column, desc in reversed(self._order):
            result = sorted(result, key=lambda r: r.get(column), reverse=desc)
        if self._limit is not None:
            result = result[:self._limit]
        return MockSupabaseResponse(data=[dict(r) for r in result])


class MockRpc:
    """Mock for client.rpc(...).execute()"""

    def __init__(self, client, name, params):
        self.client = client
        self.name = name
        self.params = params

    def execute(self):
        self.client.rpc_calls.append((self.name, self.params))
        handler = self.client.rpc_handlers.get(self.name)
        return MockSupabaseResponse(data=handler(self.params) if handler else [])


class MockSupabaseClient:
    """Mock Supabase client for testing."""

    def __init__(self, user_id=None):
        self._tables = {}
        self.calls = []
        self.rpc_calls = []
        self.user_id = user_id
        self.rpc_handlers = {"create_quote_with_materials": self._create_quote_with_materials}
        self.auth = MagicMock()

    def set_table_data(self, table_name, data):
        """Set mock data for a table."""
        self._tables[table_name] = [dict(r) for r in data]

    def rows(self, table_name):
        return self._tables.get(table_name, [])

    def table(self, name):
        """Return a mock query for the table."""
        return MockSupabaseQuery(self, name)

    def rpc(self, name, params=None):
        return MockRpc(self, name, params or {})

    def _create_quote_with_materials(self, params):
        # Mirrors migrations/001_quotes.sql for the signed-in user
        quote = make_quote_row(
            user_id=self.user_id,
            category=params["p_category_name"],
            description=params["p_service_description"],
            labor_value_cents=params["p_labor_value_cents"],
            needs_material=params["p_needs_material"],
        )
        self._tables.setdefault("quotes", []).append(quote)
        if quote["needs_material"]:
            for m in params["p_materials"]:
                self._tables.setdefault("quote_material_items", []).append(
                    make_material_row(quote["id"], m["description"], m["quantity"], m["sort_order"])
                )
        return [quote]


@pytest.fixture
def user_id():
    return make_uuid()


@pytest.fixture
def mock_supabase(user_id):
    """Create a mock Supabase client acting as user_id."""
    return MockSupabaseClient(user_id=user_id)


@pytest.fixture
def auth_context(mock_supabase, user_id):
    from services.auth_service import AuthContext
    return AuthContext(user_id=user_id, email="pintor@example.com", client=mock_supabase)


# ============================================================================
# APP CLIENT
# ============================================================================

@pytest.fixture
def app_client(auth_context):
    """Test client whose requests resolve to auth_context."""
    from starlette.testclient import TestClient
    from main import app

    with patch("main.resolve_auth", return_value=auth_context):
        yield TestClient(app, follow_redirects=False)


@pytest.fixture
def anon_client():
    """Test client without a Supabase session."""
    from starlette.testclient import TestClient
    from main import app

    with patch("main.resolve_auth", return_value=None):
        yield TestClient(app, follow_redirects=False)
