"""
Shared fixtures: an in-memory stand-in for the supabase query builder and
a TestClient wired to it through FastAPI dependency overrides.
"""

import copy
import re
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.core.access_policy import Actor


class FakeResult:
    def __init__(self, data):
        self.data = data


def _like_to_regex(pattern):
    """PostgreSQL LIKE semantics: % is any run, _ is one character, backslash escapes."""
    parts = []
    chars = iter(pattern)
    for ch in chars:
        if ch == "\\":
            parts.append(re.escape(next(chars, "\\")))
        elif ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return "".join(parts)


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self._order = None
        self._limit = None
        self._offset = 0
        self._single = False

    def select(self, columns="*"):
        self.op = "select"
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.op = "update"
        self.payload = payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def is_(self, column, value):
        assert value == "null"
        self.filters.append(lambda row: row.get(column) is None)
        return self

    def ilike(self, column, pattern):
        regex = re.compile(_like_to_regex(pattern), re.IGNORECASE | re.DOTALL)
        self.filters.append(lambda row: row.get(column) is not None and regex.fullmatch(row[column]) is not None)
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def offset(self, count):
        self._offset = count
        return self

    def single(self):
        self._single = True
        return self

    def maybe_single(self):
        self._single = True
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        for hook in list(self.db.hooks):
            hook(self.table, self.op)
        if self.table in self.db.failing_tables:
            raise RuntimeError(f"{self.table} unavailable")
        self.db.calls.append((self.table, self.op))
        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for item in payload:
                row = copy.deepcopy(item)
                row.setdefault("id", str(uuid.uuid4()))
                row.setdefault("created_at", self.db.next_timestamp())
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            return FakeResult(inserted)

        matched = [row for row in rows if self._matches(row)]

        if self.op == "update":
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return FakeResult([copy.deepcopy(row) for row in matched])

        if self.op == "delete":
            for row in matched:
                rows.remove(row)
            return FakeResult([copy.deepcopy(row) for row in matched])

        selected = [copy.deepcopy(row) for row in matched]
        if self._order:
            column, desc = self._order
            selected.sort(key=lambda row: str(row.get(column) or ""), reverse=desc)
        selected = selected[self._offset:]
        if self._limit is not None:
            selected = selected[:self._limit]
        if self._single:
            return FakeResult(selected[0] if selected else None)
        return FakeResult(selected)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.hooks = []
        self.failing_tables = set()
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def next_timestamp(self):
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def table(self, name):
        return FakeQuery(self, name)

    def rows(self, name):
        return self.tables.setdefault(name, [])

    def seed(self, name, *rows):
        for row in rows:
            self.rows(name).append(copy.deepcopy(row))


USERS = [
    {"id": "admin-1", "email": "admin1@studio.test", "name": "Admin One", "role": "admin", "is_active": True},
    {"id": "admin-2", "email": "admin2@studio.test", "name": "Admin Two", "role": "admin", "is_active": True},
    {"id": "admin-3", "email": "admin3@studio.test", "name": "Former Admin", "role": "admin", "is_active": False},
    {"id": "recep-1", "email": "desk@studio.test", "name": "Front Desk", "role": "receptionist", "is_active": True},
    {"id": "manager-1", "email": "manager@studio.test", "name": "Studio Manager", "role": "manager", "is_active": True},
    {"id": "photographer-1", "email": "photo@studio.test", "name": "Pat Photo", "role": "photographer", "is_active": True},
    {"id": "editor-1", "email": "edit@studio.test", "name": "Eddie Edit", "role": "editor", "is_active": True},
    {"id": "designer-1", "email": "design@studio.test", "name": "Dana Design", "role": "designer", "is_active": True},
    {"id": "client-user-1", "email": "client@example.com", "name": "Acme Owner", "role": "client", "is_active": True},
    {"id": "client-user-2", "email": "other@example.com", "name": "Other Client", "role": "client", "is_active": True},
]

CLIENTS = [
    {"id": "client-1", "name": "Acme Weddings", "email": "client@example.com"},
    {"id": "client-2", "name": "Other Co", "email": "other@example.com"},
]


@pytest.fixture
def fake_db():
    db = FakeSupabase()
    db.seed("users", *USERS)
    db.seed("clients", *CLIENTS)
    return db


@pytest.fixture
def make_job():
    def _make_job(**overrides):
        row = {
            "id": "job-1",
            "title": "Smith wedding shoot",
            "type": "photo_session",
            "status": "pending",
            "client_id": "client-1",
            "assigned_to": "photographer-1",
            "due_date": "2026-11-01",
            "updated_at": "2026-10-01T09:00:00+00:00",
        }
        row.update(overrides)
        return row
    return _make_job


def actor_for(user_id):
    user = next(u for u in USERS if u["id"] == user_id)
    return Actor(id=user["id"], role=user["role"], email=user["email"], name=user["name"])


@pytest.fixture
def actor():
    return actor_for


@pytest.fixture
def client(fake_db):
    """TestClient authenticated as whoever `client.login(user_id)` selected (admin-1 by default)."""
    from fastapi.testclient import TestClient
    from app.core.dependencies import get_current_user_id
    from app.database.supabase_client import get_supabase
    from app.main import app

    current = {"id": "admin-1"}

    def _current_user():
        user = next(u for u in USERS if u["id"] == current["id"])
        return {"id": user["id"], "email": user["email"], "user_metadata": {}, "app_metadata": {}}

    app.dependency_overrides[get_supabase] = lambda: fake_db
    app.dependency_overrides[get_current_user_id] = _current_user
    test_client = TestClient(app)

    def login(user_id):
        current["id"] = user_id

    test_client.login = login
    yield test_client
    app.dependency_overrides.clear()
