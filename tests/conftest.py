"""Shared fixtures: an in-memory Supabase stand-in and a TestClient wired to it."""

import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from textock.database.supabase_client import get_service_supabase, get_supabase
from textock.main import app
from textock.modules.auth.schemas import CurrentUser, SessionContext
from textock.modules.auth.service import clear_user_cache
from textock.modules.templates.service import TemplateService

USER_ID = "user-1"
USER_EMAIL = "sam@example.com"
USER_PASSWORD = "secret-pass"
USER_TOKEN = f"token-{USER_ID}"


# ============================================================================
# In-memory Supabase
# ============================================================================

class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """Subset of the postgrest query builder used by the services."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.action = "select"
        self.payload = None
        self.filters = []
        self.sort = None
        self.single = False
        self.count = None

    def select(self, *columns, count=None):
        self.action = "select"
        self.count = count
        return self

    def insert(self, payload):
        self.action = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.action = "update"
        self.payload = payload
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def contains(self, column, values):
        self.filters.append(lambda row: all(v in (row.get(column) or []) for v in values))
        return self

    def order(self, column, desc=False):
        self.sort = (column, desc)
        return self

    def maybe_single(self):
        self.single = True
        return self

    def _matching(self, rows):
        return [row for row in rows if all(check(row) for check in self.filters)]

    def execute(self):
        self.db.calls.append((self.table, self.action))
        if self.action in self.db.fail_on:
            raise RuntimeError("backend unavailable")
        rows = self.db.tables.setdefault(self.table, [])

        if self.action == "insert":
            payloads = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for payload in payloads:
                stamp = self.db.tick()
                row = {"id": str(uuid.uuid4()), "created_at": stamp, "updated_at": stamp, **payload}
                rows.append(row)
                inserted.append(dict(row))
            return FakeResponse(inserted)

        matched = self._matching(rows)
        if self.action == "update":
            for row in matched:
                row.update(self.payload)
            return FakeResponse([dict(row) for row in matched])
        if self.action == "delete":
            self.db.tables[self.table] = [row for row in rows if row not in matched]
            return FakeResponse([dict(row) for row in matched])

        result = [dict(row) for row in matched]
        if self.sort:
            column, desc = self.sort
            result.sort(key=lambda row: row.get(column) or "", reverse=desc)
        if self.single:
            # supabase-py returns None instead of a response when maybe_single finds nothing
            return FakeResponse(result[0]) if result else None
        return FakeResponse(result, count=len(result) if self.count else None)


class FakeAuth:
    def __init__(self):
        self.users = {}
        self.tokens = {}
        self.signed_out = 0

    def add_user(self, user_id, email, password):
        user = SimpleNamespace(id=user_id, email=email)
        self.users[email] = (user, password)
        self.tokens[f"token-{user_id}"] = user
        return user

    def sign_up(self, credentials):
        if credentials["email"] in self.users:
            raise Exception("User already registered")
        user = self.add_user(str(uuid.uuid4()), credentials["email"], credentials["password"])
        return SimpleNamespace(user=user, session=None)

    def sign_in_with_password(self, credentials):
        entry = self.users.get(credentials["email"])
        if entry is None or entry[1] != credentials["password"]:
            raise Exception("Invalid login credentials")
        user = entry[0]
        return SimpleNamespace(user=user, session=SimpleNamespace(access_token=f"token-{user.id}"))

    def get_user(self, jwt=None):
        user = self.tokens.get(jwt)
        if user is None:
            raise Exception("invalid JWT: unable to parse or verify signature")
        return SimpleNamespace(user=user)

    def sign_out(self):
        self.signed_out += 1


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.fail_on = set()
        self.auth = FakeAuth()
        self._clock = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def tick(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def table(self, name):
        return FakeQuery(self, name)

    def actions(self, table="templates"):
        return [action for name, action in self.calls if name == table]

    def seed_template(self, user_id=USER_ID, **fields):
        stamp = self.tick()
        row = {
            "id": str(uuid.uuid4()),
            "title": "Greeting",
            "content": "Hello {{name}}",
            "description": "",
            "category": "general",
            "tags": [],
            "variables": [{"name": "name", "type": "text", "required": True}],
            "is_public": False,
            "is_markdown": False,
            "user_id": user_id,
            "created_at": stamp,
            "updated_at": stamp,
        }
        row.update(fields)
        self.tables.setdefault("templates", []).append(row)
        return dict(row)


# ============================================================================
# Shared Fixtures
# ============================================================================

@pytest.fixture
def fake_supabase():
    fake = FakeSupabase()
    fake.auth.add_user(USER_ID, USER_EMAIL, USER_PASSWORD)
    return fake


@pytest.fixture
def template_service(fake_supabase):
    return TemplateService(fake_supabase)


@pytest.fixture
def session_context():
    return SessionContext(user=CurrentUser(id=USER_ID, email=USER_EMAIL))


@pytest.fixture
def client(fake_supabase):
    """FastAPI TestClient backed by the in-memory Supabase."""
    clear_user_cache()
    app.dependency_overrides[get_supabase] = lambda: fake_supabase
    app.dependency_overrides[get_service_supabase] = lambda: fake_supabase
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
    clear_user_cache()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {USER_TOKEN}"}
