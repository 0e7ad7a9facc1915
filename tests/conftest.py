"""Shared fixtures: an in-memory stand-in for the Supabase client and an app wired to it."""

from __future__ import annotations

import copy
import itertools
import uuid
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from app.core.dependencies import get_current_user_id
from app.database.supabase_client import get_service_supabase, get_supabase
from app.main import app
from app.modules.chat.gateway import ChatGateway, get_chat_gateway, get_room_registry
from app.modules.chat.rooms import RoomRegistry

UNIQUE_KEYS = {
    "user_profiles": [("id",)],
    "groups": [("name",)],
    "group_members": [("group_id", "user_id")],
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FakeResponse:
    def __init__(self, data: Any):
        self.data = data


class FakeQuery:
    """Implements the slice of the PostgREST query builder the services use."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns: list[str] | None = None
        self.payload: Any = None
        self.on_conflict: tuple[str, ...] = ()
        self.ignore_duplicates = False
        self.filters: list[Callable[[dict], bool]] = []
        self.orders: list[tuple[str, bool]] = []
        self.row_limit: int | None = None
        self.single = False

    def select(self, columns: str = "*") -> "FakeQuery":
        if columns.strip() != "*":
            self.columns = [c.strip() for c in columns.split(",")]
        return self

    def insert(self, payload: Any) -> "FakeQuery":
        self.op, self.payload = "insert", payload
        return self

    def upsert(self, payload: Any, on_conflict: str = "", ignore_duplicates: bool = False) -> "FakeQuery":
        self.op, self.payload = "upsert", payload
        self.on_conflict = tuple(c.strip() for c in on_conflict.split(",") if c.strip())
        self.ignore_duplicates = ignore_duplicates
        return self

    def update(self, payload: dict) -> "FakeQuery":
        self.op, self.payload = "update", payload
        return self

    def delete(self) -> "FakeQuery":
        self.op = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column: str, values: list) -> "FakeQuery":
        allowed = set(values)
        self.filters.append(lambda row: row.get(column) in allowed)
        return self

    def or_(self, expression: str) -> "FakeQuery":
        clauses = []
        for part in expression.split(","):
            column, operator, pattern = part.split(".", 2)
            assert operator == "ilike"
            clauses.append((column, pattern.strip("*").lower()))
        self.filters.append(
            lambda row: any(term in (row.get(col) or "").lower() for col, term in clauses)
        )
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.orders.append((column, desc))
        return self

    def limit(self, count: int) -> "FakeQuery":
        self.row_limit = count
        return self

    def maybe_single(self) -> "FakeQuery":
        self.single = True
        return self

    def execute(self):
        self.db.check_failure(self.table, self.op)
        rows = self.db.tables.setdefault(self.table, [])
        handler = getattr(self, f"_{self.op}")
        return handler(rows)

    def _matching(self, rows: list[dict]) -> list[dict]:
        return [row for row in rows if all(f(row) for f in self.filters)]

    def _select(self, rows: list[dict]):
        result = self._matching(rows)
        for column, desc in reversed(self.orders):
            result.sort(key=lambda r: (r.get(column) is None, r.get(column)), reverse=desc)
        if self.row_limit is not None:
            result = result[: self.row_limit]
        if self.columns:
            result = [{c: row.get(c) for c in self.columns} for row in result]
        result = copy.deepcopy(result)
        if self.single:
            return FakeResponse(result[0]) if result else None
        return FakeResponse(result)

    def _insert(self, rows: list[dict]):
        payload = self.payload if isinstance(self.payload, list) else [self.payload]
        created = []
        for item in payload:
            row = self.db.with_defaults(self.table, dict(item))
            self.db.check_unique(self.table, row)
            rows.append(row)
            created.append(copy.deepcopy(row))
        return FakeResponse(created)

    def _upsert(self, rows: list[dict]):
        keys = self.on_conflict or ("id",)
        existing = [r for r in rows if all(r.get(k) == self.payload.get(k) for k in keys)]
        if existing:
            if self.ignore_duplicates:
                return FakeResponse([])
            existing[0].update(self.payload)
            return FakeResponse([copy.deepcopy(existing[0])])
        return self._insert(rows)

    def _update(self, rows: list[dict]):
        updated = []
        for row in self._matching(rows):
            row.update(self.payload)
            updated.append(copy.deepcopy(row))
        return FakeResponse(updated)

    def _delete(self, rows: list[dict]):
        removed = self._matching(rows)
        self.db.tables[self.table] = [r for r in rows if r not in removed]
        return FakeResponse(copy.deepcopy(removed))


class FakeAuthError(Exception):
    """Raised with the same messages the Supabase auth client uses"""


class FakeAdminAuth:
    def __init__(self, auth: "FakeAuth"):
        self.auth = auth

    def delete_user(self, user_id: str) -> None:
        if self.auth.users.pop(user_id, None) is None:
            raise FakeAuthError("User not found")
        self.auth.passwords.pop(user_id, None)
        self.auth.tokens = {t: uid for t, uid in self.auth.tokens.items() if uid != user_id}


class FakeAuth:
    """Implements the slice of ``supabase.auth`` the auth service uses."""

    def __init__(self) -> None:
        self.users: dict[str, SimpleNamespace] = {}
        self.passwords: dict[str, str] = {}
        self.tokens: dict[str, str] = {}
        self.sign_outs = 0
        self.admin = FakeAdminAuth(self)

    def add_user(self, email: str, password: str, metadata: dict | None = None, user_id: str | None = None):
        if any(user.email == email for user in self.users.values()):
            raise FakeAuthError("User already registered")
        user = SimpleNamespace(
            id=user_id or str(uuid.uuid4()),
            email=email,
            user_metadata=dict(metadata or {}),
            app_metadata={"provider": "email"},
            created_at=_now(),
            updated_at=None,
        )
        self.users[user.id] = user
        self.passwords[user.id] = password
        return user

    def issue_token(self, user_id: str) -> str:
        token = f"token-{uuid.uuid4()}"
        self.tokens[token] = user_id
        return token

    def sign_up(self, credentials: dict):
        metadata = credentials.get("options", {}).get("data")
        user = self.add_user(credentials["email"], credentials["password"], metadata)
        return SimpleNamespace(user=user, session=None)

    def sign_in_with_password(self, credentials: dict):
        for user in self.users.values():
            if user.email == credentials["email"] and self.passwords[user.id] == credentials["password"]:
                session = SimpleNamespace(access_token=self.issue_token(user.id), token_type="bearer")
                return SimpleNamespace(user=user, session=session)
        raise FakeAuthError("Invalid login credentials")

    def get_user(self, jwt: str | None = None):
        user = self.users.get(self.tokens.get(jwt))
        if user is None:
            raise FakeAuthError("invalid JWT: unable to parse or verify signature")
        return SimpleNamespace(user=user)

    def sign_out(self) -> None:
        self.sign_outs += 1


class FakeSupabase:
    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {}
        self.auth = FakeAuth()
        self.failures: set[tuple[str, str]] = set()
        self._seq = itertools.count(1)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def fail(self, table: str, op: str) -> None:
        """Make every subsequent `op` on `table` fail like an unreachable database"""
        self.failures.add((table, op))

    def check_failure(self, table: str, op: str) -> None:
        if (table, op) in self.failures:
            raise APIError({"message": "connection refused", "code": "08006", "hint": None, "details": None})

    def check_unique(self, table: str, row: dict) -> None:
        for key in UNIQUE_KEYS.get(table, []):
            for other in self.tables.get(table, []):
                if all(other.get(k) == row.get(k) for k in key):
                    raise APIError({"message": "duplicate key value", "code": "23505", "hint": None, "details": None})

    def with_defaults(self, table: str, row: dict) -> dict:
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", _now())
        if table == "messages":
            row["sent_at"] = _now()
            row["seq"] = next(self._seq)
        if table == "group_members":
            row.setdefault("role", "member")
        return row

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])


@pytest.fixture
def db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def make_user(db: FakeSupabase) -> Callable[..., str]:
    def _make_user(full_name: str, role: str = "consumer", avatar_url: str | None = None) -> str:
        user_id = str(uuid.uuid4())
        email = f"{full_name.lower().replace(' ', '.')}.{user_id[:8]}@example.com"
        db.auth.add_user(email, "secret-password", {"full_name": full_name, "role": role}, user_id=user_id)
        db.table("user_profiles").insert({
            "id": user_id,
            "email": email,
            "full_name": full_name,
            "avatar_url": avatar_url,
            "role": role,
        }).execute()
        return user_id

    return _make_user


@pytest.fixture
def token_for(db: FakeSupabase) -> Callable[[str], str]:
    """Issues an access token for a user created with make_user"""
    return db.auth.issue_token


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def current_user() -> dict:
    """The caller seen by authenticated routes; tests set current_user["id"]."""
    return {"id": None, "email": None, "user_metadata": {}, "app_metadata": {}}


@pytest.fixture
def client(db: FakeSupabase, registry: RoomRegistry, current_user: dict):
    gateway = ChatGateway(registry)
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_service_supabase] = lambda: db
    app.dependency_overrides[get_room_registry] = lambda: registry
    app.dependency_overrides[get_chat_gateway] = lambda: gateway
    app.dependency_overrides[get_current_user_id] = lambda: current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
