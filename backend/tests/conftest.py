"""
Shared fixtures: an in-memory stand-in for the Supabase backend and a
TestClient wired to it through dependency overrides.
"""

import uuid
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

from app.db.supabase import BackendError, get_admin_backend, get_backend
from app.main import app


class FakeBackend:
    """Mimics the SupabaseClient surface with plain dicts and lists."""

    def __init__(self):
        self.users: dict[str, dict[str, Any]] = {}
        self.tokens: dict[str, str] = {}
        self.tables: dict[str, list[dict[str, Any]]] = {"profiles": [], "medical_records": []}
        self.calls: list[str] = []
        # Failure injection: set to an exception to make the call raise it
        self.sign_up_error: Optional[BackendError] = None
        self.insert_errors: dict[str, Exception] = {}
        self.select_errors: dict[str, BackendError] = {}
        self.delete_user_error: Optional[Exception] = None
        self.sign_up_returns_no_user = False
        self.signed_up_ids: list[str] = []

    # -- helpers for tests ------------------------------------------------

    def add_user(self, role: str = "patient", *, status: str = "active", app_role: Optional[str] = None) -> tuple[str, str]:
        user_id = str(uuid.uuid4())
        token = f"token-{user_id}"
        self.users[user_id] = {
            "id": user_id,
            "email": f"{role}-{user_id[:8]}@example.com",
            "user_metadata": {"role": role, "status": status},
            "app_metadata": {"role": app_role} if app_role else {},
        }
        self.tokens[token] = user_id
        return user_id, token

    # -- auth API -----------------------------------------------------------

    async def sign_up(self, email, password, metadata):
        self.calls.append("sign_up")
        if self.sign_up_error:
            raise self.sign_up_error
        if self.sign_up_returns_no_user:
            return {"user": None, "session": None}
        user_id = str(uuid.uuid4())
        user = {"id": user_id, "email": email, "user_metadata": dict(metadata), "app_metadata": {}}
        self.users[user_id] = user
        self.signed_up_ids.append(user_id)
        token = f"token-{user_id}"
        self.tokens[token] = user_id
        return {"user": user, "session": {"access_token": token, "token_type": "bearer"}}

    async def sign_in_with_password(self, email, password):
        self.calls.append("sign_in_with_password")
        for token, user_id in self.tokens.items():
            if self.users[user_id]["email"] == email and password == "correct-password":
                return {"access_token": token, "token_type": "bearer", "user": self.users[user_id]}
        raise BackendError("Invalid login credentials", 400)

    async def get_user(self, access_token):
        self.calls.append("get_user")
        user_id = self.tokens.get(access_token)
        if user_id is None or user_id not in self.users:
            raise BackendError("invalid JWT: unable to parse or verify signature", 401)
        return self.users[user_id]

    async def admin_delete_user(self, user_id):
        self.calls.append("admin_delete_user")
        if self.delete_user_error:
            raise self.delete_user_error
        self.users.pop(user_id, None)

    # -- table API ----------------------------------------------------------

    async def select(self, table, *, filters=None, access_token=None, limit=None):
        self.calls.append(f"select:{table}")
        if table in self.select_errors:
            raise self.select_errors[table]
        rows = [
            dict(r) for r in self.tables.setdefault(table, [])
            if all(str(r.get(k)) == str(v) for k, v in (filters or {}).items())
        ]
        return rows[:limit] if limit is not None else rows

    async def insert(self, table, rows, *, access_token=None):
        self.calls.append(f"insert:{table}")
        if table in self.insert_errors:
            raise self.insert_errors[table]
        stored = [dict(r) for r in rows]
        self.tables.setdefault(table, []).extend(stored)
        return [dict(r) for r in stored]

    async def update(self, table, values, *, filters, access_token=None):
        self.calls.append(f"update:{table}")
        updated = []
        for row in self.tables.setdefault(table, []):
            if all(str(row.get(k)) == str(v) for k, v in filters.items()):
                row.update(values)
                updated.append(dict(row))
        return updated


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def client(backend):
    app.dependency_overrides[get_backend] = lambda: backend
    app.dependency_overrides[get_admin_backend] = lambda: backend
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
