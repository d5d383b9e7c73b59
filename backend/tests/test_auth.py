"""
Session verification and role gate tests.

- resolve_identity: token → identity, or 401
- Identity.from_backend_user: backend-assigned role beats user metadata
- GET /patients: role gate on top of the session gate
"""

from unittest.mock import AsyncMock

import pytest
from fastapi import HTTPException

from app.api.middleware.auth import resolve_identity
from app.db.supabase import BackendError
from app.models.user import Identity, UserRole, UserStatus

from conftest import auth_header


class TestResolveIdentity:
    @pytest.mark.asyncio
    async def test_missing_token(self):
        """Should fail with 401 without asking the backend"""
        backend = AsyncMock()
        with pytest.raises(HTTPException) as exc:
            await resolve_identity(None, backend)
        assert exc.value.status_code == 401
        assert exc.value.detail == "No token provided"
        backend.get_user.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_backend_rejects_token(self):
        """Should fail with 401 when the backend refuses the token"""
        backend = AsyncMock()
        backend.get_user.side_effect = BackendError("token is expired", 401)
        with pytest.raises(HTTPException) as exc:
            await resolve_identity("expired", backend)
        assert exc.value.status_code == 401
        assert exc.value.detail == "Invalid or expired token"

    @pytest.mark.asyncio
    async def test_backend_returns_no_user(self):
        """Should fail with 401 when the backend resolves no user"""
        backend = AsyncMock()
        backend.get_user.return_value = None
        with pytest.raises(HTTPException) as exc:
            await resolve_identity("token", backend)
        assert exc.value.status_code == 401

    @pytest.mark.asyncio
    async def test_valid_token(self):
        """Should return the identity behind a valid token"""
        backend = AsyncMock()
        backend.get_user.return_value = {
            "id": "0b7c8f2e-6f0a-4f7e-9a39-7d1c2b0e5a11",
            "email": "doc@example.com",
            "user_metadata": {"role": "specialist"},
        }
        identity = await resolve_identity("token", backend)
        assert identity.id == "0b7c8f2e-6f0a-4f7e-9a39-7d1c2b0e5a11"
        assert identity.role == UserRole.SPECIALIST
        backend.get_user.assert_awaited_once_with("token")


class TestRolePrecedence:
    def test_app_metadata_wins_over_user_metadata(self):
        """Should prefer the backend-assigned role over the self-declared one"""
        identity = Identity.from_backend_user({
            "id": "u1",
            "user_metadata": {"role": "admin"},
            "app_metadata": {"role": "patient"},
        })
        assert identity.role == UserRole.PATIENT

    def test_user_metadata_used_when_app_metadata_empty(self):
        """Should fall back to user metadata when the backend assigned no role"""
        identity = Identity.from_backend_user({"id": "u1", "user_metadata": {"role": "specialist"}})
        assert identity.role == UserRole.SPECIALIST

    def test_unknown_role_falls_back_to_user(self):
        """Should map an unrecognised role to the plain user role"""
        identity = Identity.from_backend_user({"id": "u1", "user_metadata": {"role": "superuser"}})
        assert identity.role == UserRole.USER

    def test_status_read_from_metadata(self):
        """Should carry the account status from metadata"""
        identity = Identity.from_backend_user({"id": "u1", "user_metadata": {"status": "inactive"}})
        assert identity.status == UserStatus.INACTIVE
        assert not identity.is_active


class TestPatientsEndpoint:
    def test_no_token_is_401(self, client):
        """Should answer 401 with a Bearer challenge when no token is sent"""
        response = client.get("/patients")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_invalid_token_is_401(self, client):
        """Should answer 401 for a token the backend does not know"""
        response = client.get("/patients", headers=auth_header("garbage"))
        assert response.status_code == 401

    def test_patient_role_is_403(self, client, backend):
        """Should refuse patients without querying profiles"""
        _, token = backend.add_user("patient")
        response = client.get("/patients", headers=auth_header(token))
        assert response.status_code == 403
        assert "select:profiles" not in backend.calls

    def test_specialist_role_is_200(self, client, backend):
        """Should list only patient profiles to a specialist"""
        _, token = backend.add_user("specialist")
        backend.tables["profiles"] = [
            {"id": "p1", "role": "patient", "email": "a@example.com"},
            {"id": "p2", "role": "specialist", "email": "b@example.com"},
        ]
        response = client.get("/patients", headers=auth_header(token))
        assert response.status_code == 200
        assert [p["id"] for p in response.json()] == ["p1"]

    def test_admin_role_is_200(self, client, backend):
        """Should let admins list patients"""
        _, token = backend.add_user("admin")
        assert client.get("/patients", headers=auth_header(token)).status_code == 200

    def test_self_assigned_role_overridden_by_backend(self, client, backend):
        """Should refuse a self-declared specialist the backend marks as patient"""
        _, token = backend.add_user("specialist", app_role="patient")
        assert client.get("/patients", headers=auth_header(token)).status_code == 403

    def test_inactive_specialist_is_403(self, client, backend):
        """Should refuse an inactive specialist"""
        _, token = backend.add_user("specialist", status="inactive")
        response = client.get("/patients", headers=auth_header(token))
        assert response.status_code == 403
        assert response.json()["detail"] == "Account is inactive"

    def test_backend_error_is_400(self, client, backend):
        """Should pass a backend query error through as 400"""
        _, token = backend.add_user("specialist")
        backend.select_errors["profiles"] = BackendError("permission denied for table profiles", 403)
        response = client.get("/patients", headers=auth_header(token))
        assert response.status_code == 400
        assert response.json()["detail"] == "permission denied for table profiles"


class TestMe:
    def test_returns_identity(self, client, backend):
        """Should echo the caller's resolved identity"""
        user_id, token = backend.add_user("specialist")
        response = client.get("/auth/me", headers=auth_header(token))
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == user_id
        assert body["role"] == "specialist"
        assert body["status"] == "active"
