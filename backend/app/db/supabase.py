"""
Async client for the Supabase backend (GoTrue auth API + PostgREST table API).

Two variants are built at startup and shared across requests:

* the *user-scoped* client carries the anon key and forwards the caller's
  bearer token, so row-level policies are evaluated as that caller;
* the *elevated* client carries the service-role key and bypasses row-level
  policies.  It is reserved for provisioning writes.

Neither client is mutated after construction.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from fastapi import Request

from app.config import Settings

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """The backend rejected an operation or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"Backend error ({response.status_code})"
    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return f"Backend error ({response.status_code})"


class SupabaseClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"apikey": api_key, "Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        **kwargs: Any,
    ) -> Any:
        request_headers = {"Authorization": f"Bearer {access_token or self._api_key}"}
        if headers:
            request_headers.update(headers)
        try:
            response = await self._http.request(method, path, headers=request_headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Backend request %s %s failed: %s", method, path, e)
            raise BackendError(f"Backend unavailable: {e.__class__.__name__}") from e

        if response.is_error:
            raise BackendError(_error_message(response), response.status_code)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error("Backend returned a non-JSON body for %s %s", method, path)
            raise BackendError(f"Malformed backend response ({response.status_code})", response.status_code) from e

    # ------------------------------------------------------------------
    # Auth API
    # ------------------------------------------------------------------

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> dict[str, Any]:
        """Create an identity. Returns ``{"user": ..., "session": ...}``.

        When email confirmation is enabled the backend answers with a bare
        user object and no session.
        """
        data = await self._request(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password, "data": metadata},
        ) or {}
        if "access_token" in data:
            return {"user": data.get("user"), "session": data}
        if "user" in data or "session" in data:
            return {"user": data.get("user"), "session": data.get("session")}
        return {"user": data if data.get("id") else None, "session": None}

    async def sign_in_with_password(self, email: str, password: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )

    async def get_user(self, access_token: str) -> Optional[dict[str, Any]]:
        return await self._request("GET", "/auth/v1/user", access_token=access_token)

    async def admin_delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/auth/v1/admin/users/{user_id}")

    # ------------------------------------------------------------------
    # Table API
    # ------------------------------------------------------------------

    async def select(
        self,
        table: str,
        *,
        filters: Optional[dict[str, Any]] = None,
        access_token: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        params = {"select": "*"}
        params.update({col: f"eq.{value}" for col, value in (filters or {}).items()})
        if limit is not None:
            params["limit"] = str(limit)
        return await self._request(
            "GET", f"/rest/v1/{table}", params=params, access_token=access_token
        ) or []

    async def insert(
        self,
        table: str,
        rows: list[dict[str, Any]],
        *,
        access_token: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        return await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=rows,
            access_token=access_token,
            headers={"Prefer": "return=representation"},
        ) or []

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        *,
        filters: dict[str, Any],
        access_token: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        params = {col: f"eq.{value}" for col, value in filters.items()}
        return await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=params,
            json=values,
            access_token=access_token,
            headers={"Prefer": "return=representation"},
        ) or []


def create_user_client(settings: Settings) -> SupabaseClient:
    return SupabaseClient(
        settings.SUPABASE_URL,
        settings.SUPABASE_ANON_KEY,
        timeout=settings.BACKEND_TIMEOUT_SECONDS,
    )


def create_admin_client(settings: Settings) -> SupabaseClient:
    return SupabaseClient(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_ROLE_KEY,
        timeout=settings.BACKEND_TIMEOUT_SECONDS,
    )


def get_backend(request: Request) -> SupabaseClient:
    return request.app.state.backend


def get_admin_backend(request: Request) -> SupabaseClient:
    return request.app.state.admin_backend
