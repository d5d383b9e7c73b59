"""
Authentication routes.

Endpoints:
    POST /auth/signup  — Create identity + patient profile (public)
    POST /auth/login   — Exchange email/password for a session (public)
    GET  /auth/me      — Resolve the bearer token to its identity
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from app.api.middleware.auth import get_current_user
from app.api.middleware.errors import BackendRequestError, InternalError
from app.db.supabase import BackendError, SupabaseClient, get_admin_backend, get_backend
from app.models.user import Identity
from app.services import provisioning_service

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class SignupRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    rut: str = Field(..., min_length=1)
    first_names: str = Field(..., min_length=1)
    last_names: str = Field(..., min_length=1)


class SignupResponse(BaseModel):
    message: str
    user: dict[str, Any]
    session: Optional[dict[str, Any]] = None


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    message: str
    session: dict[str, Any]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/auth/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    payload: SignupRequest,
    backend: SupabaseClient = Depends(get_backend),
    admin_backend: SupabaseClient = Depends(get_admin_backend),
):
    """Register a patient: identity first, then profile, undoing the identity if the profile fails."""
    try:
        result = await provisioning_service.signup(
            backend,
            admin_backend,
            email=payload.email,
            password=payload.password,
            rut=payload.rut,
            first_names=payload.first_names,
            last_names=payload.last_names,
        )
    except BackendError as e:
        raise BackendRequestError(e.message)
    except Exception:
        logger.exception("Signup failed")
        raise InternalError("Internal error during signup")

    return SignupResponse(message="Signup successful", user=result["user"], session=result["session"])


@router.post("/auth/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    backend: SupabaseClient = Depends(get_backend),
):
    try:
        session = await provisioning_service.login(backend, email=payload.email, password=payload.password)
    except BackendError as e:
        raise BackendRequestError(e.message)
    except Exception:
        logger.exception("Login failed")
        raise InternalError("Internal error during login")

    return LoginResponse(message="Login successful", session=session)


@router.get("/auth/me", response_model=Identity)
async def me(current_user: Identity = Depends(get_current_user)):
    return current_user
