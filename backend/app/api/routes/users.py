"""
User profile routes.

Endpoints:
    GET /users/{user_id}  — Fetch a profile by identity id
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from app.api.middleware.audit import log_audit
from app.api.middleware.auth import get_access_token, get_current_user
from app.api.middleware.errors import BackendRequestError, InternalError, NotFoundError, ValidationError
from app.db.supabase import BackendError, SupabaseClient, get_backend
from app.models.user import Identity
from app.services import profile_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/users/{user_id}", response_model=dict)
async def get_user_profile(
    user_id: str,
    request: Request,
    backend: SupabaseClient = Depends(get_backend),
    token: str = Depends(get_access_token),
    current_user: Identity = Depends(get_current_user),
):
    try:
        profile = await profile_service.get_profile(backend, user_id, access_token=token)
    except HTTPException:
        raise
    except ValueError as e:
        raise ValidationError(str(e))
    except BackendError as e:
        raise BackendRequestError(e.message)
    except Exception:
        logger.exception("Fetching profile %s failed", user_id)
        raise InternalError("Internal error fetching user")

    if profile is None:
        raise NotFoundError("User not found")

    log_audit(action="read", resource="profile", resource_id=user_id, user=current_user, request=request)
    return profile
