"""
Patient directory routes.

Endpoints:
    GET /patients  — List patient profiles (specialist / admin)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from app.api.middleware.audit import log_audit
from app.api.middleware.auth import get_access_token, require_role
from app.api.middleware.errors import BackendRequestError, InternalError
from app.db.supabase import BackendError, SupabaseClient, get_backend
from app.models.user import CLINICAL_ROLES, Identity
from app.services import profile_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/patients", response_model=list[dict])
async def list_patients(
    request: Request,
    backend: SupabaseClient = Depends(get_backend),
    token: str = Depends(get_access_token),
    current_user: Identity = Depends(require_role(*CLINICAL_ROLES)),
):
    """List patient profiles. Restricted to clinical staff."""
    try:
        patients = await profile_service.list_patients(backend, access_token=token)
    except HTTPException:
        raise
    except BackendError as e:
        raise BackendRequestError(e.message)
    except Exception:
        logger.exception("Listing patients failed")
        raise InternalError("Internal error listing patients")

    log_audit(
        action="list",
        resource="profile",
        user=current_user,
        details=f"{len(patients)} patient profiles",
        request=request,
    )
    return patients
