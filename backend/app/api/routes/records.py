"""
Medical Records API routes.

Endpoints:
    POST /medical/records            — Create the medical record for a user
    GET  /medical/records/{user_id}  — Get a user's medical record (decrypted)
    PUT  /medical/records/{user_id}  — Partially update a user's medical record
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from app.api.middleware.audit import log_audit
from app.api.middleware.auth import get_access_token, get_current_user
from app.api.middleware.errors import BackendRequestError, InternalError, NotFoundError, ValidationError
from app.db.supabase import BackendError, SupabaseClient, get_backend
from app.models.user import Identity
from app.services import medical_record_service

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class MedicalRecordCreateRequest(BaseModel):
    user_id: Optional[str] = None
    blood_type: Optional[str] = None
    # Numeric fields accept anything; unparseable values are stored as 0
    height: Any = None
    initial_weight: Any = None
    current_weight: Any = None
    allergies: Optional[str] = None
    chronic_diseases: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None


class MedicalRecordUpdateRequest(BaseModel):
    blood_type: Optional[str] = None
    height: Any = None
    initial_weight: Any = None
    current_weight: Any = None
    allergies: Optional[str] = None
    chronic_diseases: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None


class MedicalRecordWriteResponse(BaseModel):
    message: str
    data: list[dict[str, Any]]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/medical/records",
    response_model=MedicalRecordWriteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_medical_record(
    payload: MedicalRecordCreateRequest,
    request: Request,
    backend: SupabaseClient = Depends(get_backend),
    token: str = Depends(get_access_token),
    current_user: Identity = Depends(get_current_user),
):
    try:
        data = await medical_record_service.create_medical_record(
            backend, payload.model_dump(), access_token=token
        )
    except HTTPException:
        raise
    except ValueError as e:
        raise ValidationError(str(e))
    except BackendError as e:
        logger.error("Medical record rejected by store: %s", e.message)
        raise BackendRequestError(e.message)
    except Exception:
        logger.exception("Creating medical record failed")
        raise InternalError("Error processing medical record")

    log_audit(
        action="create",
        resource="medical_record",
        resource_id=payload.user_id,
        user=current_user,
        request=request,
    )
    return MedicalRecordWriteResponse(message="Medical record saved", data=data)


@router.get("/medical/records/{user_id}", response_model=dict)
async def get_medical_record(
    user_id: str,
    request: Request,
    backend: SupabaseClient = Depends(get_backend),
    token: str = Depends(get_access_token),
    current_user: Identity = Depends(get_current_user),
):
    try:
        record = await medical_record_service.get_medical_record(backend, user_id, access_token=token)
    except HTTPException:
        raise
    except ValueError as e:
        raise ValidationError(str(e))
    except BackendError as e:
        raise BackendRequestError(e.message)
    except Exception:
        logger.exception("Reading medical record failed")
        raise InternalError("Error retrieving medical record")

    if record is None:
        raise NotFoundError("No medical record exists for this user yet")

    log_audit(action="read", resource="medical_record", resource_id=user_id, user=current_user, request=request)
    return record


@router.put("/medical/records/{user_id}", response_model=MedicalRecordWriteResponse)
async def update_medical_record(
    user_id: str,
    payload: MedicalRecordUpdateRequest,
    request: Request,
    backend: SupabaseClient = Depends(get_backend),
    token: str = Depends(get_access_token),
    current_user: Identity = Depends(get_current_user),
):
    update_data = payload.model_dump(exclude_unset=True)
    try:
        data = await medical_record_service.update_medical_record(
            backend, user_id, update_data, access_token=token
        )
    except HTTPException:
        raise
    except ValueError as e:
        raise ValidationError(str(e))
    except BackendError as e:
        raise BackendRequestError(e.message)
    except Exception:
        logger.exception("Updating medical record failed")
        raise InternalError("Error updating medical record")

    log_audit(
        action="update",
        resource="medical_record",
        resource_id=user_id,
        user=current_user,
        details=f"fields={sorted(update_data)}",
        request=request,
    )
    return MedicalRecordWriteResponse(message="Medical record updated", data=data)
