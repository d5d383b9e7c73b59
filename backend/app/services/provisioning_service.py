"""
Identity + profile provisioning.

Signup spans two stores that share no transaction: the auth backend owns the
identity, the ``profiles`` table owns the profile row.  The identity is
created first; if the profile insert then fails the identity is deleted
again so no identity is left without a profile.  That deletion is
best-effort: its own failure is logged and the profile error is what the
caller sees.  Nothing sweeps identities orphaned by a failed deletion.
"""

from __future__ import annotations

import logging
from typing import Any

from app.config import get_settings
from app.db.supabase import BackendError, SupabaseClient
from app.models.user import UserRole, UserStatus

logger = logging.getLogger(__name__)
settings = get_settings()


async def _compensate_identity(admin_backend: SupabaseClient, user_id: str) -> bool:
    """Delete an identity whose profile could not be created. Never raises."""
    try:
        await admin_backend.admin_delete_user(user_id)
    except Exception as e:
        logger.error("Compensation failed: identity %s left without profile (%s)", user_id, e)
        return False
    logger.info("Compensation succeeded: identity %s removed", user_id)
    return True


async def signup(
    backend: SupabaseClient,
    admin_backend: SupabaseClient,
    *,
    email: str,
    password: str,
    rut: str,
    first_names: str,
    last_names: str,
) -> dict[str, Any]:
    """Create an identity and its profile row.

    Returns ``{"user": ..., "session": ...}`` as issued by the auth backend.
    Raises ``BackendError`` when either phase is rejected. Any failure of the
    profile insert deletes the new identity before propagating.
    """
    profile_fields = {
        "rut": rut,
        "first_names": first_names,
        "last_names": last_names,
        "role": UserRole.PATIENT.value,
        "status": UserStatus.ACTIVE.value,
    }

    # Phase 1: identity. A failure here leaves nothing behind.
    result = await backend.sign_up(email, password, profile_fields)
    user = result.get("user")
    if not user or not user.get("id"):
        raise BackendError("Identity provisioning incomplete: no user returned")

    # Phase 2: profile, keyed by the identity id.
    try:
        await admin_backend.insert(
            settings.PROFILES_TABLE,
            [{"id": user["id"], "email": email, **profile_fields}],
        )
    except Exception as e:
        logger.warning("Profile insert failed for identity %s: %s", user["id"], e)
        await _compensate_identity(admin_backend, user["id"])
        raise

    logger.info("Provisioned identity and profile %s", user["id"])
    return {"user": user, "session": result.get("session")}


async def login(backend: SupabaseClient, *, email: str, password: str) -> dict[str, Any]:
    """Exchange credentials for a session. Raises ``BackendError`` on rejection."""
    session = await backend.sign_in_with_password(email, password)
    if not session:
        raise BackendError("Invalid login credentials")
    return session
