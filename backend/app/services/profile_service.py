"""
Profile lookups against the ``profiles`` table.

Reads go through the user-scoped client with the caller's token so the
store's row-level policies decide visibility.
"""

from __future__ import annotations

from typing import Any, Optional

from app.config import get_settings
from app.db.supabase import SupabaseClient
from app.models.user import UserRole, is_valid_uuid

settings = get_settings()


async def get_profile(
    backend: SupabaseClient, user_id: str, *, access_token: Optional[str] = None
) -> Optional[dict[str, Any]]:
    """Return the profile for ``user_id`` or ``None``."""
    if not is_valid_uuid(user_id):
        raise ValueError("Invalid user id format")
    rows = await backend.select(
        settings.PROFILES_TABLE,
        filters={"id": user_id},
        access_token=access_token,
        limit=1,
    )
    return rows[0] if rows else None


async def list_patients(
    backend: SupabaseClient, *, access_token: Optional[str] = None
) -> list[dict[str, Any]]:
    return await backend.select(
        settings.PROFILES_TABLE,
        filters={"role": UserRole.PATIENT.value},
        access_token=access_token,
    )
