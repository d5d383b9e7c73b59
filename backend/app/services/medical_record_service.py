"""
Medical record service — create, read and update with field-level encryption.

``allergies``, ``chronic_diseases`` and ``emergency_contact_phone`` are
encrypted before they reach the store and decrypted only when a record is
assembled for a read response.  All functions take the caller's access token
so the store evaluates its row-level policies as that caller.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Optional

from app.api.middleware.encryption import DecryptionError, FieldCipher, get_cipher
from app.config import get_settings
from app.db.supabase import BackendError, SupabaseClient
from app.models.medical_record import ENCRYPTED_FIELDS, NUMERIC_FIELDS, PLAIN_FIELDS
from app.models.user import is_valid_uuid

logger = logging.getLogger(__name__)
settings = get_settings()

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_LEADING_FLOAT_RE = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def coerce_float(value: Any) -> float:
    """Parse a numeric field from its leading number ("72kg" -> 72.0).

    Anything unparseable, non-finite or negative becomes ``0.0``.
    """
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        raw = value
    else:
        match = _LEADING_FLOAT_RE.match(str(value))
        if match is None:
            return 0.0
        raw = match.group(0)
    try:
        number = float(raw)
    except (OverflowError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0.0
    return number



def _require_user_id(user_id: Any) -> str:
    if not user_id:
        raise ValueError("user_id is required")
    if not is_valid_uuid(user_id):
        raise ValueError("user_id must be a valid UUID")
    return user_id


def _decrypt_record(record: dict[str, Any], cipher: FieldCipher) -> dict[str, Any]:
    decrypted = dict(record)
    for field in ENCRYPTED_FIELDS:
        value = record.get(field)
        if value is None:
            continue
        try:
            decrypted[field] = cipher.decrypt(value)
        except DecryptionError as e:
            logger.warning(
                "Could not decrypt %s for medical record of user %s: %s",
                field, record.get("user_id"), e,
            )
            decrypted[field] = None
    return decrypted


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

async def create_medical_record(
    backend: SupabaseClient,
    fields: dict[str, Any],
    *,
    access_token: Optional[str] = None,
    cipher: Optional[FieldCipher] = None,
) -> list[dict[str, Any]]:
    """Insert a medical record. Returns the stored row(s), sensitive fields still encrypted."""
    user_id = _require_user_id(fields.get("user_id"))
    cipher = cipher or get_cipher()

    row: dict[str, Any] = {"user_id": user_id}
    for field in PLAIN_FIELDS:
        row[field] = fields.get(field)
    row["height"] = coerce_float(fields.get("height"))
    row["initial_weight"] = coerce_float(fields.get("initial_weight"))
    if fields.get("current_weight") is not None:
        row["current_weight"] = coerce_float(fields["current_weight"])
    for field in ENCRYPTED_FIELDS:
        value = fields.get(field)
        row[field] = cipher.encrypt(value) if value is not None else None

    data = await backend.insert(settings.MEDICAL_RECORDS_TABLE, [row], access_token=access_token)
    logger.info("Created medical record for user %s", user_id)
    return data


async def get_medical_record(
    backend: SupabaseClient,
    user_id: str,
    *,
    access_token: Optional[str] = None,
    cipher: Optional[FieldCipher] = None,
) -> Optional[dict[str, Any]]:
    """Return the decrypted record for ``user_id``, or ``None`` when no row exists."""
    user_id = _require_user_id(user_id)
    rows = await backend.select(
        settings.MEDICAL_RECORDS_TABLE,
        filters={"user_id": user_id},
        access_token=access_token,
        limit=2,
    )
    if not rows:
        return None
    if len(rows) > 1:
        raise BackendError("Multiple medical records found for user")
    return _decrypt_record(rows[0], cipher or get_cipher())


async def update_medical_record(
    backend: SupabaseClient,
    user_id: str,
    fields: dict[str, Any],
    *,
    access_token: Optional[str] = None,
    cipher: Optional[FieldCipher] = None,
) -> list[dict[str, Any]]:
    """Apply a partial update. Only keys present in ``fields`` are written.

    Sensitive fields that are absent or empty keep their stored ciphertext.
    """
    user_id = _require_user_id(user_id)
    cipher = cipher or get_cipher()

    values: dict[str, Any] = {}
    for field in PLAIN_FIELDS:
        if field in fields:
            values[field] = fields[field]
    for field in NUMERIC_FIELDS:
        if field in fields:
            values[field] = coerce_float(fields[field])
    for field in ENCRYPTED_FIELDS:
        if fields.get(field):
            values[field] = cipher.encrypt(fields[field])

    if not values:
        raise ValueError("No fields to update")

    data = await backend.update(
        settings.MEDICAL_RECORDS_TABLE,
        values,
        filters={"user_id": user_id},
        access_token=access_token,
    )
    logger.info("Updated medical record for user %s: %s", user_id, sorted(values))
    return data
