import logging
from typing import Optional

from fastapi import Request

from app.models.user import Identity

audit_logger = logging.getLogger("app.audit")


def log_audit(
    action: str,
    resource: str,
    resource_id: Optional[str] = None,
    user: Optional[Identity] = None,
    details: Optional[str] = None,
    request: Optional[Request] = None,
) -> None:
    ip = request.client.host if request is not None and request.client else None
    audit_logger.info(
        "action=%s resource=%s resource_id=%s user_id=%s ip=%s details=%s",
        action,
        resource,
        resource_id,
        user.id if user else None,
        ip,
        details,
    )
