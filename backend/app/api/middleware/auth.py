import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.api.middleware.errors import AuthenticationError, AuthorizationError
from app.db.supabase import BackendError, SupabaseClient, get_backend
from app.models.user import Identity, UserRole

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)


async def resolve_identity(token: Optional[str], backend: SupabaseClient) -> Identity:
    """Exchange a bearer token for the identity it belongs to.

    Answers only *who* is calling; role checks live in ``require_role``.
    """
    if not token:
        raise AuthenticationError("No token provided")
    try:
        user = await backend.get_user(token)
    except BackendError as e:
        logger.info("Token rejected by auth backend: %s", e.message)
        raise AuthenticationError("Invalid or expired token")
    if not user or not user.get("id"):
        raise AuthenticationError("Invalid or expired token")
    return Identity.from_backend_user(user)


def get_access_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("No token provided")
    return credentials.credentials


async def get_current_user(
    request: Request,
    token: str = Depends(get_access_token),
    backend: SupabaseClient = Depends(get_backend),
) -> Identity:
    identity = await resolve_identity(token, backend)
    request.state.identity = identity
    return identity


def require_role(*roles: UserRole):
    async def role_checker(current_user: Identity = Depends(get_current_user)) -> Identity:
        if not current_user.is_active:
            raise AuthorizationError("Account is inactive")
        if current_user.role not in roles:
            raise AuthorizationError(
                f"Role {current_user.role.value} not authorized. Required: {[r.value for r in roles]}"
            )
        return current_user
    return role_checker
