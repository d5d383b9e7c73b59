import enum
import re
from typing import Any, Optional

from pydantic import BaseModel


class UserRole(str, enum.Enum):
    PATIENT = "patient"
    SPECIALIST = "specialist"
    ADMIN = "admin"
    USER = "user"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# Roles allowed to browse other patients' profiles
CLINICAL_ROLES = {UserRole.SPECIALIST, UserRole.ADMIN}

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)


def is_valid_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(_UUID_RE.match(value))


class Identity(BaseModel):
    """An authenticated principal as resolved by the auth backend."""

    id: str
    email: Optional[str] = None
    role: UserRole = UserRole.USER
    status: UserStatus = UserStatus.ACTIVE

    @classmethod
    def from_backend_user(cls, user: dict[str, Any]) -> "Identity":
        """Build an identity from a backend user object.

        ``app_metadata`` is written only by the backend (service role), while
        ``user_metadata`` is supplied by the client at signup, so the former
        wins whenever both carry a value.
        """
        app_meta = user.get("app_metadata") or {}
        user_meta = user.get("user_metadata") or {}
        role = app_meta.get("role") or user_meta.get("role")
        status = app_meta.get("status") or user_meta.get("status")
        return cls(
            id=user["id"],
            email=user.get("email"),
            role=role if role in UserRole._value2member_map_ else UserRole.USER,
            status=status if status in UserStatus._value2member_map_ else UserStatus.ACTIVE,
        )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE
