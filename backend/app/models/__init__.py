from app.models.user import Identity, UserRole, UserStatus
from app.models import medical_record

__all__ = [
    "Identity",
    "UserRole",
    "UserStatus",
    "medical_record",
]
