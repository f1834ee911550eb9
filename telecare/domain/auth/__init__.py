# Authentication and user administration domain module
from telecare.domain.auth.models import User, UserRole, UserStatus

__all__ = [
    "User",
    "UserRole",
    "UserStatus",
]
