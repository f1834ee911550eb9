from typing import Callable
import uuid
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.exceptions import AuthenticationError, AuthorizationError
from telecare.core.security import verify_token
from telecare.domain.auth.models import User, UserRole, UserStatus
from telecare.domain.auth.repository import UserRepository
from telecare.infrastructure.database import get_db


def get_bearer_token(request: Request) -> str:
    """Extract the bearer token from the Authorization header"""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise AuthenticationError("Authentication required")
    return auth_header.split(" ", 1)[1]


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db)
) -> User:
    """Resolve the authenticated user from the access token"""
    payload = verify_token(get_bearer_token(request), "access")
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise AuthenticationError("Invalid or expired token")

    user = await UserRepository(db).get_by_id(user_id)
    if not user:
        raise AuthenticationError("The user belonging to this token no longer exists")

    if user.status != UserStatus.ACTIVE:
        raise AuthenticationError("This account is not active. Please contact with Admin")

    if user.changed_password_after(int(payload.get("iat", 0))):
        raise AuthenticationError("Password was changed recently. Please log in again")

    request.state.user = user
    return user


def require_roles(*roles: UserRole) -> Callable:
    """Dependency factory restricting an endpoint to the given roles"""
    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise AuthorizationError("You do not have permission to perform this action")
        return current_user

    return role_checker


def ensure_owner_or_admin(current_user: User, owner_id: uuid.UUID) -> None:
    """Clients may only read records they own"""
    if not current_user.is_admin and current_user.id != owner_id:
        raise AuthorizationError("You do not have permission to access this resource")
