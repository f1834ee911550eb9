from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, and_
from datetime import datetime
from telecare.domain.auth.models import User, UserRole, UserStatus
import uuid


class UserRepository:
    """Repository for user data access operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def add(self, user_data: dict) -> User:
        """Stage a new user in the session without committing"""
        password = user_data.pop("password", None)
        user = User(**user_data)
        if password:
            user.set_password(password)
        self.db.add(user)
        return user

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        """Get user by ID"""
        result = await self.db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email"""
        result = await self.db.execute(
            select(User).where(User.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def get_by_reset_token(self, token_hash: str) -> Optional[User]:
        """Get user holding an unexpired password reset token"""
        result = await self.db.execute(
            select(User).where(
                and_(
                    User.password_reset_token == token_hash,
                    User.password_reset_expires > datetime.utcnow()
                )
            )
        )
        return result.scalar_one_or_none()

    def _apply_filters(
        self,
        query,
        role: Optional[UserRole] = None,
        status: Optional[UserStatus] = None,
        search: Optional[str] = None
    ):
        if role:
            query = query.where(User.role == role)
        if status:
            query = query.where(User.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    User.name.ilike(pattern),
                    User.email.ilike(pattern)
                )
            )
        return query

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 10,
        role: Optional[UserRole] = None,
        status: Optional[UserStatus] = None,
        search: Optional[str] = None
    ) -> List[User]:
        """Get users with filtering and pagination, newest first"""
        query = self._apply_filters(select(User), role, status, search)
        query = query.order_by(User.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count(
        self,
        role: Optional[UserRole] = None,
        status: Optional[UserStatus] = None,
        search: Optional[str] = None
    ) -> int:
        """Count users with filters"""
        query = self._apply_filters(select(func.count(User.id)), role, status, search)
        result = await self.db.execute(query)
        return result.scalar_one()

    async def update(self, user: User, update_data: dict) -> User:
        """Update user information"""
        for key, value in update_data.items():
            if key == "password":
                user.change_password(value)
            elif hasattr(user, key):
                setattr(user, key, value)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def save(self, user: User) -> User:
        """Persist in-place changes on a loaded user"""
        await self.db.commit()
        await self.db.refresh(user)
        return user
