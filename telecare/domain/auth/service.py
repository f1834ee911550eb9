from typing import Optional, List, Dict, Any, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
import logging
import uuid

from telecare.domain.auth.models import User, UserRole, UserStatus
from telecare.domain.auth.repository import UserRepository
from telecare.domain.bookings.models import PaymentStatus
from telecare.domain.bookings.repository import BookingRepository
from telecare.domain.bookings.service import BookingResult
from telecare.domain.lab.repository import LabTestRepository
from telecare.core.security import (
    create_access_token,
    generate_password_reset_token,
    hash_reset_token
)
from telecare.core.exceptions import (
    AuthenticationError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError
)
from telecare.api.v1.auth.schemas import UserRegister, UserUpdate
from telecare.tasks.email_tasks import send_text_email_task
from telecare.core.config import settings

logger = logging.getLogger(__name__)

NEW_PASSWORD_MUST_DIFFER = "Your new password must be different from the current one."


class AuthenticationService:
    """Service layer for authentication operations"""

    def __init__(self, db: AsyncSession, email_sender=None, booking_service=None):
        self.db = db
        self.user_repo = UserRepository(db)
        self.email_sender = email_sender
        self.booking_service = booking_service

    def _ensure_can_sign_in(self, user: User) -> None:
        """Reject accounts an admin has not approved or has disabled"""
        if user.status == UserStatus.PENDING:
            raise NotFoundError("This account is under review by Admin. Please contact with Admin")
        if user.status == UserStatus.REJECTED:
            raise NotFoundError("This account is rejected by Admin. Please contact with Admin")
        if user.status == UserStatus.DELETE:
            raise NotFoundError("This account deleted by Admin. Please contact with Admin")
        if user.status in (UserStatus.SUSPEND, UserStatus.INACTIVE):
            raise AuthenticationError("This account Suspend by Admin. Please contact with Admin")

    async def register_with_booking(self, user_in: UserRegister) -> Tuple[User, str, BookingResult]:
        """Create the account and its first paid booking together"""
        if await self.user_repo.get_by_email(user_in.email):
            raise ConflictError("Email already exists!", details={"email": "Email already exists!"})

        user = self.user_repo.add(user_in.user_data())
        try:
            # The booking insert commits the flushed user with it
            await self.db.flush()
            result = await self.booking_service.create_booking(user, user_in)
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(user)
        logger.info(f"User {user.id} registered with booking {result.booking.id}")
        return user, create_access_token(str(user.id)), result

    async def login(self, email: str, password: str) -> Tuple[User, str]:
        """Authenticate user and return an access token"""
        user = await self.user_repo.get_by_email(email)
        if not user:
            raise AuthenticationError("Invalid credentials", details={"password": "Invalid Credentials"})

        self._ensure_can_sign_in(user)

        if not user.password_hash:
            raise AuthenticationError(
                "This account has no password yet",
                details={"password": "This account has no password yet"}
            )

        if not user.verify_password(password):
            raise AuthenticationError("Invalid credentials", details={"password": "Invalid Credentials"})

        user.last_login_at = datetime.utcnow()
        await self.user_repo.save(user)
        return user, create_access_token(str(user.id))

    async def forgot_password(self, email: str, origin: Optional[str] = None) -> None:
        """Store a reset token and email the reset link"""
        user = await self.user_repo.get_by_email(email)
        if not user:
            raise NotFoundError("User not found", details={"user": "user not found"})
        if user.status == UserStatus.DELETE:
            raise NotFoundError("This account deleted by Admin. Please contact with Admin")
        if user.status in (UserStatus.SUSPEND, UserStatus.INACTIVE):
            raise AuthenticationError("This account Suspend by Admin. Please contact with Admin")

        raw_token, token_hash, expires_at = generate_password_reset_token()
        user.password_reset_token = token_hash
        user.password_reset_expires = expires_at
        await self.user_repo.save(user)

        reset_url = f"{(origin or settings.FRONTEND_URL).rstrip('/')}/reset-password?token={raw_token}"
        try:
            await self.email_sender.send_template(
                user.email,
                "forgot_password",
                "Reset Your Password",
                {
                    "name": user.name,
                    "url": reset_url,
                    "expires_minutes": settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES
                }
            )
        except Exception as e:
            logger.error(f"Password reset email to {user.email} failed: {e}")
            user.password_reset_token = None
            user.password_reset_expires = None
            await self.user_repo.save(user)
            raise InternalError("There was an error sending the email. Try again later!")

    async def reset_password(self, token: str, password: str) -> Tuple[User, str]:
        user = await self.user_repo.get_by_reset_token(hash_reset_token(token))
        if not user:
            raise NotFoundError("Invalid request.", details={"user": "user not found"})
        if user.status == UserStatus.DELETE:
            raise NotFoundError("This account deleted by Admin. Please contact with Admin")
        if user.status in (UserStatus.SUSPEND, UserStatus.INACTIVE):
            raise AuthenticationError("This account Suspend by Admin. Please contact with Admin")

        if user.verify_password(password):
            raise ValidationError("Validation failed", details={"password": NEW_PASSWORD_MUST_DIFFER})

        user.change_password(password)
        user.password_reset_token = None
        user.password_reset_expires = None
        await self.user_repo.save(user)
        return user, create_access_token(str(user.id))

    async def update_password(self, user: User, old_password: str, password: str) -> User:
        """Change password after checking the current one"""
        if not user.verify_password(old_password):
            raise ValidationError("Validation failed", details={"password": "Provided old password is incorrect"})
        if user.verify_password(password):
            raise ValidationError("Validation failed", details={"password": NEW_PASSWORD_MUST_DIFFER})

        user.change_password(password)
        user.password_reset_token = None
        return await self.user_repo.save(user)

    async def create_first_password(self, user: User, password: str) -> User:
        user.change_password(password)
        return await self.user_repo.save(user)


class UserService:
    """Service layer for user management operations"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)
        self.booking_repo = BookingRepository(db)
        self.lab_repo = LabTestRepository(db)

    async def get_user(self, user_id: uuid.UUID) -> User:
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def list_users(
        self,
        role: Optional[UserRole] = None,
        status: Optional[UserStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[User], int]:
        """Get users with filtering and pagination"""
        skip = (page - 1) * limit
        users = await self.user_repo.get_all(skip=skip, limit=limit, role=role, status=status, search=search)
        total = await self.user_repo.count(role=role, status=status, search=search)
        return users, total

    async def update_user(self, user_id: uuid.UUID, user_data: UserUpdate) -> User:
        """Update user information"""
        user = await self.get_user(user_id)

        if user_data.email and user_data.email != user.email:
            existing_user = await self.user_repo.get_by_email(user_data.email)
            if existing_user and existing_user.id != user.id:
                raise ConflictError("Email already exists!", details={"email": "Email already exists!"})

        return await self.user_repo.update(user, user_data.model_dump(exclude_unset=True))

    async def delete_user(self, user_id: uuid.UUID) -> User:
        """Soft delete: the account is kept with status Delete"""
        user = await self.get_user(user_id)
        return await self.user_repo.update(user, {"status": UserStatus.DELETE})

    async def update_status(self, user_id: uuid.UUID, status: UserStatus) -> User:
        user = await self.get_user(user_id)
        user = await self.user_repo.update(user, {"status": status})

        if status == UserStatus.ACTIVE:
            try:
                send_text_email_task.delay(
                    user.email,
                    "Account Activated",
                    f"Hi {user.name or user.email}, your account is active now."
                )
            except Exception as e:
                logger.error(f"Failed to queue activation email for {user.email}: {e}")
        return user

    async def get_profile(self, current_user: User) -> User:
        return current_user

    async def update_profile(self, current_user: User, user_data: UserUpdate) -> User:
        return await self.update_user(current_user.id, user_data)

    async def dashboard_stats(self) -> Dict[str, Any]:
        """Aggregate counts and revenue for the admin dashboard"""
        return {
            "total_users": await self.user_repo.count(),
            "total_clients": await self.user_repo.count(role=UserRole.CLIENT),
            "active_users": await self.user_repo.count(status=UserStatus.ACTIVE),
            "total_bookings": await self.booking_repo.count(),
            "paid_bookings": await self.booking_repo.count(payment_status=PaymentStatus.PAID),
            "upcoming_bookings": await self.booking_repo.count_upcoming(datetime.utcnow()),
            "total_tests": await self.lab_repo.count(),
            "tests_by_type": await self.lab_repo.count_by_type(),
            "booking_revenue": await self.booking_repo.total_revenue(),
            "test_revenue": await self.lab_repo.total_revenue(),
        }
