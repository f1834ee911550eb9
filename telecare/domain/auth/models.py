from sqlalchemy import Column, String, DateTime, Enum, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from telecare.infrastructure.database import Base
from datetime import datetime, timedelta, timezone
import uuid
import enum


class UserRole(str, enum.Enum):
    """User roles"""
    ADMIN = "admin"
    CLIENT = "client"


class UserStatus(str, enum.Enum):
    """User account lifecycle status"""
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPEND = "Suspend"
    DELETE = "Delete"
    PENDING = "Pending"
    REJECTED = "Rejected"


class User(Base):
    """User model for authentication and booking ownership"""
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255))

    # Profile information
    name = Column(String(50))
    contact = Column(String(20))
    address = Column(String(200))
    city = Column(String(100))
    postal_code = Column(String(20))
    profile_picture = Column(String(500))

    role = Column(Enum(UserRole), nullable=False, default=UserRole.CLIENT)
    status = Column(Enum(UserStatus), nullable=False, default=UserStatus.ACTIVE)

    # Credential material
    password_reset_token = Column(String(64), index=True)
    password_reset_expires = Column(DateTime)
    password_changed_at = Column(DateTime)

    # Timestamps
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
    last_login_at = Column(DateTime)

    bookings = relationship("Booking", back_populates="patient")
    lab_tests = relationship("LabTest", back_populates="patient")

    def set_password(self, password: str):
        """Set password hash"""
        from telecare.core.security import get_password_hash
        self.password_hash = get_password_hash(password)

    def change_password(self, password: str):
        """Set a new password and invalidate tokens issued before now"""
        self.set_password(password)
        # Back-dated so a token issued right after the change stays valid
        self.password_changed_at = datetime.utcnow() - timedelta(seconds=1)

    def verify_password(self, password: str) -> bool:
        """Verify password"""
        from telecare.core.security import verify_password
        if not self.password_hash:
            return False
        return verify_password(password, self.password_hash)

    def changed_password_after(self, issued_at: int) -> bool:
        """Check whether the password changed after a token was issued"""
        if self.password_changed_at:
            changed_at = self.password_changed_at.replace(tzinfo=timezone.utc)
            return issued_at < int(changed_at.timestamp())
        return False

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
