from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional, Dict, Any
from datetime import datetime
import uuid
from telecare.api.v1.bookings.schemas import BookingCreate
from telecare.domain.auth.models import UserRole, UserStatus

# E.164: + country code and subscriber number
CONTACT_PATTERN = r"^\+[1-9]\d{6,14}$"
PASSWORD_MIN_LENGTH = 6


def normalize_email(v: Optional[str]) -> Optional[str]:
    return v.strip().lower() if v else v


class UserRegister(BookingCreate):
    """Sign-up bundled with the first paid consulting booking"""
    name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    contact: str = Field(..., pattern=CONTACT_PATTERN)
    city: str = Field(..., min_length=1, max_length=100)
    address: str = Field(..., min_length=1, max_length=200)
    postal_code: str = Field(..., min_length=1, max_length=20, alias="postalCode")
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=128)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v)

    def user_data(self) -> Dict[str, Any]:
        return self.model_dump(include={
            "name", "email", "contact", "city", "address", "postal_code", "password"
        })


class UserUpdate(BaseModel):
    """Schema for updating user information"""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    contact: Optional[str] = Field(None, pattern=CONTACT_PATTERN)
    city: Optional[str] = Field(None, max_length=100)
    address: Optional[str] = Field(None, max_length=200)
    postal_code: Optional[str] = Field(None, max_length=20, alias="postalCode")
    profile_picture: Optional[str] = Field(None, max_length=500, alias="profilePicture")
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v)


class UserStatusUpdate(BaseModel):
    status: UserStatus


class UserResponse(BaseModel):
    """Schema for user response data"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: Optional[str] = None
    email: str
    contact: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    profile_picture: Optional[str] = None
    role: UserRole
    status: UserStatus
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None


class LoginRequest(BaseModel):
    """Schema for login request"""
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v)


class TokenResponse(BaseModel):
    """Access token plus the signed-in user"""
    status: str = "success"
    token: str
    token_type: str = "bearer"
    data: UserResponse


class ForgotPasswordRequest(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return normalize_email(v)


class ResetPasswordRequest(BaseModel):
    """Schema for password reset confirmation"""
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=128)


class UpdatePasswordRequest(BaseModel):
    """Schema for password change request"""
    model_config = ConfigDict(populate_by_name=True)

    old_password: str = Field(..., min_length=1, alias="oldPassword")
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=128)


class CreateFirstPasswordRequest(BaseModel):
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=128)


class MessageResponse(BaseModel):
    """Schema for success responses"""
    status: str = "success"
    message: str
    data: Optional[Dict[str, Any]] = None
