from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.permissions import get_current_user
from telecare.domain.auth.models import User
from telecare.domain.auth.service import AuthenticationService
from telecare.domain.bookings.service import BookingService
from telecare.api.deps import get_payment_gateway, get_meeting_provisioner, get_email_sender, get_slot_lock
from telecare.api.v1.auth.schemas import (
    UserRegister,
    LoginRequest,
    TokenResponse,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    UpdatePasswordRequest,
    CreateFirstPasswordRequest,
    MessageResponse,
    UserResponse
)
from telecare.infrastructure.database import get_db

router = APIRouter()


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_in: UserRegister,
    db: AsyncSession = Depends(get_db),
    gateway=Depends(get_payment_gateway),
    meeting_provisioner=Depends(get_meeting_provisioner),
    email_sender=Depends(get_email_sender),
    slot_lock=Depends(get_slot_lock)
):
    """Register a client together with a first paid booking"""
    booking_service = BookingService(db, gateway, meeting_provisioner, email_sender, slot_lock)
    auth_service = AuthenticationService(db, email_sender, booking_service)
    user, token, _ = await auth_service.register_with_booking(user_in)
    return {"status": "success", "token": token, "data": UserResponse.model_validate(user)}


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
async def login(
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Authenticate user and return an access token"""
    user, token = await AuthenticationService(db).login(login_data.email, login_data.password)
    return {"status": "success", "token": token, "data": UserResponse.model_validate(user)}


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    email_sender=Depends(get_email_sender)
):
    """Email a password reset link"""
    await AuthenticationService(db, email_sender).forgot_password(
        payload.email,
        origin=request.headers.get("origin")
    )
    return {"status": "success", "message": "Password reset link sent successfully!"}


@router.patch("/reset-password", response_model=TokenResponse)
async def reset_password(
    payload: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db)
):
    user, token = await AuthenticationService(db).reset_password(payload.token, payload.password)
    return {"status": "success", "token": token, "data": UserResponse.model_validate(user)}


@router.patch("/update-password", response_model=MessageResponse)
async def update_password(
    payload: UpdatePasswordRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Change the caller's password"""
    user = await AuthenticationService(db).update_password(current_user, payload.old_password, payload.password)
    return {"status": "success", "message": "Password updated Successfully", "data": {"email": user.email}}


@router.patch("/create-first-password", response_model=MessageResponse)
async def create_first_password(
    payload: CreateFirstPasswordRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    user = await AuthenticationService(db).create_first_password(current_user, payload.password)
    return {"status": "success", "message": "Password created Successfully", "data": {"email": user.email}}
