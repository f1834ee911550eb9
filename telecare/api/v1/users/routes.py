"""
Users API Routes

Admin user management, profile access and dashboard figures.
"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from telecare.infrastructure.database import get_db
from telecare.core.permissions import get_current_user, require_roles
from telecare.domain.auth.models import User, UserRole, UserStatus
from telecare.domain.auth.service import UserService
from telecare.api.v1.schemas import PaginatedResponse, paginate
from telecare.api.v1.auth.schemas import UserResponse, UserUpdate, UserStatusUpdate
from telecare.api.v1.users.schemas import UserDetailResponse, DashboardStatsResponse

router = APIRouter()

admin_only = require_roles(UserRole.ADMIN)


@router.get("/dashboard-stats", response_model=DashboardStatsResponse)
async def get_dashboard_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(admin_only)
):
    return {"status": "success", "data": await UserService(db).dashboard_stats()}


@router.get("/me", response_model=UserDetailResponse)
async def get_profile(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get the caller's profile"""
    return {"status": "success", "data": await UserService(db).get_profile(current_user)}


@router.patch("/me", response_model=UserDetailResponse)
async def update_profile(
    user_data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(admin_only)
):
    user = await UserService(db).update_profile(current_user, user_data)
    return {"status": "success", "data": user}


@router.get("/{user_id}", response_model=UserDetailResponse)
async def get_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(admin_only)
):
    return {"status": "success", "data": await UserService(db).get_user(user_id)}


@router.patch("/{user_id}", response_model=UserDetailResponse)
async def update_user(
    user_id: uuid.UUID,
    user_data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(admin_only)
):
    """Update user information"""
    user = await UserService(db).update_user(user_id, user_data)
    return {"status": "success", "data": user}


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(admin_only)
):
    """Soft delete a user"""
    await UserService(db).delete_user(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{user_id}/status", response_model=UserDetailResponse)
async def update_user_status(
    user_id: uuid.UUID,
    payload: UserStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(admin_only)
):
    user = await UserService(db).update_status(user_id, payload.status)
    return {"status": "success", "data": user}


@router.get("", response_model=PaginatedResponse[UserResponse])
async def list_users(
    role: Optional[UserRole] = Query(None),
    user_status: Optional[UserStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(admin_only)
):
    """List users, newest first (admin)"""
    users, total = await UserService(db).list_users(role, user_status, search, page, limit)
    return paginate(users, total, page, limit)
