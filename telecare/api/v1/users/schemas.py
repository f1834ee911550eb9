from pydantic import BaseModel
from typing import Dict
from telecare.api.v1.auth.schemas import UserResponse


class UserDetailResponse(BaseModel):
    status: str = "success"
    data: UserResponse


class DashboardStats(BaseModel):
    """Aggregate figures for the admin dashboard"""
    total_users: int
    total_clients: int
    active_users: int
    total_bookings: int
    paid_bookings: int
    upcoming_bookings: int
    total_tests: int
    tests_by_type: Dict[str, int]
    booking_revenue: float
    test_revenue: float


class DashboardStatsResponse(BaseModel):
    status: str = "success"
    data: DashboardStats
