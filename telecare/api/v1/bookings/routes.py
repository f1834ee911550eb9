"""
Bookings API Routes

API endpoints for paid consulting bookings.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date
import uuid

from telecare.infrastructure.database import get_db
from telecare.core.permissions import get_current_user, require_roles, ensure_owner_or_admin
from telecare.api.deps import get_payment_gateway, get_meeting_provisioner, get_email_sender, get_slot_lock
from telecare.domain.auth.models import User, UserRole
from telecare.domain.bookings.service import BookingService
from telecare.api.v1.schemas import PaginatedResponse, paginate
from telecare.api.v1.bookings.schemas import (
    BookingCreate, BookingResponse, BookingWithPatientResponse,
    BookingCreatedResponse, BookingDetailResponse, CalendarResponse
)

router = APIRouter()


@router.post("", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_in: BookingCreate,
    db: AsyncSession = Depends(get_db),
    gateway=Depends(get_payment_gateway),
    meeting_provisioner=Depends(get_meeting_provisioner),
    email_sender=Depends(get_email_sender),
    slot_lock=Depends(get_slot_lock),
    current_user: User = Depends(get_current_user)
):
    """Book a consulting slot and pay for it"""
    service = BookingService(db, gateway, meeting_provisioner, email_sender, slot_lock)
    result = await service.create_booking(current_user, booking_in)
    return {
        "status": "success",
        "data": {
            "booking": BookingResponse.model_validate(result.booking),
            "client_secret": result.client_secret
        }
    }


@router.get("/calendar", response_model=CalendarResponse)
async def get_calendar_bookings(
    filter_date: date = Query(..., alias="filterdate"),
    db: AsyncSession = Depends(get_db)
):
    """Booked appointment times in the month of filterdate"""
    appointments = await BookingService(db).calendar_bookings(filter_date)
    return {"status": "success", "results": len(appointments), "data": appointments}


@router.get("/user/{user_id}", response_model=PaginatedResponse[BookingResponse])
async def get_user_bookings(
    user_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ensure_owner_or_admin(current_user, user_id)
    bookings, total = await BookingService(db).list_user_bookings(user_id, page, limit)
    return paginate(bookings, total, page, limit)


@router.get("/client", response_model=PaginatedResponse[BookingResponse])
async def get_client_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Bookings owned by the caller"""
    bookings, total = await BookingService(db).list_client_bookings(current_user, page, limit)
    return paginate(bookings, total, page, limit)


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    booking = await BookingService(db).get_booking(booking_id)
    ensure_owner_or_admin(current_user, booking.patient_id)
    return {"status": "success", "data": booking}


@router.get("", response_model=PaginatedResponse[BookingWithPatientResponse])
async def get_all_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN))
):
    """All bookings with their patients (admin)"""
    bookings, total = await BookingService(db).list_all_bookings(page, limit)
    return paginate(bookings, total, page, limit)
