"""
Bookings API Schemas

Pydantic models for booking requests and responses. Request fields also
accept the camelCase names used by existing clients.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from datetime import datetime, timezone
import uuid
from telecare.domain.auth.models import UserRole, UserStatus
from telecare.domain.bookings.models import PaymentStatus


def to_naive_utc(value: datetime) -> datetime:
    """Bookings are stored as naive UTC"""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class BookingCreate(BaseModel):
    """Schema for creating a paid consulting booking"""
    model_config = ConfigDict(populate_by_name=True)

    appointment_at: datetime = Field(..., alias="appointmentDateandTime")
    booking_fee: float = Field(..., ge=0, alias="bookingfee")
    payment_method_id: str = Field(..., min_length=1, alias="paymentMethodid")
    reason: Optional[str] = Field(None, max_length=2000)

    @field_validator("appointment_at")
    @classmethod
    def normalize_appointment(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class PatientSummary(BaseModel):
    """Public view of the booking owner"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: Optional[str] = None
    email: str
    contact: Optional[str] = None
    city: Optional[str] = None
    role: UserRole
    status: UserStatus


class BookingResponse(BaseModel):
    """Schema for booking response"""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    patient_id: uuid.UUID
    appointment_at: datetime
    reason: Optional[str] = None
    payment_status: PaymentStatus
    booking_fee: float
    meeting_link: Optional[str] = None
    created_at: Optional[datetime] = None


class BookingWithPatientResponse(BookingResponse):
    patient: Optional[PatientSummary] = None


class BookingCreatedData(BaseModel):
    booking: BookingResponse
    client_secret: Optional[str] = None


class BookingCreatedResponse(BaseModel):
    status: str = "success"
    data: BookingCreatedData


class BookingDetailResponse(BaseModel):
    status: str = "success"
    data: BookingWithPatientResponse


class CalendarResponse(BaseModel):
    """Appointment instants booked in a calendar month"""
    status: str = "success"
    results: int
    data: List[datetime]
