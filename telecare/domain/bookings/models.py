"""
Bookings Domain Models

Paid consulting bookings. A booking row is written once, after the payment
has been captured and the video meeting provisioned, and is never deleted.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, Float, Text, Enum, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from telecare.infrastructure.database import Base
import uuid
import enum


class PaymentStatus(str, enum.Enum):
    """Payment status shared by bookings and lab tests"""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class Booking(Base):
    """Consulting booking model"""
    __tablename__ = "bookings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)

    appointment_at = Column(DateTime, nullable=False, index=True)
    reason = Column(Text)

    # Payment
    payment_status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    booking_fee = Column(Float, nullable=False)
    payment_intent_id = Column(String(255))

    meeting_link = Column(String(1024))

    created_at = Column(DateTime, default=func.now())

    # Relationships
    patient = relationship("User", back_populates="bookings")
