from sqlalchemy import Column, String, DateTime, Float, ForeignKey, Enum, Uuid, func
from sqlalchemy.orm import relationship
import uuid
import enum

from telecare.infrastructure.database import Base
from telecare.domain.bookings.models import PaymentStatus


class TestType(str, enum.Enum):
    BLOOD = "blood"
    TASSO = "tasso"
    PRICK = "prick"


class LabTest(Base):
    __tablename__ = "lab_tests"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    test_type = Column(Enum(TestType), nullable=False, index=True)

    # Uploaded document reference
    doc_file = Column(String(1024), nullable=True)
    doc_file_key = Column(String(512), nullable=True)

    payment_status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    test_fee = Column(Float, nullable=False)
    payment_intent_id = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    patient = relationship("User", back_populates="lab_tests")
