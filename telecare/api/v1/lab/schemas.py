from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
import uuid
from telecare.api.v1.bookings.schemas import PatientSummary
from telecare.domain.bookings.models import PaymentStatus
from telecare.domain.lab.models import TestType


class LabTestCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    test_type: TestType = Field(..., alias="testType")
    test_fee: float = Field(..., ge=0, alias="testfee")
    payment_method_id: str = Field(..., min_length=1, alias="paymentMethodid")


class LabTestDocument(BaseModel):
    """Uploaded document metadata attached to a test order"""
    model_config = ConfigDict(populate_by_name=True)

    doc_file: str = Field(..., min_length=1, alias="docfile")
    doc_file_key: str = Field(..., min_length=1, alias="docfilekey")


class LabTestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    patient_id: uuid.UUID
    test_type: TestType
    doc_file: Optional[str] = None
    doc_file_key: Optional[str] = None
    payment_status: PaymentStatus
    test_fee: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LabTestWithPatientResponse(LabTestResponse):
    patient: Optional[PatientSummary] = None


class LabTestCreatedData(BaseModel):
    test: LabTestResponse
    client_secret: Optional[str] = None


class LabTestCreatedResponse(BaseModel):
    status: str = "success"
    data: LabTestCreatedData


class LabTestDetailResponse(BaseModel):
    status: str = "success"
    data: LabTestWithPatientResponse


class LabTestUpdatedResponse(BaseModel):
    status: str = "success"
    data: LabTestResponse
