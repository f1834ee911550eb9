"""
Lab Tests API Routes

Paid lab-test orders and their uploaded document metadata.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import uuid

from telecare.infrastructure.database import get_db
from telecare.core.permissions import get_current_user, require_roles, ensure_owner_or_admin
from telecare.api.deps import get_payment_gateway
from telecare.domain.auth.models import User, UserRole
from telecare.domain.lab.models import TestType
from telecare.domain.lab.service import LabTestService
from telecare.api.v1.schemas import PaginatedResponse, paginate
from telecare.api.v1.lab.schemas import (
    LabTestCreate, LabTestDocument, LabTestResponse,
    LabTestWithPatientResponse, LabTestCreatedResponse,
    LabTestDetailResponse, LabTestUpdatedResponse
)

router = APIRouter()


@router.post("", response_model=LabTestCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_test(
    test_in: LabTestCreate,
    db: AsyncSession = Depends(get_db),
    gateway=Depends(get_payment_gateway),
    current_user: User = Depends(get_current_user)
):
    """Order a lab test and charge its fee"""
    service = LabTestService(db, gateway)
    result = await service.create_test(current_user, test_in)
    return {
        "status": "success",
        "data": {
            "test": LabTestResponse.model_validate(result.test),
            "client_secret": result.client_secret
        }
    }


@router.get("/client", response_model=PaginatedResponse[LabTestResponse])
async def get_client_tests(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Lab tests ordered by the caller"""
    tests, total = await LabTestService(db).list_client_tests(current_user, page, limit)
    return paginate(tests, total, page, limit)


@router.get("/user/{user_id}", response_model=PaginatedResponse[LabTestResponse])
async def get_user_tests(
    user_id: uuid.UUID,
    test_type: Optional[TestType] = Query(None, alias="testType"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ensure_owner_or_admin(current_user, user_id)
    tests, total = await LabTestService(db).list_user_tests(user_id, test_type, page, limit)
    return paginate(tests, total, page, limit)


@router.get("", response_model=PaginatedResponse[LabTestWithPatientResponse])
async def get_all_tests(
    test_type: Optional[TestType] = Query(None, alias="testType"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN))
):
    """All lab tests, optionally of one type (admin)"""
    tests, total = await LabTestService(db).list_all_tests(test_type, page, limit)
    return paginate(tests, total, page, limit)


@router.get("/{test_id}", response_model=LabTestDetailResponse)
async def get_test(
    test_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    test = await LabTestService(db).get_test(test_id)
    ensure_owner_or_admin(current_user, test.patient_id)
    return {"status": "success", "data": test}


@router.patch("/{test_id}", response_model=LabTestUpdatedResponse)
async def attach_test_document(
    test_id: uuid.UUID,
    document: LabTestDocument,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Attach uploaded document metadata to a test order"""
    service = LabTestService(db)
    test = await service.get_test(test_id)
    ensure_owner_or_admin(current_user, test.patient_id)
    test = await service.attach_document(test_id, document)
    return {"status": "success", "data": test}
