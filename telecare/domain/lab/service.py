from dataclasses import dataclass
from typing import Optional, List, Tuple
import logging
import uuid
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.config import settings
from telecare.core.exceptions import NotFoundError
from telecare.domain.auth.models import User
from telecare.domain.bookings.models import PaymentStatus
from telecare.domain.lab.models import LabTest, TestType
from telecare.domain.lab.repository import LabTestRepository
from telecare.domain.payments.service import PaymentService, with_compensation
from telecare.api.v1.lab.schemas import LabTestCreate, LabTestDocument

logger = logging.getLogger(__name__)


@dataclass
class LabTestResult:
    test: LabTest
    client_secret: Optional[str] = None


class LabTestService:
    def __init__(self, db: AsyncSession, gateway=None):
        self.db = db
        self.repo = LabTestRepository(db)
        self.gateway = gateway
        self.payments = PaymentService(gateway, settings.PAYMENT_CURRENCY)

    async def create_test(self, patient: User, test_in: LabTestCreate) -> LabTestResult:
        """Charge the test fee and record the paid order"""
        intent = await self.payments.authorize(test_in.test_fee, test_in.payment_method_id)

        async with with_compensation(self.gateway, intent.id):
            await self.payments.capture(intent.id)
            try:
                test = await self.repo.create({
                    "patient_id": patient.id,
                    "test_type": test_in.test_type,
                    "payment_status": PaymentStatus.PAID,
                    "test_fee": test_in.test_fee,
                    "payment_intent_id": intent.id
                })
            except Exception:
                await self.db.rollback()
                raise

        logger.info(f"Lab test {test.id} ({test.test_type.value}) ordered by {patient.id}")
        return LabTestResult(test=test, client_secret=intent.client_secret)

    async def get_test(self, test_id: uuid.UUID) -> LabTest:
        test = await self.repo.get_by_id(test_id)
        if not test:
            raise NotFoundError("Test not found")
        return test

    async def list_user_tests(
        self,
        user_id: uuid.UUID,
        test_type: Optional[TestType] = None,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[LabTest], int]:
        skip = (page - 1) * limit
        tests = await self.repo.get_by_patient(user_id, test_type, skip=skip, limit=limit)
        total = await self.repo.count_by_patient(user_id, test_type)
        return tests, total

    async def list_client_tests(self, current_user: User, page: int = 1, limit: int = 10) -> Tuple[List[LabTest], int]:
        return await self.list_user_tests(current_user.id, None, page, limit)

    async def list_all_tests(
        self,
        test_type: Optional[TestType] = None,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[LabTest], int]:
        skip = (page - 1) * limit
        tests = await self.repo.get_all(test_type, skip=skip, limit=limit)
        total = await self.repo.count(test_type)
        return tests, total

    async def attach_document(self, test_id: uuid.UUID, document: LabTestDocument) -> LabTest:
        test = await self.get_test(test_id)
        return await self.repo.update(test, {
            "doc_file": document.doc_file,
            "doc_file_key": document.doc_file_key
        })
