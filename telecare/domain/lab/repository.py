from typing import Optional, List, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
import uuid
from telecare.domain.bookings.models import PaymentStatus
from telecare.domain.lab.models import LabTest, TestType


class LabTestRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, test_data: dict) -> LabTest:
        test = LabTest(**test_data)
        self.db.add(test)
        await self.db.commit()
        await self.db.refresh(test)
        return test

    async def get_by_id(self, test_id: uuid.UUID) -> Optional[LabTest]:
        result = await self.db.execute(
            select(LabTest)
            .options(selectinload(LabTest.patient))
            .where(LabTest.id == test_id)
        )
        return result.scalar_one_or_none()

    def _owned_by(self, query, patient_id: uuid.UUID, test_type: Optional[TestType] = None):
        query = query.where(LabTest.patient_id == patient_id)
        if test_type:
            query = query.where(LabTest.test_type == test_type)
        return query

    async def get_by_patient(
        self,
        patient_id: uuid.UUID,
        test_type: Optional[TestType] = None,
        skip: int = 0,
        limit: int = 10
    ) -> List[LabTest]:
        query = self._owned_by(select(LabTest), patient_id, test_type)
        result = await self.db.execute(
            query.order_by(LabTest.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def count_by_patient(self, patient_id: uuid.UUID, test_type: Optional[TestType] = None) -> int:
        result = await self.db.execute(
            self._owned_by(select(func.count(LabTest.id)), patient_id, test_type)
        )
        return result.scalar_one()

    async def get_all(
        self,
        test_type: Optional[TestType] = None,
        skip: int = 0,
        limit: int = 10
    ) -> List[LabTest]:
        query = select(LabTest).options(selectinload(LabTest.patient))
        if test_type:
            query = query.where(LabTest.test_type == test_type)
        result = await self.db.execute(
            query.order_by(LabTest.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def count(self, test_type: Optional[TestType] = None) -> int:
        query = select(func.count(LabTest.id))
        if test_type:
            query = query.where(LabTest.test_type == test_type)
        result = await self.db.execute(query)
        return result.scalar_one()

    async def count_by_type(self) -> Dict[str, int]:
        result = await self.db.execute(
            select(LabTest.test_type, func.count(LabTest.id)).group_by(LabTest.test_type)
        )
        counts = {test_type.value: 0 for test_type in TestType}
        for test_type, total in result.all():
            counts[test_type.value] = total
        return counts

    async def total_revenue(self) -> float:
        result = await self.db.execute(
            select(func.coalesce(func.sum(LabTest.test_fee), 0.0))
            .where(LabTest.payment_status == PaymentStatus.PAID)
        )
        return float(result.scalar_one())

    async def update(self, test: LabTest, update_data: dict) -> LabTest:
        for key, value in update_data.items():
            if hasattr(test, key):
                setattr(test, key, value)
        await self.db.commit()
        await self.db.refresh(test)
        return test
