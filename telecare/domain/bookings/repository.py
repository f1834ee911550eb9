"""
Bookings Repository Layer

Provides data access operations for consulting bookings.
"""

from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func
from sqlalchemy.orm import selectinload
from datetime import datetime
import uuid

from telecare.domain.bookings.models import Booking, PaymentStatus


class BookingRepository:
    """Repository for booking data access operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, booking_data: dict) -> Booking:
        """Create a new booking"""
        booking = Booking(**booking_data)
        self.db.add(booking)
        await self.db.commit()
        await self.db.refresh(booking)
        return booking

    async def get_by_id(self, booking_id: uuid.UUID) -> Optional[Booking]:
        """Get booking by ID with its patient"""
        result = await self.db.execute(
            select(Booking)
            .options(selectinload(Booking.patient))
            .where(Booking.id == booking_id)
        )
        return result.scalar_one_or_none()

    async def find_in_range(self, start: datetime, end: datetime) -> Optional[Booking]:
        """First booking whose appointment lies in [start, end], both ends inclusive"""
        result = await self.db.execute(
            select(Booking)
            .where(
                and_(
                    Booking.appointment_at >= start,
                    Booking.appointment_at <= end
                )
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_between(self, start: datetime, end: datetime) -> List[Booking]:
        """Bookings with start <= appointment < end, earliest first"""
        result = await self.db.execute(
            select(Booking)
            .where(
                and_(
                    Booking.appointment_at >= start,
                    Booking.appointment_at < end
                )
            )
            .order_by(Booking.appointment_at)
        )
        return list(result.scalars().all())

    async def get_by_patient(
        self,
        patient_id: uuid.UUID,
        skip: int = 0,
        limit: int = 10
    ) -> List[Booking]:
        """Get a page of bookings owned by a patient"""
        result = await self.db.execute(
            select(Booking)
            .where(Booking.patient_id == patient_id)
            .order_by(Booking.appointment_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_by_patient(self, patient_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count(Booking.id)).where(Booking.patient_id == patient_id)
        )
        return result.scalar_one()

    async def get_all(self, skip: int = 0, limit: int = 10) -> List[Booking]:
        """Get a page of all bookings with their patients"""
        result = await self.db.execute(
            select(Booking)
            .options(selectinload(Booking.patient))
            .order_by(Booking.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count(self, payment_status: Optional[PaymentStatus] = None) -> int:
        query = select(func.count(Booking.id))
        if payment_status:
            query = query.where(Booking.payment_status == payment_status)
        result = await self.db.execute(query)
        return result.scalar_one()

    async def count_upcoming(self, now: datetime) -> int:
        result = await self.db.execute(
            select(func.count(Booking.id)).where(Booking.appointment_at >= now)
        )
        return result.scalar_one()

    async def total_revenue(self) -> float:
        """Sum of fees over paid bookings"""
        result = await self.db.execute(
            select(func.coalesce(func.sum(Booking.booking_fee), 0.0))
            .where(Booking.payment_status == PaymentStatus.PAID)
        )
        return float(result.scalar_one())
