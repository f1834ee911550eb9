"""
Booking conflict detection.

A requested appointment at A conflicts with any existing booking at B when
A - window <= B <= A. ``SlotLock`` serializes concurrent requests for nearby
instants so the check and the insert that follows it cannot interleave.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, List, Optional, Tuple
import logging

from telecare.core.exceptions import ConflictError
from telecare.domain.bookings.repository import BookingRepository
from telecare.infrastructure.redis import LockService

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "Booking already exists during your selected date and time"


class BookingConflictChecker:
    """Answers whether a requested appointment instant is already taken"""

    def __init__(self, repository: BookingRepository, window_minutes: int = 30):
        self.repository = repository
        self.window = timedelta(minutes=window_minutes)

    async def has_conflict(self, appointment_at: datetime) -> bool:
        existing = await self.repository.find_in_range(appointment_at - self.window, appointment_at)
        return existing is not None


class SlotLock:
    """Short-lived Redis locks over the time buckets around an appointment"""

    def __init__(
        self,
        lock_service: Optional[LockService],
        ttl_seconds: int = 90,
        bucket_minutes: int = 30
    ):
        self.lock_service = lock_service
        self.ttl_seconds = ttl_seconds
        self.bucket_seconds = bucket_minutes * 60

    def keys_for(self, appointment_at: datetime) -> List[str]:
        """Keys for the bucket containing the instant and the one after it.

        Two instants at most one bucket apart always share a key.
        """
        if appointment_at.tzinfo is None:
            appointment_at = appointment_at.replace(tzinfo=timezone.utc)
        bucket = int(appointment_at.timestamp()) // self.bucket_seconds
        return [f"booking-slot:{bucket}", f"booking-slot:{bucket + 1}"]

    async def _release(self, held: List[Tuple[str, str]]) -> None:
        for key, token in reversed(held):
            await self.lock_service.release_lock(key, token)

    @asynccontextmanager
    async def hold(self, appointment_at: datetime) -> AsyncIterator[None]:
        if self.lock_service is None:
            logger.warning("Redis is not configured; booking slot lock skipped")
            yield
            return

        held: List[Tuple[str, str]] = []
        try:
            for key in self.keys_for(appointment_at):
                token = await self.lock_service.acquire_lock(key, timeout=self.ttl_seconds)
                if token is None:
                    raise ConflictError(
                        "Another booking for this time is being processed",
                        details={"appointmentDateandTime": SLOT_TAKEN_MESSAGE}
                    )
                held.append((key, token))
        except ConflictError:
            await self._release(held)
            raise
        except Exception as e:
            # Redis went away between startup and now
            logger.warning(f"Booking slot lock unavailable, continuing without it: {e}")
            await self._release(held)
            held = []

        try:
            yield
        finally:
            await self._release(held)
