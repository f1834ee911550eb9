"""
Bookings Service Layer

Orchestrates a paid consulting booking: slot check, card authorization,
capture, meeting provisioning and persistence, releasing the authorization
hold if anything after it fails. Confirmation emails are sent afterwards and
never fail the booking.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, List, Tuple
import logging
import uuid

from telecare.core.config import settings
from telecare.core.exceptions import ConflictError, NotFoundError, ProvisioningFailedError
from telecare.domain.auth.models import User
from telecare.domain.bookings.conflicts import BookingConflictChecker, SlotLock, SLOT_TAKEN_MESSAGE
from telecare.domain.bookings.models import Booking, PaymentStatus
from telecare.domain.bookings.repository import BookingRepository
from telecare.domain.payments.service import PaymentService, with_compensation
from telecare.api.v1.bookings.schemas import BookingCreate

logger = logging.getLogger(__name__)


@dataclass
class BookingResult:
    booking: Booking
    client_secret: Optional[str] = None


def month_bounds(filter_date: date) -> Tuple[datetime, datetime]:
    """First instant of the month and first instant of the next one"""
    start = datetime(filter_date.year, filter_date.month, 1)
    if filter_date.month == 12:
        end = datetime(filter_date.year + 1, 1, 1)
    else:
        end = datetime(filter_date.year, filter_date.month + 1, 1)
    return start, end


class BookingService:
    """Service layer for consulting bookings"""

    def __init__(
        self,
        db,
        gateway=None,
        meeting_provisioner=None,
        email_sender=None,
        slot_lock: Optional[SlotLock] = None
    ):
        self.db = db
        self.booking_repo = BookingRepository(db)
        self.conflict_checker = BookingConflictChecker(
            self.booking_repo, settings.BOOKING_CONFLICT_WINDOW_MINUTES
        )
        self.gateway = gateway
        self.payments = PaymentService(gateway, settings.PAYMENT_CURRENCY)
        self.meeting_provisioner = meeting_provisioner
        self.email_sender = email_sender
        self.slot_lock = slot_lock or SlotLock(None)

    async def create_booking(self, patient: User, booking_data: BookingCreate) -> BookingResult:
        """Book a consulting slot for the patient and charge the fee"""
        appointment_at = booking_data.appointment_at

        async with self.slot_lock.hold(appointment_at):
            if await self.conflict_checker.has_conflict(appointment_at):
                raise ConflictError(
                    SLOT_TAKEN_MESSAGE,
                    details={"appointmentDateandTime": SLOT_TAKEN_MESSAGE}
                )

            intent = await self.payments.authorize(booking_data.booking_fee, booking_data.payment_method_id)

            async with with_compensation(self.gateway, intent.id):
                await self.payments.capture(intent.id)
                meeting_link = await self._provision_meeting(appointment_at)
                booking = await self._persist({
                    "patient_id": patient.id,
                    "appointment_at": appointment_at,
                    "reason": booking_data.reason,
                    "payment_status": PaymentStatus.PAID,
                    "booking_fee": booking_data.booking_fee,
                    "payment_intent_id": intent.id,
                    "meeting_link": meeting_link
                })

        logger.info(f"Booking {booking.id} created for patient {patient.id} at {appointment_at}")
        await self._notify(patient, booking)
        return BookingResult(booking=booking, client_secret=intent.client_secret)

    async def _provision_meeting(self, appointment_at: datetime) -> str:
        try:
            meeting = await self.meeting_provisioner.create_meeting(appointment_at)
        except Exception as e:
            logger.error(f"Meeting provisioning failed for {appointment_at}: {e}")
            raise ProvisioningFailedError(details={"error": str(e)})
        return meeting.join_url

    async def _persist(self, booking_data: dict) -> Booking:
        try:
            return await self.booking_repo.create(booking_data)
        except Exception:
            await self.db.rollback()
            raise

    async def _notify(self, patient: User, booking: Booking) -> None:
        if self.email_sender is None:
            return

        data = {
            "booking_id": str(booking.id),
            "name": patient.name,
            "email": patient.email,
            "appointment_at": booking.appointment_at.strftime("%Y-%m-%d %H:%M UTC"),
            "payment_status": booking.payment_status.value,
            "booking_fee": booking.booking_fee,
            "reason": booking.reason,
            "meeting_link": booking.meeting_link,
        }
        messages = [(patient.email, "booking_confirmation", "Your Booking is Confirmed")]
        if settings.ADMIN_NOTIFICATION_EMAIL:
            messages.append((settings.ADMIN_NOTIFICATION_EMAIL, "admin_booking_notice", "New Booking Created"))

        for recipient, template_name, subject in messages:
            try:
                await self.email_sender.send_template(recipient, template_name, subject, data)
            except Exception as e:
                logger.warning(
                    f"notification_failed: {template_name} for booking {booking.id} to {recipient}: {e}"
                )

    async def get_booking(self, booking_id: uuid.UUID) -> Booking:
        booking = await self.booking_repo.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    async def list_user_bookings(
        self,
        user_id: uuid.UUID,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[Booking], int]:
        skip = (page - 1) * limit
        bookings = await self.booking_repo.get_by_patient(user_id, skip=skip, limit=limit)
        total = await self.booking_repo.count_by_patient(user_id)
        return bookings, total

    async def list_client_bookings(
        self,
        current_user: User,
        page: int = 1,
        limit: int = 10
    ) -> Tuple[List[Booking], int]:
        return await self.list_user_bookings(current_user.id, page, limit)

    async def list_all_bookings(self, page: int = 1, limit: int = 10) -> Tuple[List[Booking], int]:
        skip = (page - 1) * limit
        bookings = await self.booking_repo.get_all(skip=skip, limit=limit)
        total = await self.booking_repo.count()
        return bookings, total

    async def calendar_bookings(self, filter_date: date) -> List[datetime]:
        """Appointment instants booked in the month containing filter_date"""
        start, end = month_bounds(filter_date)
        bookings = await self.booking_repo.list_between(start, end)
        return [booking.appointment_at for booking in bookings]
