from functools import lru_cache
from telecare.core.config import settings
from telecare.domain.bookings.conflicts import SlotLock
from telecare.infrastructure.meetings import MeetingProviderConfig, ZoomMeetingProvisioner
from telecare.infrastructure.notifications import EmailConfig, EmailSender
from telecare.infrastructure.payments import PaymentGatewayConfig, StripePaymentGateway
from telecare.infrastructure.redis import get_lock_service


@lru_cache
def get_payment_gateway() -> StripePaymentGateway:
    return StripePaymentGateway(
        PaymentGatewayConfig(
            secret_key=settings.STRIPE_SECRET_KEY or "",
            currency=settings.PAYMENT_CURRENCY,
            timeout_seconds=settings.PAYMENT_TIMEOUT_SECONDS,
            max_network_retries=settings.PAYMENT_MAX_NETWORK_RETRIES
        )
    )


@lru_cache
def get_meeting_provisioner() -> ZoomMeetingProvisioner:
    return ZoomMeetingProvisioner(
        MeetingProviderConfig(
            account_id=settings.ZOOM_ACCOUNT_ID or "",
            client_id=settings.ZOOM_CLIENT_ID or "",
            client_secret=settings.ZOOM_CLIENT_SECRET or "",
            oauth_url=settings.ZOOM_OAUTH_URL,
            api_base_url=settings.ZOOM_API_BASE_URL,
            timezone=settings.ZOOM_TIMEZONE,
            duration_minutes=settings.MEETING_DURATION_MINUTES,
            timeout_seconds=settings.ZOOM_TIMEOUT_SECONDS,
            cache_token=settings.ZOOM_CACHE_TOKEN
        )
    )


@lru_cache
def get_email_sender() -> EmailSender:
    return EmailSender(
        EmailConfig(
            api_key=settings.RESEND_API_KEY,
            from_email=settings.EMAIL_FROM
        )
    )


def get_slot_lock() -> SlotLock:
    """Slot lock backed by Redis when it is connected, a no-op otherwise"""
    return SlotLock(
        get_lock_service(),
        ttl_seconds=settings.BOOKING_SLOT_LOCK_TTL_SECONDS,
        bucket_minutes=settings.BOOKING_CONFLICT_WINDOW_MINUTES
    )
