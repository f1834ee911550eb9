"""
Payments Service Layer

Authorize/capture on top of the payment gateway, plus the compensation scope
that releases an authorization hold when any later step fails.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator
import logging

from telecare.core.exceptions import (
    BaseCustomException, AuthorizationFailedError,
    CaptureFailedError, PaymentFailedError
)
from telecare.infrastructure.payments import (
    AUTHORIZED_STATUS, CAPTURED_STATUS,
    PaymentGatewayError, PaymentIntent, to_minor_units
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def with_compensation(gateway, payment_intent_id: str) -> AsyncIterator[None]:
    """Cancel the payment intent once if the wrapped block raises.

    Domain errors are re-raised unchanged; anything else becomes a
    ``PaymentFailedError`` carrying the original message. A failing cancel
    is logged and never replaces the original error.
    """
    try:
        yield
    except Exception as exc:
        try:
            await gateway.cancel(payment_intent_id)
        except Exception as cancel_exc:
            logger.error(
                f"Failed to cancel payment intent {payment_intent_id} during compensation: {cancel_exc}"
            )

        if isinstance(exc, BaseCustomException):
            raise
        logger.exception(f"Unexpected failure after authorizing {payment_intent_id}")
        raise PaymentFailedError(details={"error": str(exc)}) from exc


class PaymentService:
    """Service layer for authorizing and capturing fees"""

    def __init__(self, gateway, currency: str = "usd"):
        self.gateway = gateway
        self.currency = currency

    async def authorize(self, fee: float, payment_method_token: str) -> PaymentIntent:
        """Place a hold for the fee; nothing needs compensating if this fails"""
        try:
            intent = await self.gateway.authorize(
                to_minor_units(fee),
                self.currency,
                payment_method_token
            )
        except PaymentGatewayError as e:
            raise AuthorizationFailedError(details={"error": e.message})
        except Exception as e:
            logger.error(f"Payment authorization failed: {e}")
            raise AuthorizationFailedError(details={"error": str(e)})

        if intent.status != AUTHORIZED_STATUS:
            logger.warning(f"Payment intent {intent.id} not authorized: status {intent.status}")
            raise AuthorizationFailedError(details={"status": intent.status})
        return intent

    async def capture(self, payment_intent_id: str) -> None:
        try:
            result = await self.gateway.capture(payment_intent_id)
        except PaymentGatewayError as e:
            raise CaptureFailedError(details={"error": e.message})

        if result.status != CAPTURED_STATUS:
            raise CaptureFailedError(details={"status": result.status})
