"""
Payment gateway adapter.

Wraps Stripe PaymentIntents in manual-capture mode: ``authorize`` places a
hold on the card, ``capture`` finalizes it and ``cancel`` releases it.

The request timeout is enforced by Stripe's own HTTP client, so a slow call
is aborted on the wire rather than left running in a worker thread. Every
call carries an idempotency key, which makes Stripe's network retries safe
to replay. Stripe errors and timeouts surface as ``PaymentGatewayError``.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
import asyncio
import logging
import uuid

import stripe

logger = logging.getLogger(__name__)

AUTHORIZED_STATUS = "requires_capture"
CAPTURED_STATUS = "succeeded"


class PaymentGatewayError(Exception):
    """Raised when Stripe rejects a call or does not answer in time"""

    def __init__(self, message: str, operation: str, code: Optional[str] = None):
        self.message = message
        self.operation = operation
        self.code = code
        super().__init__(message)


@dataclass(frozen=True)
class PaymentGatewayConfig:
    secret_key: str
    currency: str = "usd"
    timeout_seconds: float = 15.0
    max_network_retries: int = 1
    # Slack on top of the HTTP timeouts before the caller stops waiting
    deadline_grace_seconds: float = 2.0

    @property
    def deadline_seconds(self) -> float:
        attempts = self.max_network_retries + 1
        return self.timeout_seconds * attempts + self.deadline_grace_seconds


@dataclass
class PaymentIntent:
    id: str
    status: str
    client_secret: Optional[str] = None


@dataclass
class CaptureResult:
    status: str


def to_minor_units(amount) -> int:
    """Convert a fee in major units to integer minor units, rounding half up.

    The float is read through its decimal representation so that 19.995
    becomes 2000 rather than 1999.
    """
    value = Decimal(str(amount)) * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripePaymentGateway:
    """Stripe implementation of the payment gateway"""

    def __init__(self, config: PaymentGatewayConfig):
        self.config = config
        stripe.default_http_client = stripe.RequestsClient(timeout=config.timeout_seconds)
        stripe.max_network_retries = config.max_network_retries

    async def _call(self, operation: str, func, *args, **kwargs):
        kwargs["api_key"] = self.config.secret_key
        try:
            # The HTTP client aborts slow requests; this deadline only covers a stuck thread
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args, **kwargs),
                timeout=self.config.deadline_seconds
            )
        except asyncio.TimeoutError:
            logger.error(f"Stripe {operation} exceeded its {self.config.deadline_seconds}s deadline")
            raise PaymentGatewayError(f"Payment provider timed out during {operation}", operation, "timeout")
        except stripe.APIConnectionError as e:
            logger.error(f"Stripe {operation} could not reach the API: {e}")
            raise PaymentGatewayError(f"Payment provider timed out during {operation}", operation, "timeout")
        except stripe.StripeError as e:
            logger.error(f"Stripe {operation} failed: {e}")
            raise PaymentGatewayError(
                getattr(e, "user_message", None) or str(e),
                operation,
                getattr(e, "code", None)
            )

    async def authorize(
        self,
        amount_minor_units: int,
        currency: str,
        payment_method_token: str
    ) -> PaymentIntent:
        """Create and confirm a manual-capture PaymentIntent"""
        intent = await self._call(
            "authorize",
            stripe.PaymentIntent.create,
            amount=amount_minor_units,
            currency=currency or self.config.currency,
            payment_method=payment_method_token,
            payment_method_types=["card"],
            capture_method="manual",
            confirm=True,
            idempotency_key=f"authorize:{uuid.uuid4()}"
        )
        logger.info(f"Payment intent {intent.id} created with status {intent.status}")
        return PaymentIntent(
            id=intent.id,
            status=intent.status,
            client_secret=getattr(intent, "client_secret", None)
        )

    async def capture(self, payment_intent_id: str) -> CaptureResult:
        """Capture a previously authorized PaymentIntent.

        A timed-out capture may still have landed at Stripe, so the intent is
        read back before the timeout is reported.
        """
        try:
            intent = await self._call(
                "capture",
                stripe.PaymentIntent.capture,
                payment_intent_id,
                idempotency_key=f"capture:{payment_intent_id}"
            )
        except PaymentGatewayError as e:
            if e.code != "timeout":
                raise
            try:
                intent = await self._call("capture", stripe.PaymentIntent.retrieve, payment_intent_id)
            except PaymentGatewayError:
                raise e
            if intent.status != CAPTURED_STATUS:
                raise e
            logger.warning(f"Capture of {payment_intent_id} timed out but Stripe reports it captured")
        logger.info(f"Payment intent {payment_intent_id} captured with status {intent.status}")
        return CaptureResult(status=intent.status)

    async def cancel(self, payment_intent_id: str) -> None:
        """Release the authorization hold"""
        await self._call(
            "cancel",
            stripe.PaymentIntent.cancel,
            payment_intent_id,
            idempotency_key=f"cancel:{payment_intent_id}"
        )
        logger.info(f"Payment intent {payment_intent_id} cancelled")
