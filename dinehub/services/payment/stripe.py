"""
Stripe Payment Service Implementation

Production implementation using the official Stripe Python SDK.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - STRIPE_SECRET_KEY must be set in environment
    - STRIPE_WEBHOOK_SECRET for webhook verification

The SDK is synchronous; every call runs in a worker thread.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Optional

import stripe

from dinehub.core.config import get_settings
from dinehub.services.payment.base import (
    BasePaymentService,
    PaymentResult,
    RefundResult,
)

logger = logging.getLogger(__name__)


def _elapsed_ms(start: datetime) -> float:
    return (datetime.now() - start).total_seconds() * 1000


class StripePaymentService(BasePaymentService):
    """
    Production Stripe payment service implementation.

    Charges are PaymentIntents keyed by order number, so retrying a
    payment for the same order reuses the same intent.
    """

    def __init__(self):
        """
        Initialize Stripe with API key from settings.

        Raises:
            ValueError: If STRIPE_SECRET_KEY is not configured
        """
        settings = get_settings()

        if not settings.stripe_secret_key:
            raise ValueError(
                "STRIPE_SECRET_KEY is required for staging/production mode. "
                "Set it in your .env file or environment variables."
            )

        stripe.api_key = settings.stripe_secret_key
        stripe.api_version = "2023-10-16"

        self._webhook_secret = settings.stripe_webhook_secret
        self._currency = settings.stripe_currency

        logger.info(f"StripePaymentService initialized (api_version={stripe.api_version})")

    @property
    def provider_name(self) -> str:
        return "stripe"

    @staticmethod
    def _to_cents(amount: float) -> int:
        return int(round(amount * 100))

    @staticmethod
    def _from_cents(cents: int) -> float:
        return cents / 100.0

    async def process_payment(
        self,
        amount: float,
        order_number: str,
        currency: str = "usd",
        customer_email: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> PaymentResult:
        """
        Create and confirm a PaymentIntent for the order.

        Without a ``payment_method`` the intent is left for browser-side
        confirmation and the result is reported as not yet successful.
        """
        start_time = datetime.now()
        logger.info(f"Stripe: Processing payment of {amount:.2f} for {order_number}")

        if amount <= 0:
            return PaymentResult(
                success=False,
                error_message="Amount must be greater than 0",
                error_code="invalid_amount",
            )

        params = {
            "amount": self._to_cents(amount),
            "currency": currency or self._currency,
            "description": f"Order {order_number}",
            "receipt_email": customer_email,
            "metadata": {"order_number": order_number},
            "idempotency_key": f"pay-{order_number}",
        }
        if payment_method:
            params.update(payment_method=payment_method, confirm=True)

        try:
            intent = await asyncio.to_thread(stripe.PaymentIntent.create, **params)

        except stripe.CardError as e:
            logger.warning(f"Stripe: Card declined - {e.code}: {e.user_message}")
            return PaymentResult(
                success=False,
                error_message=e.user_message,
                error_code=e.code,
                response_time_ms=_elapsed_ms(start_time),
            )

        except stripe.AuthenticationError as e:
            logger.critical(f"Stripe: Authentication failed - {e}")
            return PaymentResult(
                success=False,
                error_message="Payment service configuration error",
                error_code="authentication_error",
            )

        except stripe.APIConnectionError as e:
            logger.error(f"Stripe: Connection error - {e}")
            return PaymentResult(
                success=False,
                error_message="Payment service temporarily unavailable",
                error_code="connection_error",
                response_time_ms=_elapsed_ms(start_time),
            )

        except stripe.StripeError as e:
            logger.error(f"Stripe: Error - {e}")
            return PaymentResult(
                success=False,
                error_message="Payment processing error",
                error_code="stripe_error",
                response_time_ms=_elapsed_ms(start_time),
            )

        logger.info(f"💳 Stripe: PaymentIntent {intent.id} - status={intent.status}")

        return PaymentResult(
            success=intent.status == "succeeded",
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=self._from_cents(intent.amount),
            currency=intent.currency,
            error_message=None if intent.status == "succeeded" else f"Payment {intent.status}",
            response_time_ms=_elapsed_ms(start_time),
            metadata={"status": intent.status},
        )

    async def create_payment_intent(
        self,
        amount: float,
        order_number: str,
        currency: str = "usd",
    ) -> PaymentResult:
        start_time = datetime.now()

        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                amount=self._to_cents(amount),
                currency=currency or self._currency,
                metadata={"order_number": order_number},
                automatic_payment_methods={"enabled": True},
                idempotency_key=f"intent-{order_number}",
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe: Failed to create PaymentIntent - {e}")
            return PaymentResult(
                success=False,
                error_message=str(e),
                error_code="stripe_error",
                response_time_ms=_elapsed_ms(start_time),
            )

        logger.debug(f"Stripe: PaymentIntent created - {intent.id}")
        return PaymentResult(
            success=True,
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=self._from_cents(intent.amount),
            currency=intent.currency,
            response_time_ms=_elapsed_ms(start_time),
            metadata={"status": intent.status},
        )

    async def refund_payment(
        self,
        payment_intent_id: str,
        amount: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> RefundResult:
        """
        Args:
            payment_intent_id: The PaymentIntent to refund
            amount: Partial refund amount (None = full refund)
            reason: Stripe reason code (duplicate, fraudulent, requested_by_customer)
        """
        refund_params = {"payment_intent": payment_intent_id}
        if amount is not None:
            refund_params["amount"] = self._to_cents(amount)
        if reason:
            refund_params["reason"] = reason

        try:
            refund = await asyncio.to_thread(stripe.Refund.create, **refund_params)
        except stripe.StripeError as e:
            logger.error(f"Stripe: Refund failed - {e}")
            return RefundResult(success=False, status="failed", error_message=str(e))

        logger.info(f"💸 Stripe: Refund processed - {refund.id} - status={refund.status}")
        return RefundResult(
            success=True,
            refund_id=refund.id,
            amount=self._from_cents(refund.amount),
            status=refund.status,
        )

    async def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> Optional[dict]:
        """
        Verify and parse a Stripe webhook event.

        Returns:
            Parsed event if valid, None if verification fails
        """
        if not self._webhook_secret:
            logger.warning("Stripe: Webhook secret not configured, skipping verification")
            try:
                return json.loads(payload)
            except json.JSONDecodeError:
                return None

        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Stripe: Webhook signature invalid - {e}")
            return None
        except ValueError as e:
            logger.warning(f"Stripe: Webhook payload invalid - {e}")
            return None

        logger.debug(f"Stripe: Webhook verified - {event['type']}")
        return event

    async def health_check(self) -> bool:
        try:
            await asyncio.to_thread(stripe.Account.retrieve)
            return True
        except stripe.StripeError as e:
            logger.error(f"Stripe: Health check failed - {e}")
            return False
