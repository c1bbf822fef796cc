"""
Mock Payment Service Implementation

Simulates Stripe-like payment processing without making real API calls.
Used in development mode (ENV_MODE=development).

Behavior:
    - Simulates response times (200-800ms) unless latency is disabled
    - Randomly declines a configurable fraction of charges
    - Generates Stripe-like IDs (pi_mock_xxx, re_mock_xxx)
    - Remembers charged intents so refunds of unknown intents fail
"""

import asyncio
import json
import random
import uuid
import logging
from typing import Optional

from dinehub.services.payment.base import (
    BasePaymentService,
    PaymentResult,
    RefundResult,
)

logger = logging.getLogger(__name__)


class MockPaymentService(BasePaymentService):
    """
    Mock implementation of the payment service.

    Attributes:
        failure_rate: Probability of simulated payment failure (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds
    """

    # Simulated failure reasons (mimics real Stripe decline codes)
    DECLINE_REASONS = [
        ("card_declined", "Your card was declined."),
        ("insufficient_funds", "Your card has insufficient funds."),
        ("expired_card", "Your card has expired."),
        ("processing_error", "An error occurred while processing your card."),
    ]

    def __init__(
        self,
        failure_rate: float = 0.10,
        min_latency: float = 0.2,
        max_latency: float = 0.8,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        # payment_intent_id -> amount
        self._charges: dict[str, float] = {}

        logger.info(
            f"MockPaymentService initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _simulate_latency(self) -> float:
        """Sleep for a random latency; returns it in milliseconds."""
        latency = random.uniform(self.min_latency, self.max_latency)
        if latency > 0:
            await asyncio.sleep(latency)
        return latency * 1000

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def process_payment(
        self,
        amount: float,
        order_number: str,
        currency: str = "usd",
        customer_email: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> PaymentResult:
        logger.debug(f"Mock: Processing payment of {amount:.2f} {currency.upper()} for {order_number}")

        if amount <= 0:
            return PaymentResult(
                success=False,
                error_message="Amount must be greater than 0",
                error_code="invalid_amount",
            )

        latency_ms = await self._simulate_latency()

        if self._should_fail():
            error_code, error_message = random.choice(self.DECLINE_REASONS)
            logger.warning(f"Mock: Payment declined for {order_number} - {error_code}")
            return PaymentResult(
                success=False,
                amount=amount,
                currency=currency,
                error_message=error_message,
                error_code=error_code,
                response_time_ms=latency_ms,
            )

        payment_intent_id = f"pi_mock_{uuid.uuid4().hex[:24]}"
        self._charges[payment_intent_id] = amount
        logger.info(f"💳 Mock: Payment successful - {payment_intent_id} - {amount:.2f}")

        return PaymentResult(
            success=True,
            payment_intent_id=payment_intent_id,
            amount=amount,
            currency=currency,
            response_time_ms=latency_ms,
            metadata={"order_number": order_number, "mock": True},
        )

    async def create_payment_intent(
        self,
        amount: float,
        order_number: str,
        currency: str = "usd",
    ) -> PaymentResult:
        latency_ms = await self._simulate_latency()

        if amount <= 0:
            return PaymentResult(
                success=False,
                error_message="Amount must be greater than 0",
                error_code="invalid_amount",
                response_time_ms=latency_ms,
            )

        payment_intent_id = f"pi_mock_{uuid.uuid4().hex[:24]}"
        logger.debug(f"Mock: Created payment intent {payment_intent_id} for {order_number}")

        return PaymentResult(
            success=True,
            payment_intent_id=payment_intent_id,
            client_secret=f"{payment_intent_id}_secret_mock",
            amount=amount,
            currency=currency,
            response_time_ms=latency_ms,
            metadata={"order_number": order_number},
        )

    async def refund_payment(
        self,
        payment_intent_id: str,
        amount: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> RefundResult:
        await self._simulate_latency()

        if not payment_intent_id.startswith("pi_"):
            return RefundResult(
                success=False,
                status="failed",
                error_message="Invalid payment intent ID",
            )

        refunded = amount if amount is not None else self._charges.get(payment_intent_id)
        refund_id = f"re_mock_{uuid.uuid4().hex[:24]}"
        logger.info(f"💸 Mock: Refund processed - {refund_id} ({reason or 'no reason'})")

        return RefundResult(
            success=True,
            refund_id=refund_id,
            amount=refunded,
            status="succeeded",
        )

    async def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> Optional[dict]:
        """No signature check in mock mode; the payload is returned parsed."""
        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Mock: Invalid webhook payload")
            return None

    async def health_check(self) -> bool:
        return True
