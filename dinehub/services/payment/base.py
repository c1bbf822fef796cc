"""
Payment Service Abstract Base Class

Defines the interface contract for all payment service implementations.
Both MockPaymentService and StripePaymentService implement these methods,
so order payment, refunds on cancellation and the Stripe webhook behave
identically regardless of which service is active.

Design Pattern: Strategy Pattern
    - Allows runtime switching between payment providers
    - Facilitates testing with mock implementations
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class PaymentResult:
    """
    Standardized result from payment processing.

    Attributes:
        success: Whether the payment was successful
        payment_intent_id: Unique identifier for the payment (Stripe format: pi_xxx)
        client_secret: Secret the browser uses to confirm an intent
        amount: Amount charged in currency units
        currency: Currency code (e.g., "usd")
        error_message: Error description if payment failed
        error_code: Machine-readable error code
        response_time_ms: Time taken to process the payment
        metadata: Additional data from the payment provider
    """
    success: bool
    payment_intent_id: Optional[str] = None
    client_secret: Optional[str] = None
    amount: Optional[float] = None
    currency: str = "usd"
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    response_time_ms: float = 0.0
    metadata: Optional[dict] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "payment_intent_id": self.payment_intent_id,
            "amount": self.amount,
            "currency": self.currency,
            "error_message": self.error_message,
            "error_code": self.error_code,
            "response_time_ms": self.response_time_ms,
        }


@dataclass
class RefundResult:
    """
    Standardized result from refund processing.

    Attributes:
        success: Whether the refund was successful
        refund_id: Unique identifier for the refund
        amount: Amount refunded
        status: Refund status (pending, succeeded, failed)
        error_message: Error description if refund failed
    """
    success: bool
    refund_id: Optional[str] = None
    amount: Optional[float] = None
    status: str = "pending"
    error_message: Optional[str] = None


class BasePaymentService(ABC):
    """
    Abstract base class for payment services.

    Implementations never raise provider errors to the caller; every
    failure comes back as an unsuccessful result object.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the payment provider ("mock", "stripe")."""
        pass

    @abstractmethod
    async def process_payment(
        self,
        amount: float,
        order_number: str,
        currency: str = "usd",
        customer_email: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> PaymentResult:
        """
        Charge an order.

        Args:
            amount: Order total in currency units (e.g., 29.99)
            order_number: Public order number, used for idempotency and metadata
            currency: Three-letter currency code
            customer_email: Receipt address
            payment_method: Client-side payment method reference, if any
        """
        pass

    @abstractmethod
    async def create_payment_intent(
        self,
        amount: float,
        order_number: str,
        currency: str = "usd",
    ) -> PaymentResult:
        """Create an intent for browser-side confirmation; result carries the client secret."""
        pass

    @abstractmethod
    async def refund_payment(
        self,
        payment_intent_id: str,
        amount: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> RefundResult:
        """Refund a previous payment (full refund when amount is None)."""
        pass

    @abstractmethod
    async def verify_webhook(
        self,
        payload: bytes,
        signature: str,
    ) -> Optional[dict]:
        """
        Verify and parse a webhook from the payment provider.

        Returns:
            dict: Parsed webhook event if valid, None if invalid
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify connectivity to the payment service."""
        pass
