"""
Payment Service Factory

Provides a single entry point for obtaining a payment service instance.

Usage:
    from dinehub.services.payment import get_payment_service

    # Returns MockPaymentService or StripePaymentService based on ENV_MODE
    payment_service = get_payment_service()
    result = await payment_service.process_payment(29.99, "ORD-20240115-A1B2C3")

Environment Switching:
    - ENV_MODE=development → MockPaymentService (no API calls)
    - ENV_MODE=staging → StripePaymentService (test keys)
    - ENV_MODE=production → StripePaymentService (live keys)
"""

import logging
from functools import lru_cache

from dinehub.core.config import get_settings
from dinehub.services.payment.base import (
    BasePaymentService,
    PaymentResult,
    RefundResult,
)
from dinehub.services.payment.mock import MockPaymentService
from dinehub.services.payment.stripe import StripePaymentService

logger = logging.getLogger(__name__)


@lru_cache()
def get_payment_service() -> BasePaymentService:
    """
    Get the configured payment service instance (cached per process).

    Raises:
        ValueError: If staging/production mode but Stripe key not configured
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Payment Service: Using MockPaymentService (development mode)")
        max_latency = 0.8 if settings.mock_latency else 0.0
        return MockPaymentService(
            failure_rate=settings.mock_failure_rate,
            min_latency=min(0.2, max_latency),
            max_latency=max_latency,
        )
    else:
        logger.info(
            f"Payment Service: Using StripePaymentService "
            f"({settings.env_mode.value} mode)"
        )
        return StripePaymentService()


def reset_payment_service() -> None:
    """Clear the cached payment service instance."""
    get_payment_service.cache_clear()
    logger.debug("Payment service cache cleared")


__all__ = [
    "get_payment_service",
    "reset_payment_service",
    "BasePaymentService",
    "PaymentResult",
    "RefundResult",
    "MockPaymentService",
    "StripePaymentService",
]
