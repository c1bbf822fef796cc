"""Order payments through the configured payment provider."""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub import realtime
from dinehub.core.exceptions import BadRequestError, ConflictError
from dinehub.models import Order, OrderStatus, PaymentStatus
from dinehub.schemas import PaymentIntentResponse, PaymentResponse
from dinehub.services.payment import get_payment_service

logger = logging.getLogger(__name__)

# A replayed or late webhook must not revive refunded orders.
_WEBHOOK_PAYABLE = (PaymentStatus.PENDING, PaymentStatus.FAILED)


def _check_payable(order: Order) -> None:
    if order.payment_status == PaymentStatus.PAID:
        raise ConflictError(f"Order {order.order_number} is already paid")
    if order.payment_status == PaymentStatus.REFUNDED or order.status == OrderStatus.CANCELLED:
        raise ConflictError(f"Order {order.order_number} is cancelled")


async def pay_order(db: AsyncSession, order: Order, payment_method: str) -> PaymentResponse:
    """
    Charge an order. A declined charge marks the order ``failed`` and is
    returned, not raised; the customer may retry.
    """
    _check_payable(order)

    result = await get_payment_service().process_payment(
        amount=order.total_amount,
        order_number=order.order_number,
        currency=order.currency,
        customer_email=order.customer_email,
        payment_method=payment_method,
    )

    order.payment_method = payment_method
    if result.success:
        order.payment_status = PaymentStatus.PAID
        order.payment_intent_id = result.payment_intent_id
        logger.info(f"💳 Order {order.order_number} paid ({result.payment_intent_id})")
    else:
        order.payment_status = PaymentStatus.FAILED
        logger.warning(f"⚠️ Payment for {order.order_number} declined: {result.error_message}")
    await db.commit()

    await realtime.emit(
        "ordersUpdate",
        {"type": "payment", "orderIds": [order.id], "paymentStatus": order.payment_status.value},
        order.restaurant_id,
    )
    return PaymentResponse(
        success=result.success,
        order_id=order.id,
        payment_status=order.payment_status.value,
        payment_intent_id=result.payment_intent_id,
        amount=order.total_amount,
        error_message=result.error_message,
    )


async def create_intent(db: AsyncSession, order: Order) -> PaymentIntentResponse:
    _check_payable(order)

    result = await get_payment_service().create_payment_intent(
        amount=order.total_amount,
        order_number=order.order_number,
        currency=order.currency,
    )
    if result.success:
        order.payment_intent_id = result.payment_intent_id
        await db.commit()

    return PaymentIntentResponse(
        success=result.success,
        order_id=order.id,
        payment_intent_id=result.payment_intent_id,
        client_secret=result.client_secret,
        amount=order.total_amount,
        currency=order.currency,
        error_message=result.error_message,
    )


async def handle_webhook(db: AsyncSession, payload: bytes, signature: str) -> Optional[Order]:
    """
    Apply a provider webhook. Only ``payment_intent.succeeded`` changes state.

    Raises:
        BadRequestError: Signature or payload invalid
    """
    event = await get_payment_service().verify_webhook(payload, signature)
    if event is None:
        raise BadRequestError("Invalid webhook")

    event_type = event.get("type")
    if event_type != "payment_intent.succeeded":
        logger.info(f"Webhook {event_type} ignored")
        return None

    intent_id = event.get("data", {}).get("object", {}).get("id")
    if not intent_id:
        raise BadRequestError("Webhook has no payment intent")
    result = await db.execute(select(Order).where(Order.payment_intent_id == intent_id))
    order = result.scalar_one_or_none()
    if order is None:
        logger.warning(f"⚠️ Webhook for unknown payment intent {intent_id}")
        return None

    if order.status == OrderStatus.CANCELLED or order.payment_status not in _WEBHOOK_PAYABLE:
        logger.info(
            f"Webhook for order {order.order_number} ignored "
            f"({order.status.value}, payment {order.payment_status.value})"
        )
        return order

    order.payment_status = PaymentStatus.PAID
    await db.commit()
    logger.info(f"💳 Order {order.order_number} paid via webhook")
    await realtime.emit(
        "ordersUpdate",
        {"type": "payment", "orderIds": [order.id], "paymentStatus": PaymentStatus.PAID.value},
        order.restaurant_id,
    )
    return order
