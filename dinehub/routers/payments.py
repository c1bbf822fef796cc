"""Payment endpoints and the payment provider webhook."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.database import get_db
from dinehub.dependencies import AuthContext, get_current_user, resolve_restaurant_id
from dinehub.models import Order
from dinehub.schemas import ErrorResponse, PaymentIntentResponse, PaymentRequest, PaymentResponse
from dinehub.services import orders as orders_service
from dinehub.services import payments as payments_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["Payments"])


async def _payable_order(db: AsyncSession, ctx: AuthContext, order_id: int, restaurant_id: Optional[int]) -> Order:
    if ctx.is_customer:
        return await orders_service.get_order(db, order_id, user_id=ctx.user.id)
    return await orders_service.get_order(db, order_id, resolve_restaurant_id(ctx, restaurant_id))


@router.post(
    "/orders/{order_id}/pay",
    response_model=PaymentResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Charge an order",
)
async def pay_order(
    order_id: int,
    data: PaymentRequest,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> PaymentResponse:
    """
    Charge the order total. A declined card returns ``success: false`` with
    the order marked ``failed``; it can be retried.
    """
    order = await _payable_order(db, ctx, order_id, restaurant_id)
    return await payments_service.pay_order(db, order, data.payment_method)


@router.post(
    "/orders/{order_id}/intent",
    response_model=PaymentIntentResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Create a payment intent for browser-side confirmation",
)
async def create_intent(
    order_id: int,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> PaymentIntentResponse:
    order = await _payable_order(db, ctx, order_id, restaurant_id)
    return await payments_service.create_intent(db, order)


@router.post("/webhook", responses={400: {"model": ErrorResponse}}, summary="Payment provider webhook")
async def payment_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
) -> dict[str, Any]:
    payload = await request.body()
    order = await payments_service.handle_webhook(db, payload, stripe_signature or "")
    return {"received": True, "order_id": order.id if order is not None else None}
