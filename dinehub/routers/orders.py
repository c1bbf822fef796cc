"""
Order Endpoints

Placement (dine-in, pickup, POS), listing, statistics, status workflow
and pickup hand-over.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.core.exceptions import BadRequestError
from dinehub.database import get_db
from dinehub.dependencies import (
    STAFF_ROLES,
    AuthContext,
    get_current_user,
    get_optional_user,
    require_roles,
    resolve_restaurant_id,
)
from dinehub.schemas import (
    DineInOrderCreate,
    ErrorResponse,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatsResponse,
    OrderStatusUpdate,
    PickupOrderCreate,
    PickupVerifyRequest,
    PosOrderCreate,
)
from dinehub.services import orders as orders_service
from dinehub.services import restaurants as restaurants_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])

staff = require_roles(*STAFF_ROLES)

PLACEMENT_ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


async def _placement_restaurant(db: AsyncSession, ctx: Optional[AuthContext], data: OrderCreate) -> int:
    """Staff place orders for their own restaurant; everyone else names one."""
    if ctx is not None and not ctx.is_customer and not ctx.is_admin:
        return resolve_restaurant_id(ctx, data.restaurant_id)
    if data.restaurant_id is None:
        raise BadRequestError("restaurant_id is required")
    restaurant = await restaurants_service.get_restaurant(db, data.restaurant_id)
    if not restaurant.is_active:
        raise BadRequestError("Restaurant is not accepting orders")
    return restaurant.id


@router.post(
    "/dine-in",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses=PLACEMENT_ERRORS,
    summary="Place a dine-in order",
)
async def place_dine_in(
    data: DineInOrderCreate,
    ctx: Optional[AuthContext] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    """
    Place an order at a table. The table must be ``available``; it becomes
    ``occupied`` in the same transaction, otherwise nothing is written (409).
    """
    restaurant_id = await _placement_restaurant(db, ctx, data)
    customer = ctx.user if ctx is not None and ctx.is_customer else None
    created_by = ctx.user.id if ctx is not None and not ctx.is_customer else None
    order = await orders_service.place_dine_in_order(db, restaurant_id, data, customer, created_by)
    return OrderResponse.model_validate(order)


@router.post(
    "/pickup",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses=PLACEMENT_ERRORS,
    summary="Place a pickup order",
)
async def place_pickup(
    data: PickupOrderCreate,
    ctx: Optional[AuthContext] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    restaurant_id = await _placement_restaurant(db, ctx, data)
    customer = ctx.user if ctx is not None and ctx.is_customer else None
    order = await orders_service.place_pickup_order(db, restaurant_id, data, customer)
    return OrderResponse.model_validate(order)


@router.post(
    "/pos",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses=PLACEMENT_ERRORS,
    summary="Place an order from the point of sale",
)
async def place_pos(
    data: PosOrderCreate,
    ctx: AuthContext = Depends(staff),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    restaurant_id = resolve_restaurant_id(ctx, data.restaurant_id)
    order = await orders_service.place_pos_order(db, restaurant_id, data, ctx.user.id)
    return OrderResponse.model_validate(order)


@router.get("", response_model=OrderListResponse, summary="List orders")
async def list_orders(
    restaurant_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    order_type: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrderListResponse:
    """Customers see their own orders; staff see their restaurant's."""
    if ctx.is_customer:
        total, orders = await orders_service.list_orders(
            db, user_id=ctx.user.id, status=status, order_type=order_type, page=page, limit=limit
        )
    else:
        total, orders = await orders_service.list_orders(
            db, resolve_restaurant_id(ctx, restaurant_id), status=status,
            order_type=order_type, page=page, limit=limit,
        )
    return OrderListResponse(
        total=total,
        page=page,
        limit=limit,
        orders=[OrderResponse.model_validate(o) for o in orders],
    )


@router.get("/stats", response_model=OrderStatsResponse, summary="POS statistics for today")
async def order_stats(
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(staff),
    db: AsyncSession = Depends(get_db),
) -> OrderStatsResponse:
    return await orders_service.order_stats(db, resolve_restaurant_id(ctx, restaurant_id))


@router.get("/{order_id}", response_model=OrderResponse, responses={404: {"model": ErrorResponse}})
async def get_order(
    order_id: int,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    if ctx.is_customer:
        order = await orders_service.get_order(db, order_id, user_id=ctx.user.id)
    else:
        order = await orders_service.get_order(db, order_id, resolve_restaurant_id(ctx, restaurant_id))
    return OrderResponse.model_validate(order)


@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Move an order through its workflow",
)
async def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(staff),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await orders_service.update_order_status(
        db, resolve_restaurant_id(ctx, restaurant_id), order_id, data.status
    )
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/verify-pickup",
    response_model=OrderResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Hand over a pickup order",
)
async def verify_pickup(
    order_id: int,
    data: PickupVerifyRequest,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(staff),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await orders_service.verify_pickup(
        db, resolve_restaurant_id(ctx, restaurant_id), order_id, data.pickup_code
    )
    return OrderResponse.model_validate(order)
