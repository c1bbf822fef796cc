"""
Kitchen Endpoints

Orders are sent to the kitchen by management, accepted by a cook, then
moved through preparing -> ready -> completed. Per-item progress is
tracked on the serialized items.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub.database import get_db
from dinehub.dependencies import MANAGEMENT_ROLES, STAFF_ROLES, AuthContext, require_roles, resolve_restaurant_id
from dinehub.schemas import (
    ErrorResponse,
    ItemStatusUpdate,
    KitchenAssignRequest,
    KitchenOrderResponse,
    KitchenStatusUpdate,
)
from dinehub.services import kitchen as kitchen_service

router = APIRouter(prefix="/api/kitchen", tags=["Kitchen"])

management = require_roles(*MANAGEMENT_ROLES)
staff = require_roles(*STAFF_ROLES)

STATE_ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.post(
    "/orders",
    response_model=list[KitchenOrderResponse],
    status_code=status.HTTP_201_CREATED,
    responses=STATE_ERRORS,
    summary="Send orders to the kitchen",
)
async def assign_orders(
    data: KitchenAssignRequest,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(management),
    db: AsyncSession = Depends(get_db),
) -> list[KitchenOrderResponse]:
    """All-or-nothing: one unknown or already-assigned order rejects the batch."""
    created = await kitchen_service.assign_orders(
        db, resolve_restaurant_id(ctx, restaurant_id), data, ctx.user.id
    )
    return [KitchenOrderResponse.model_validate(k) for k in created]


@router.get("/orders", response_model=list[KitchenOrderResponse])
async def list_kitchen_orders(
    restaurant_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    staff_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(staff),
    db: AsyncSession = Depends(get_db),
) -> list[KitchenOrderResponse]:
    orders = await kitchen_service.list_kitchen_orders(
        db, resolve_restaurant_id(ctx, restaurant_id), status, staff_id
    )
    return [KitchenOrderResponse.model_validate(k) for k in orders]


@router.post(
    "/orders/{order_id}/accept",
    response_model=KitchenOrderResponse,
    responses=STATE_ERRORS,
    summary="Accept a pending kitchen order",
)
async def accept_order(
    order_id: int,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(staff),
    db: AsyncSession = Depends(get_db),
) -> KitchenOrderResponse:
    kitchen_order = await kitchen_service.accept_order(
        db, resolve_restaurant_id(ctx, restaurant_id), order_id, ctx.user.id
    )
    return KitchenOrderResponse.model_validate(kitchen_order)


@router.patch("/orders/{order_id}/status", response_model=KitchenOrderResponse, responses=STATE_ERRORS)
async def update_kitchen_status(
    order_id: int,
    data: KitchenStatusUpdate,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(staff),
    db: AsyncSession = Depends(get_db),
) -> KitchenOrderResponse:
    kitchen_order = await kitchen_service.update_status(
        db, resolve_restaurant_id(ctx, restaurant_id), order_id, data.status
    )
    return KitchenOrderResponse.model_validate(kitchen_order)


@router.patch(
    "/orders/{order_id}/items",
    response_model=KitchenOrderResponse,
    responses=STATE_ERRORS,
    summary="Update the status of one item",
)
async def update_item_status(
    order_id: int,
    data: ItemStatusUpdate,
    restaurant_id: Optional[int] = Query(None),
    ctx: AuthContext = Depends(staff),
    db: AsyncSession = Depends(get_db),
) -> KitchenOrderResponse:
    kitchen_order = await kitchen_service.update_item_status(
        db, resolve_restaurant_id(ctx, restaurant_id), order_id, data.item_index, data.status
    )
    return KitchenOrderResponse.model_validate(kitchen_order)
