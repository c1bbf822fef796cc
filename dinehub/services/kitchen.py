"""
Kitchen Orders

A kitchen order mirrors one customer order for the kitchen screens. Its
status and items move together with the order (see ``orders.apply_status``).
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dinehub import realtime
from dinehub.core.exceptions import BadRequestError, ConflictError, NotFoundError
from dinehub.database import utcnow
from dinehub.models import ItemStatus, KitchenOrder, Order, OrderStatus
from dinehub.schemas import KitchenAssignRequest, KitchenOrderResponse
from dinehub.services import orders as orders_service
from dinehub.services import restaurants as restaurants_service

logger = logging.getLogger(__name__)


def kitchen_payload(kitchen_order: KitchenOrder) -> dict:
    return KitchenOrderResponse.model_validate(kitchen_order).model_dump(mode="json")


async def get_kitchen_order(db: AsyncSession, restaurant_id: int, order_id: int) -> KitchenOrder:
    kitchen_order = await orders_service.get_kitchen_order_for(db, order_id)
    if kitchen_order is None or kitchen_order.restaurant_id != restaurant_id:
        raise NotFoundError("Kitchen order", order_id)
    return kitchen_order


async def list_kitchen_orders(
    db: AsyncSession,
    restaurant_id: int,
    status: Optional[str] = None,
    staff_id: Optional[int] = None,
) -> list[KitchenOrder]:
    query = (
        select(KitchenOrder)
        .where(KitchenOrder.restaurant_id == restaurant_id)
        .order_by(KitchenOrder.assigned_at.desc(), KitchenOrder.id.desc())
    )
    if status:
        query = query.where(KitchenOrder.status == orders_service.parse_status(status))
    if staff_id is not None:
        query = query.where(KitchenOrder.staff_id == staff_id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def assign_orders(
    db: AsyncSession,
    restaurant_id: int,
    data: KitchenAssignRequest,
    assigned_by: int,
) -> list[KitchenOrder]:
    """
    Send pending orders to the kitchen as one batch.

    Raises:
        NotFoundError: Unknown order or staff member
        ConflictError: Order not pending or already in the kitchen
    """
    if data.staff_id is not None:
        await restaurants_service.get_user(db, data.staff_id, restaurant_id)

    created = []
    try:
        for order_id in dict.fromkeys(data.order_ids):
            order = await db.get(Order, order_id)
            if order is None or order.restaurant_id != restaurant_id:
                raise NotFoundError("Order", order_id)
            if order.status != OrderStatus.PENDING:
                raise ConflictError(f"Order {order.order_number} is {order.status.value}")
            if await orders_service.get_kitchen_order_for(db, order.id) is not None:
                raise ConflictError(f"Order {order.order_number} is already in the kitchen")

            kitchen_order = KitchenOrder(
                order_id=order.id,
                restaurant_id=restaurant_id,
                staff_id=data.staff_id,
                assigned_by=assigned_by,
                status=OrderStatus.PENDING,
                items=order.items,
                notes=data.notes or order.notes,
                assigned_at=utcnow(),
            )
            kitchen_order.order = order
            db.add(kitchen_order)
            created.append(kitchen_order)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("One of the orders is already in the kitchen")
    except Exception:
        await db.rollback()
        raise

    for kitchen_order in created:
        await db.refresh(kitchen_order)
    logger.info(f"👨‍🍳 {len(created)} order(s) sent to kitchen for restaurant {restaurant_id}")

    payloads = [kitchen_payload(k) for k in created]
    await realtime.emit("newKitchenOrder", {"orders": payloads}, restaurant_id)
    await realtime.emit(
        "ordersUpdate",
        {"type": "kitchen", "orderIds": [k.order_id for k in created]},
        restaurant_id,
    )
    return created


async def accept_order(db: AsyncSession, restaurant_id: int, order_id: int, staff_id: int) -> KitchenOrder:
    """
    A cook takes a pending kitchen order; it and its order move to preparing.

    Raises:
        ConflictError: Already accepted by someone else
    """
    kitchen_order = await get_kitchen_order(db, restaurant_id, order_id)
    if kitchen_order.status != OrderStatus.PENDING:
        raise ConflictError(f"Kitchen order is already {kitchen_order.status.value}")

    order = kitchen_order.order
    try:
        await orders_service.apply_status(db, order, kitchen_order, OrderStatus.PREPARING)
        kitchen_order.staff_id = staff_id
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(kitchen_order)
    logger.info(f"👨‍🍳 Order {kitchen_order.order_number} accepted by staff {staff_id}")

    await realtime.emit("orderAccepted", {
        "orderId": order_id,
        "status": OrderStatus.PREPARING.value,
        "staffId": staff_id,
        "kitchenOrder": kitchen_payload(kitchen_order),
        "timestamp": utcnow().isoformat(),
    }, restaurant_id)
    await realtime.emit("ordersUpdate", {"type": "update", "orderIds": [order_id]}, restaurant_id)
    return kitchen_order


async def update_status(db: AsyncSession, restaurant_id: int, order_id: int, status: str) -> KitchenOrder:
    new_status = orders_service.parse_status(status)
    kitchen_order = await get_kitchen_order(db, restaurant_id, order_id)
    orders_service.require_accept(kitchen_order, new_status)
    order = kitchen_order.order

    try:
        released = await orders_service.apply_status(db, order, kitchen_order, new_status)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(kitchen_order)
    await db.refresh(order)
    logger.info(f"👨‍🍳 Kitchen order {kitchen_order.order_number} -> {new_status.value}")

    await realtime.emit("orderStatusUpdate", {
        "orderId": order_id,
        "status": new_status.value,
        "kitchenOrder": kitchen_payload(kitchen_order),
        "timestamp": utcnow().isoformat(),
    }, restaurant_id)
    await orders_service.after_status_change(db, order, released)
    return kitchen_order


async def update_item_status(
    db: AsyncSession,
    restaurant_id: int,
    order_id: int,
    item_index: int,
    status: str,
) -> KitchenOrder:
    """
    Set the status of one line item, on both the kitchen order and its order.

    Raises:
        BadRequestError: Unknown item status or index out of range
        ConflictError: Order already closed
    """
    try:
        new_status = ItemStatus(status)
    except ValueError:
        raise BadRequestError(f"Invalid item status. Options: {[s.value for s in ItemStatus]}")

    kitchen_order = await get_kitchen_order(db, restaurant_id, order_id)
    if kitchen_order.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
        raise ConflictError(f"Kitchen order is {kitchen_order.status.value}")

    items = orders_service.load_items(kitchen_order.items)
    if not 0 <= item_index < len(items):
        raise BadRequestError(f"Item index {item_index} is out of range")

    items[item_index]["status"] = new_status.value
    serialized = orders_service.dump_items(items)
    try:
        kitchen_order.items = serialized
        kitchen_order.order.items = serialized
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(kitchen_order)

    await realtime.emit("itemStatusUpdate", {
        "orderId": order_id,
        "itemIndex": item_index,
        "status": new_status.value,
        "items": items,
        "timestamp": utcnow().isoformat(),
    }, restaurant_id)
    return kitchen_order
