"""
Orders: placement, status workflow and post-commit side effects.

Status workflow (shared with kitchen orders):

    pending -> preparing -> ready -> completed
        \\          \\          \\
         +----------+----------+--> cancelled

Every transition is written with a conditional UPDATE on the current
status, so concurrent transitions of the same order cannot both succeed.
When a kitchen order exists it is moved in the same transaction.

Broadcasts, ledger export, refunds and emails run after commit and are
best-effort.
"""

import json
import logging
import secrets
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from dinehub import realtime
from dinehub.core.config import get_settings
from dinehub.core.exceptions import BadRequestError, ConflictError, NotFoundError
from dinehub.core.security import generate_pickup_code
from dinehub.database import utcnow
from dinehub.models import (
    DiningTable,
    ItemStatus,
    KitchenOrder,
    LoyaltyEntryType,
    MenuItem,
    Order,
    OrderStatus,
    OrderType,
    PaymentStatus,
    TableStatus,
    User,
)
from dinehub.schemas import (
    DineInOrderCreate,
    OrderCreate,
    OrderItemCreate,
    OrderStatsResponse,
    PickupOrderCreate,
    PosOrderCreate,
)
from dinehub.services import loyalty
from dinehub.services import settings as settings_service
from dinehub.services import tables as tables_service
from dinehub.services.notifications import get_notification_service
from dinehub.services.payment import get_payment_service

logger = logging.getLogger(__name__)

VALID_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}
OPEN_STATUSES = (OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY)
FEEDBACK_TEMPLATE = "item_feedback"


# =============================================================================
# HELPERS
# =============================================================================

def parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise BadRequestError(f"Invalid status. Options: {[s.value for s in OrderStatus]}")


def check_transition(current: OrderStatus, new: OrderStatus) -> None:
    if new not in VALID_TRANSITIONS[current]:
        raise ConflictError(f"Cannot change order status from {current.value} to {new.value}")


def generate_order_number() -> str:
    return f"ORD-{utcnow():%Y%m%d}-{secrets.token_hex(3).upper()}"


def load_items(raw: Optional[str]) -> list[dict[str, Any]]:
    return json.loads(raw) if raw else []


def dump_items(items: list[dict[str, Any]]) -> str:
    return json.dumps(items)


def mark_all_fulfilled(raw: str) -> str:
    items = load_items(raw)
    for item in items:
        item["status"] = ItemStatus.FULFILLED.value
    return dump_items(items)


def today_start() -> datetime:
    return utcnow().replace(hour=0, minute=0, second=0, microsecond=0)


def order_ledger_row(order: Order) -> dict[str, Any]:
    """Flat, JSON-serializable row for the Excel ledger and reports."""
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "restaurant_id": order.restaurant_id,
        "order_type": order.order_type.value,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "completed_at": order.completed_at.isoformat() if order.completed_at else None,
        "table_number": order.table.number if order.table is not None else None,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "customer_email": order.customer_email,
        "items": order.items,
        "notes": order.notes,
        "subtotal": order.subtotal,
        "tax": order.tax,
        "discount": order.discount,
        "total_amount": order.total_amount,
        "currency": order.currency,
        "payment_status": order.payment_status.value,
        "payment_method": order.payment_method,
        "payment_intent_id": order.payment_intent_id,
        "order_status": order.status.value,
    }


async def _resolve_items(db: AsyncSession, restaurant_id: int, items: list[OrderItemCreate]) -> list[dict[str, Any]]:
    """
    Serialize ordered items. Lines that reference a menu item take its
    current name and price.
    """
    resolved = []
    for item in items:
        name, unit_price = item.name, item.unit_price
        if item.menu_item_id is not None:
            menu_item = await db.get(MenuItem, item.menu_item_id)
            if menu_item is None or menu_item.restaurant_id != restaurant_id:
                raise BadRequestError(f"Menu item {item.menu_item_id} does not exist")
            if not menu_item.is_available:
                raise BadRequestError(f"{menu_item.name} is not available")
            name, unit_price = menu_item.name, menu_item.price
        resolved.append({
            "menu_item_id": item.menu_item_id,
            "name": name,
            "quantity": item.quantity,
            "unit_price": round(unit_price, 2),
            "notes": item.notes,
            "status": ItemStatus.PENDING.value,
        })
    return resolved


# =============================================================================
# PLACEMENT
# =============================================================================

async def _place_order(
    db: AsyncSession,
    restaurant_id: int,
    order_type: OrderType,
    data: OrderCreate,
    customer: Optional[User],
    created_by: Optional[int],
    table: Optional[DiningTable] = None,
) -> Order:
    """
    Write an order (and occupy its table) all-or-nothing.

    Raises:
        ConflictError: Table not available
        BadRequestError: Bad items or loyalty redemption
    """
    try:
        if table is not None:
            await tables_service.occupy_table(db, table)

        items = await _resolve_items(db, restaurant_id, data.items)
        subtotal = round(sum(i["quantity"] * i["unit_price"] for i in items), 2)
        tax = await settings_service.compute_tax(db, subtotal)

        config = await settings_service.get_loyalty_settings(db)
        customer_id = customer.id if customer is not None else None
        discount = 0.0
        if data.redeem_points:
            discount = await loyalty.redemption_discount(
                db, customer_id, data.redeem_points, subtotal + tax, config
            )
        total = round(subtotal + tax - discount, 2)

        order = Order(
            order_number=generate_order_number(),
            restaurant_id=restaurant_id,
            user_id=customer_id,
            table_id=table.id if table is not None else None,
            created_by=created_by,
            order_type=order_type,
            status=OrderStatus.PENDING,
            items=dump_items(items),
            notes=data.notes,
            customer_name=data.customer_name or (customer.full_name if customer else None),
            customer_phone=data.customer_phone or (customer.phone_number if customer else None),
            customer_email=data.customer_email or (customer.email if customer else None),
            subtotal=subtotal,
            tax=tax,
            discount=discount,
            total_amount=total,
            currency=get_settings().currency,
            payment_method=data.payment_method,
            points_redeemed=data.redeem_points,
            pickup_code=generate_pickup_code() if order_type == OrderType.PICKUP else None,
        )
        order.table = table
        db.add(order)
        await db.flush()

        if customer_id is not None and config.enabled:
            if data.redeem_points:
                loyalty.add_entry(db, customer_id, order.id, data.redeem_points,
                                  LoyaltyEntryType.REDEEM, config, f"Redeemed on {order.order_number}")
            else:
                order.points_earned = loyalty.points_for_total(total, config)
                if order.points_earned > 0:
                    loyalty.add_entry(db, customer_id, order.id, order.points_earned,
                                      LoyaltyEntryType.EARN, config, f"Earned on {order.order_number}")

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"🧾 Order {order.order_number} placed ({order_type.value}, "
        f"restaurant {restaurant_id}, total {order.total_amount:.2f})"
    )

    if table is not None:
        await realtime.emit("tableUpdate", tables_service.table_event(table), restaurant_id)
    await realtime.emit("ordersUpdate", {"type": "create", "orderIds": [order.id]}, restaurant_id)
    return order


async def place_dine_in_order(
    db: AsyncSession,
    restaurant_id: int,
    data: DineInOrderCreate,
    customer: Optional[User] = None,
    created_by: Optional[int] = None,
) -> Order:
    table = await tables_service.find_table(db, restaurant_id, data.table_number)
    if table is None:
        raise NotFoundError("Table", data.table_number)
    if table.status != TableStatus.AVAILABLE:
        raise ConflictError(f"Table {data.table_number} is currently not available")
    return await _place_order(db, restaurant_id, OrderType.DINE_IN, data, customer, created_by, table)


async def place_pickup_order(
    db: AsyncSession,
    restaurant_id: int,
    data: PickupOrderCreate,
    customer: Optional[User] = None,
) -> Order:
    order = await _place_order(db, restaurant_id, OrderType.PICKUP, data, customer, None)
    await _send_pickup_code(order)
    return order


async def place_pos_order(
    db: AsyncSession,
    restaurant_id: int,
    data: PosOrderCreate,
    created_by: int,
) -> Order:
    customer = None
    if data.customer_id is not None:
        customer = await db.get(User, data.customer_id)
        if customer is None:
            raise NotFoundError("Customer", data.customer_id)

    table = None
    if data.table_number is not None:
        table = await tables_service.find_table(db, restaurant_id, data.table_number)
        if table is None:
            raise NotFoundError("Table", data.table_number)
        if table.status != TableStatus.AVAILABLE:
            raise ConflictError(f"Table {data.table_number} is currently not available")

    return await _place_order(db, restaurant_id, OrderType.POS, data, customer, created_by, table)


async def _send_pickup_code(order: Order) -> None:
    message = f"Your order {order.order_number} pickup code is {order.pickup_code}."
    notifier = get_notification_service()
    if order.customer_phone:
        await notifier.send_sms(order.customer_phone, message)
    elif order.customer_email:
        await notifier.send_email(order.customer_email, f"Pickup code for {order.order_number}", f"<p>{message}</p>", message)


# =============================================================================
# QUERIES
# =============================================================================

async def get_order(db: AsyncSession, order_id: int, restaurant_id: Optional[int] = None,
                    user_id: Optional[int] = None) -> Order:
    order = await db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order", order_id)
    if restaurant_id is not None and order.restaurant_id != restaurant_id:
        raise NotFoundError("Order", order_id)
    if user_id is not None and order.user_id != user_id:
        raise NotFoundError("Order", order_id)
    return order


async def list_orders(
    db: AsyncSession,
    restaurant_id: Optional[int] = None,
    user_id: Optional[int] = None,
    status: Optional[str] = None,
    order_type: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[int, list[Order]]:
    query = select(Order)
    count_query = select(func.count(Order.id))
    filters = []
    if restaurant_id is not None:
        filters.append(Order.restaurant_id == restaurant_id)
    if user_id is not None:
        filters.append(Order.user_id == user_id)
    if status:
        filters.append(Order.status == parse_status(status))
    if order_type:
        try:
            filters.append(Order.order_type == OrderType(order_type))
        except ValueError:
            raise BadRequestError(f"Invalid order type. Options: {[t.value for t in OrderType]}")

    total = (await db.execute(count_query.where(*filters))).scalar() or 0
    result = await db.execute(
        query.where(*filters)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return total, list(result.scalars().all())


async def order_stats(db: AsyncSession, restaurant_id: int) -> OrderStatsResponse:
    start = today_start()
    today = Order.restaurant_id == restaurant_id, Order.created_at >= start

    today_orders = (await db.execute(select(func.count(Order.id)).where(*today))).scalar() or 0
    today_revenue = (await db.execute(
        select(func.coalesce(func.sum(Order.total_amount), 0.0))
        .where(*today, Order.status != OrderStatus.CANCELLED)
    )).scalar() or 0.0
    open_orders = (await db.execute(
        select(func.count(Order.id))
        .where(Order.restaurant_id == restaurant_id, Order.status.in_(OPEN_STATUSES))
    )).scalar() or 0

    table_counts = dict((await db.execute(
        select(DiningTable.status, func.count(DiningTable.id))
        .where(DiningTable.restaurant_id == restaurant_id, DiningTable.is_active.is_(True))
        .group_by(DiningTable.status)
    )).all())

    return OrderStatsResponse(
        today_orders=today_orders,
        today_revenue=round(float(today_revenue), 2),
        open_orders=open_orders,
        occupied_tables=table_counts.get(TableStatus.OCCUPIED, 0),
        available_tables=table_counts.get(TableStatus.AVAILABLE, 0),
    )


async def get_kitchen_order_for(db: AsyncSession, order_id: int) -> Optional[KitchenOrder]:
    result = await db.execute(select(KitchenOrder).where(KitchenOrder.order_id == order_id))
    return result.scalar_one_or_none()


# =============================================================================
# STATUS WORKFLOW
# =============================================================================

async def _claim_status(db: AsyncSession, model, row, expected: OrderStatus, new: OrderStatus) -> None:
    result = await db.execute(
        update(model)
        .where(model.id == row.id, model.status == expected)
        .values(status=new)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(f"Order status changed concurrently; expected {expected.value}")
    set_committed_value(row, "status", new)


def require_accept(kitchen_order: Optional[KitchenOrder], new_status: OrderStatus) -> None:
    """A kitchen-tracked order only starts preparing when a cook accepts it."""
    if (
        kitchen_order is not None
        and kitchen_order.status == OrderStatus.PENDING
        and new_status == OrderStatus.PREPARING
    ):
        raise ConflictError("Order is in the kitchen queue; a cook must accept it")


async def apply_status(
    db: AsyncSession,
    order: Order,
    kitchen_order: Optional[KitchenOrder],
    new_status: OrderStatus,
) -> Optional[DiningTable]:
    """
    Move an order (and its kitchen order) to ``new_status``. Does not commit.

    Returns:
        The table freed by completing or cancelling the order, if any
    """
    check_transition(order.status, new_status)
    now = utcnow()

    await _claim_status(db, Order, order, order.status, new_status)
    if kitchen_order is not None:
        await _claim_status(db, KitchenOrder, kitchen_order, kitchen_order.status, new_status)
        if new_status == OrderStatus.PREPARING and kitchen_order.started_at is None:
            kitchen_order.started_at = now
        elif new_status == OrderStatus.READY:
            kitchen_order.ready_at = now
        elif new_status == OrderStatus.COMPLETED:
            kitchen_order.completed_at = now

    if new_status == OrderStatus.COMPLETED:
        order.completed_at = now
        order.items = mark_all_fulfilled(order.items)
        if kitchen_order is not None:
            kitchen_order.items = order.items

    released = None
    if new_status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED):
        released = await tables_service.release_table(db, order.table_id)
    if new_status == OrderStatus.CANCELLED:
        await loyalty.reverse_order_entries(db, order.id)
    return released


async def after_status_change(
    db: AsyncSession,
    order: Order,
    released_table: Optional[DiningTable],
) -> None:
    """Post-commit effects of a transition. Never raises provider errors."""
    restaurant_id = order.restaurant_id

    if order.status == OrderStatus.CANCELLED and order.payment_status == PaymentStatus.PAID:
        await refund_order(db, order)

    if order.status == OrderStatus.COMPLETED:
        queue_ledger_export(order)
        await send_feedback_request(db, order)

    if released_table is not None:
        await realtime.emit("tableUpdate", tables_service.table_event(released_table), restaurant_id)
    await realtime.emit("ordersUpdate", {"type": "update", "orderIds": [order.id]}, restaurant_id)


async def update_order_status(db: AsyncSession, restaurant_id: int, order_id: int, status: str) -> Order:
    new_status = parse_status(status)
    order = await get_order(db, order_id, restaurant_id)
    kitchen_order = await get_kitchen_order_for(db, order.id)
    require_accept(kitchen_order, new_status)

    try:
        released = await apply_status(db, order, kitchen_order, new_status)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(order)
    logger.info(f"🔄 Order {order.order_number} -> {new_status.value}")

    await realtime.emit(
        "orderStatusUpdate",
        {"orderId": order.id, "status": new_status.value, "timestamp": utcnow().isoformat()},
        restaurant_id,
    )
    await after_status_change(db, order, released)
    return order


async def verify_pickup(db: AsyncSession, restaurant_id: int, order_id: int, code: str) -> Order:
    """Hand over a ready pickup order when the code matches."""
    order = await get_order(db, order_id, restaurant_id)
    if order.order_type != OrderType.PICKUP:
        raise BadRequestError("Order is not a pickup order")
    if order.status != OrderStatus.READY:
        raise ConflictError(f"Order is {order.status.value}, not ready for pickup")
    if not order.pickup_code or not secrets.compare_digest(order.pickup_code.encode(), code.encode()):
        raise BadRequestError("Invalid pickup code")

    kitchen_order = await get_kitchen_order_for(db, order.id)
    try:
        released = await apply_status(db, order, kitchen_order, OrderStatus.COMPLETED)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(order)
    logger.info(f"📦 Pickup order {order.order_number} handed over")
    await after_status_change(db, order, released)
    return order


# =============================================================================
# BEST-EFFORT SIDE EFFECTS
# =============================================================================

def queue_ledger_export(order: Order) -> None:
    from dinehub.tasks import export_order_to_excel

    try:
        export_order_to_excel.delay(order_ledger_row(order))
    except Exception as e:
        logger.error(f"❌ Could not queue ledger export for {order.order_number}: {e}")


async def refund_order(db: AsyncSession, order: Order) -> bool:
    if not order.payment_intent_id:
        logger.warning(f"⚠️ Paid order {order.order_number} has no payment reference to refund")
        return False
    result = await get_payment_service().refund_payment(
        order.payment_intent_id, reason="requested_by_customer"
    )
    if not result.success:
        logger.error(f"❌ Refund failed for {order.order_number}: {result.error_message}")
        return False
    order.payment_status = PaymentStatus.REFUNDED
    await db.commit()
    logger.info(f"💸 Order {order.order_number} refunded ({result.refund_id})")
    return True


async def send_feedback_request(db: AsyncSession, order: Order) -> bool:
    if not await settings_service.get_bool(db, settings_service.EMAIL_NOTIFICATIONS_ENABLED, default=True):
        return False
    if not order.customer_email:
        return False

    config = get_settings()
    rendered = await settings_service.render_named_template(db, FEEDBACK_TEMPLATE, {
        "customer_name": order.customer_name or "there",
        "order_number": order.order_number,
        "total_amount": f"{order.total_amount:.2f}",
        "company_name": config.company_name,
        "feedback_url": f"{config.app_base_url}/api/feedback/orders/{order.order_number}",
    })
    if rendered is None:
        return False

    subject, body = rendered
    result = await get_notification_service().send_templated_email(order.customer_email, subject, body)
    if not result.success:
        logger.warning(f"⚠️ Feedback email for {order.order_number} failed: {result.error_message}")
    return result.success
