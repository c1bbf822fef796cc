"""Order placement, pickup hand-over and the status workflow."""

import json

import pytest
from sqlalchemy import func, select

from dinehub.core.exceptions import BadRequestError, ConflictError, NotFoundError
from dinehub.models import DiningTable, LoyaltyPoint, Order, OrderStatus, Setting, TableStatus
from dinehub.schemas import DineInOrderCreate, OrderItemCreate, PickupOrderCreate
from dinehub.services import orders as orders_service
from dinehub.services import tables as tables_service

ITEMS = [{"name": "Pasta Carbonara", "quantity": 2, "unit_price": 10.0}]


def dine_in(table_number, **extra):
    return DineInOrderCreate(
        table_number=table_number,
        items=[OrderItemCreate(**i) for i in ITEMS],
        **extra,
    )


async def count_orders(session_maker) -> int:
    async with session_maker() as session:
        return (await session.execute(select(func.count(Order.id)))).scalar()


async def table_status(session_maker, table_id) -> TableStatus:
    async with session_maker() as session:
        return (await session.get(DiningTable, table_id)).status


# =============================================================================
# PLACEMENT
# =============================================================================

async def test_dine_in_order_occupies_table(db, session_maker, restaurant, tables):
    order = await orders_service.place_dine_in_order(db, restaurant.id, dine_in(1))

    assert order.status == OrderStatus.PENDING
    assert order.order_number.startswith("ORD-")
    assert order.subtotal == 20.0
    assert order.tax == 1.6
    assert order.total_amount == 21.6
    assert await table_status(session_maker, tables[0].id) == TableStatus.OCCUPIED


async def test_occupied_table_rejects_order_without_writing(db, session_maker, restaurant, tables):
    await orders_service.place_dine_in_order(db, restaurant.id, dine_in(1))
    before = await count_orders(session_maker)

    with pytest.raises(ConflictError):
        await orders_service.place_dine_in_order(db, restaurant.id, dine_in(1))

    assert await count_orders(session_maker) == before


async def test_reserved_table_rejects_order(db, restaurant, tables):
    tables[1].status = TableStatus.RESERVED
    await db.commit()

    with pytest.raises(ConflictError):
        await orders_service.place_dine_in_order(db, restaurant.id, dine_in(2))


async def test_unknown_table_is_not_found(db, restaurant, tables):
    with pytest.raises(NotFoundError):
        await orders_service.place_dine_in_order(db, restaurant.id, dine_in(99))


async def test_menu_linked_item_uses_menu_price(db, restaurant, tables, menu_item):
    data = DineInOrderCreate(
        table_number=1,
        items=[OrderItemCreate(menu_item_id=menu_item.id, name="anything", quantity=2, unit_price=1.0)],
    )
    order = await orders_service.place_dine_in_order(db, restaurant.id, data)

    item = json.loads(order.items)[0]
    assert item["name"] == "Pizza Margherita"
    assert item["unit_price"] == 12.5
    assert item["status"] == "pending"
    assert order.subtotal == 25.0


async def test_unavailable_menu_item_is_rejected(db, session_maker, restaurant, tables, menu_item):
    menu_item.is_available = False
    await db.commit()
    data = DineInOrderCreate(
        table_number=1,
        items=[OrderItemCreate(menu_item_id=menu_item.id, name="x", quantity=1, unit_price=1.0)],
    )

    with pytest.raises(BadRequestError):
        await orders_service.place_dine_in_order(db, restaurant.id, data)

    # The table occupation rolled back with the failed order
    assert await table_status(session_maker, tables[0].id) == TableStatus.AVAILABLE


async def test_tax_rates_setting_overrides_config(db, restaurant, tables):
    db.add(Setting(key="tax_rates", value=json.dumps({"enabled": True, "rate": 10})))
    await db.commit()

    order = await orders_service.place_dine_in_order(db, restaurant.id, dine_in(1))
    assert order.tax == 2.0


async def test_loyalty_points_earned_for_customer(db, restaurant, tables, customer):
    db.add(Setting(key="loyalty", value=json.dumps({"enabled": True, "earnRate": 1})))
    await db.commit()

    order = await orders_service.place_dine_in_order(db, restaurant.id, dine_in(1), customer=customer)

    assert order.points_earned == 21
    entries = (await db.execute(select(LoyaltyPoint).where(LoyaltyPoint.order_id == order.id))).scalars().all()
    assert [e.points for e in entries] == [21]


async def test_pickup_order_gets_code(db, restaurant):
    data = PickupOrderCreate(items=[OrderItemCreate(**i) for i in ITEMS], customer_phone="+15550002222")
    order = await orders_service.place_pickup_order(db, restaurant.id, data)

    assert order.table_id is None
    assert len(order.pickup_code) == 6


# =============================================================================
# STATUS WORKFLOW
# =============================================================================

async def test_invalid_transition_is_conflict(db, restaurant, tables):
    order = await orders_service.place_dine_in_order(db, restaurant.id, dine_in(1))

    with pytest.raises(ConflictError):
        await orders_service.update_order_status(db, restaurant.id, order.id, "completed")


async def test_unknown_status_is_bad_request(db, restaurant, tables):
    order = await orders_service.place_dine_in_order(db, restaurant.id, dine_in(1))

    with pytest.raises(BadRequestError):
        await orders_service.update_order_status(db, restaurant.id, order.id, "eaten")


async def test_cancel_frees_table_and_reverses_points(db, session_maker, restaurant, tables, customer):
    db.add(Setting(key="loyalty", value=json.dumps({"enabled": True})))
    await db.commit()
    order = await orders_service.place_dine_in_order(db, restaurant.id, dine_in(1), customer=customer)

    await orders_service.update_order_status(db, restaurant.id, order.id, "cancelled")

    assert await table_status(session_maker, tables[0].id) == TableStatus.AVAILABLE
    remaining = (await db.execute(select(func.count(LoyaltyPoint.id)))).scalar()
    assert remaining == 0


async def test_closing_order_keeps_table_held_by_another_open_order(db, session_maker, restaurant, tables):
    first = await orders_service.place_dine_in_order(db, restaurant.id, dine_in(1))
    await tables_service.update_status(db, restaurant.id, tables[0].id, "available")
    second = await orders_service.place_dine_in_order(db, restaurant.id, dine_in(1))

    await orders_service.update_order_status(db, restaurant.id, first.id, "cancelled")

    assert await table_status(session_maker, tables[0].id) == TableStatus.OCCUPIED
    with pytest.raises(ConflictError):
        await orders_service.place_dine_in_order(db, restaurant.id, dine_in(1))

    await orders_service.update_order_status(db, restaurant.id, second.id, "cancelled")
    assert await table_status(session_maker, tables[0].id) == TableStatus.AVAILABLE


async def test_completion_marks_items_fulfilled_and_frees_table(db, session_maker, restaurant, tables):
    order = await orders_service.place_dine_in_order(db, restaurant.id, dine_in(1))
    for status in ("preparing", "ready", "completed"):
        order = await orders_service.update_order_status(db, restaurant.id, order.id, status)

    assert order.completed_at is not None
    assert {i["status"] for i in json.loads(order.items)} == {"fulfilled"}
    assert await table_status(session_maker, tables[0].id) == TableStatus.AVAILABLE


async def test_verify_pickup_requires_ready_and_matching_code(db, restaurant):
    data = PickupOrderCreate(items=[OrderItemCreate(**i) for i in ITEMS], customer_email="a@example.com")
    order = await orders_service.place_pickup_order(db, restaurant.id, data)

    with pytest.raises(ConflictError):
        await orders_service.verify_pickup(db, restaurant.id, order.id, order.pickup_code)

    for status in ("preparing", "ready"):
        await orders_service.update_order_status(db, restaurant.id, order.id, status)

    wrong = "111111" if order.pickup_code == "000000" else "000000"
    with pytest.raises(BadRequestError):
        await orders_service.verify_pickup(db, restaurant.id, order.id, wrong)

    order = await orders_service.verify_pickup(db, restaurant.id, order.id, order.pickup_code)
    assert order.status == OrderStatus.COMPLETED


async def test_non_ascii_pickup_code_is_rejected_cleanly(client, db, restaurant, manager_headers):
    data = PickupOrderCreate(items=[OrderItemCreate(**i) for i in ITEMS])
    order = await orders_service.place_pickup_order(db, restaurant.id, data)
    for status in ("preparing", "ready"):
        await orders_service.update_order_status(db, restaurant.id, order.id, status)

    with pytest.raises(BadRequestError):
        await orders_service.verify_pickup(db, restaurant.id, order.id, "éééééé")

    response = await client.post(
        f"/api/orders/{order.id}/verify-pickup", json={"pickup_code": "éééééé"}, headers=manager_headers
    )
    assert response.status_code == 422


async def test_order_from_other_restaurant_is_hidden(db, restaurant, tables):
    order = await orders_service.place_dine_in_order(db, restaurant.id, dine_in(1))

    with pytest.raises(NotFoundError):
        await orders_service.get_order(db, order.id, restaurant_id=restaurant.id + 1)


# =============================================================================
# HTTP
# =============================================================================

async def test_anonymous_dine_in_over_http(client, restaurant, tables):
    payload = {"restaurant_id": restaurant.id, "table_number": 2, "items": ITEMS}

    first = await client.post("/api/orders/dine-in", json=payload)
    second = await client.post("/api/orders/dine-in", json=payload)

    assert first.status_code == 201
    assert first.json()["items"][0]["name"] == "Pasta Carbonara"
    assert second.status_code == 409


async def test_customer_sees_only_own_orders(client, db, restaurant, tables, customer, customer_headers):
    await orders_service.place_dine_in_order(db, restaurant.id, dine_in(1))
    mine = await client.post(
        "/api/orders/dine-in",
        json={"restaurant_id": restaurant.id, "table_number": 2, "items": ITEMS},
        headers=customer_headers,
    )
    assert mine.status_code == 201

    response = await client.get("/api/orders", headers=customer_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["orders"][0]["user_id"] == customer.id


async def test_stats_count_tables(client, db, restaurant, tables, manager_headers):
    await orders_service.place_dine_in_order(db, restaurant.id, dine_in(3))

    response = await client.get("/api/orders/stats", headers=manager_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["today_orders"] == 1
    assert body["occupied_tables"] == 1
    assert body["available_tables"] == 2
