"""Kitchen assignment, acceptance and per-item progress."""

import json

import pytest

from dinehub.core.exceptions import BadRequestError, ConflictError, NotFoundError
from dinehub.models import KitchenOrder, Order, OrderStatus
from dinehub.schemas import DineInOrderCreate, KitchenAssignRequest, OrderItemCreate
from dinehub.services import excel_manager
from dinehub.services import kitchen as kitchen_service
from dinehub.services import orders as orders_service

ITEMS = [
    {"name": "Pizza Margherita", "quantity": 1, "unit_price": 14.0},
    {"name": "Caesar Salad", "quantity": 2, "unit_price": 8.0},
    {"name": "Tiramisu", "quantity": 1, "unit_price": 6.0},
]


async def place(db, restaurant_id, table_number=1) -> Order:
    data = DineInOrderCreate(table_number=table_number, items=[OrderItemCreate(**i) for i in ITEMS])
    return await orders_service.place_dine_in_order(db, restaurant_id, data)


async def send_to_kitchen(db, restaurant_id, order, assigned_by) -> KitchenOrder:
    created = await kitchen_service.assign_orders(
        db, restaurant_id, KitchenAssignRequest(order_ids=[order.id]), assigned_by
    )
    return created[0]


async def fresh(session_maker, model, row_id):
    async with session_maker() as session:
        return await session.get(model, row_id)


async def test_assign_mirrors_items(db, restaurant, tables, manager):
    order = await place(db, restaurant.id)
    kitchen_order = await send_to_kitchen(db, restaurant.id, order, manager.id)

    assert kitchen_order.status == OrderStatus.PENDING
    assert kitchen_order.items == order.items
    assert kitchen_order.table_number == 1


async def test_assign_twice_is_conflict(db, restaurant, tables, manager):
    order = await place(db, restaurant.id)
    await send_to_kitchen(db, restaurant.id, order, manager.id)

    with pytest.raises(ConflictError):
        await send_to_kitchen(db, restaurant.id, order, manager.id)


async def test_assign_unknown_order_rolls_back_batch(db, session_maker, restaurant, tables, manager):
    order = await place(db, restaurant.id)

    with pytest.raises(NotFoundError):
        await kitchen_service.assign_orders(
            db, restaurant.id, KitchenAssignRequest(order_ids=[order.id, 9999]), manager.id
        )

    assert await orders_service.get_kitchen_order_for(db, order.id) is None


async def test_accept_moves_both_rows_to_preparing(db, session_maker, restaurant, tables, manager, cook):
    order = await place(db, restaurant.id)
    kitchen_order = await send_to_kitchen(db, restaurant.id, order, manager.id)

    await kitchen_service.accept_order(db, restaurant.id, order.id, cook.id)

    stored_order = await fresh(session_maker, Order, order.id)
    stored_kitchen = await fresh(session_maker, KitchenOrder, kitchen_order.id)
    assert stored_order.status == OrderStatus.PREPARING
    assert stored_kitchen.status == OrderStatus.PREPARING
    assert stored_kitchen.staff_id == cook.id
    assert stored_kitchen.started_at is not None


async def test_accept_when_not_pending_is_rejected(db, session_maker, restaurant, tables, manager, cook):
    order = await place(db, restaurant.id)
    await send_to_kitchen(db, restaurant.id, order, manager.id)
    await kitchen_service.accept_order(db, restaurant.id, order.id, cook.id)

    with pytest.raises(ConflictError):
        await kitchen_service.accept_order(db, restaurant.id, order.id, manager.id)

    stored = await kitchen_service.get_kitchen_order(db, restaurant.id, order.id)
    assert stored.staff_id == cook.id


async def test_item_update_touches_only_its_index(db, session_maker, restaurant, tables, manager):
    order = await place(db, restaurant.id)
    await send_to_kitchen(db, restaurant.id, order, manager.id)

    await kitchen_service.update_item_status(db, restaurant.id, order.id, 1, "fulfilled")

    stored_order = await fresh(session_maker, Order, order.id)
    statuses = [i["status"] for i in json.loads(stored_order.items)]
    assert statuses == ["pending", "fulfilled", "pending"]
    names = [i["name"] for i in json.loads(stored_order.items)]
    assert names == [i["name"] for i in ITEMS]

    stored_kitchen = await kitchen_service.get_kitchen_order(db, restaurant.id, order.id)
    assert stored_kitchen.items == stored_order.items


async def test_item_update_rejects_bad_index_and_status(db, restaurant, tables, manager):
    order = await place(db, restaurant.id)
    await send_to_kitchen(db, restaurant.id, order, manager.id)

    with pytest.raises(BadRequestError):
        await kitchen_service.update_item_status(db, restaurant.id, order.id, 3, "fulfilled")
    with pytest.raises(BadRequestError):
        await kitchen_service.update_item_status(db, restaurant.id, order.id, 0, "burnt")


async def test_failed_item_update_leaves_both_rows_unchanged(
    db, session_maker, restaurant, tables, manager, monkeypatch
):
    order = await place(db, restaurant.id)
    kitchen_order = await send_to_kitchen(db, restaurant.id, order, manager.id)
    original_items = order.items

    async def failing_commit():
        await db.flush()
        raise RuntimeError("database went away")

    monkeypatch.setattr(db, "commit", failing_commit)
    with pytest.raises(RuntimeError):
        await kitchen_service.update_item_status(db, restaurant.id, order.id, 0, "fulfilled")
    monkeypatch.undo()

    assert (await fresh(session_maker, Order, order.id)).items == original_items
    assert (await fresh(session_maker, KitchenOrder, kitchen_order.id)).items == original_items


async def test_queued_order_only_starts_through_accept(db, restaurant, tables, manager, cook):
    order = await place(db, restaurant.id)
    await send_to_kitchen(db, restaurant.id, order, manager.id)

    with pytest.raises(ConflictError, match="accept"):
        await kitchen_service.update_status(db, restaurant.id, order.id, "preparing")
    with pytest.raises(ConflictError, match="accept"):
        await orders_service.update_order_status(db, restaurant.id, order.id, "preparing")

    kitchen_order = await kitchen_service.accept_order(db, restaurant.id, order.id, cook.id)
    assert kitchen_order.staff_id == cook.id


async def test_completion_flow_writes_ledger(db, session_maker, restaurant, tables, manager, cook):
    order = await place(db, restaurant.id)
    await send_to_kitchen(db, restaurant.id, order, manager.id)
    await kitchen_service.accept_order(db, restaurant.id, order.id, cook.id)
    await kitchen_service.update_status(db, restaurant.id, order.id, "ready")
    kitchen_order = await kitchen_service.update_status(db, restaurant.id, order.id, "completed")

    assert kitchen_order.completed_at is not None
    assert {i["status"] for i in json.loads(kitchen_order.items)} == {"fulfilled"}

    with pytest.raises(ConflictError):
        await kitchen_service.update_item_status(db, restaurant.id, order.id, 0, "pending")

    rows = excel_manager.ExcelManager.get_all_orders()
    assert order.order_number in [r["order_number"] for r in rows]


async def test_skipping_ready_is_conflict(db, restaurant, tables, manager, cook):
    order = await place(db, restaurant.id)
    await send_to_kitchen(db, restaurant.id, order, manager.id)
    await kitchen_service.accept_order(db, restaurant.id, order.id, cook.id)

    with pytest.raises(ConflictError):
        await kitchen_service.update_status(db, restaurant.id, order.id, "completed")


async def test_kitchen_endpoints_over_http(client, db, restaurant, tables, manager_headers, cook_headers):
    order = await place(db, restaurant.id)

    assigned = await client.post("/api/kitchen/orders", json={"order_ids": [order.id]}, headers=manager_headers)
    assert assigned.status_code == 201

    first = await client.post(f"/api/kitchen/orders/{order.id}/accept", headers=cook_headers)
    second = await client.post(f"/api/kitchen/orders/{order.id}/accept", headers=cook_headers)
    assert first.status_code == 200
    assert first.json()["status"] == "preparing"
    assert second.status_code == 409

    item = await client.patch(
        f"/api/kitchen/orders/{order.id}/items",
        json={"item_index": 0, "status": "fulfilled"},
        headers=cook_headers,
    )
    assert item.status_code == 200
    assert item.json()["items"][0]["status"] == "fulfilled"


async def test_customers_cannot_use_kitchen(client, customer_headers):
    response = await client.get("/api/kitchen/orders", headers=customer_headers)
    assert response.status_code == 403
