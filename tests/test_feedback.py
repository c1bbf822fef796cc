"""Per-item feedback on completed orders and the restaurant review list."""

import pytest

from dinehub.core.exceptions import BadRequestError, ConflictError
from dinehub.schemas import DineInOrderCreate, FeedbackCreate, OrderItemCreate
from dinehub.services import feedback as feedback_service
from dinehub.services import orders as orders_service


async def completed_order(db, restaurant_id, menu_item, customer=None, table_number=1):
    data = DineInOrderCreate(table_number=table_number, items=[
        OrderItemCreate(menu_item_id=menu_item.id, name="anything", quantity=1, unit_price=1.0),
        OrderItemCreate(name="House Wine", quantity=2, unit_price=6.0),
    ])
    order = await orders_service.place_dine_in_order(db, restaurant_id, data, customer=customer)
    for status in ("preparing", "ready", "completed"):
        order = await orders_service.update_order_status(db, restaurant_id, order.id, status)
    return order


async def test_feedback_opens_only_after_completion(db, restaurant, tables, menu_item):
    data = DineInOrderCreate(table_number=1, items=[OrderItemCreate(name="Soup", quantity=1, unit_price=5.0)])
    order = await orders_service.place_dine_in_order(db, restaurant.id, data)

    with pytest.raises(ConflictError, match="completed"):
        await feedback_service.submit_feedback(db, order.order_number, FeedbackCreate(item_indexes=[0], rating=5))


async def test_each_line_is_reviewed_once(db, restaurant, tables, menu_item, customer):
    order = await completed_order(db, restaurant.id, menu_item, customer=customer)

    reviews = await feedback_service.submit_feedback(
        db, order.order_number, FeedbackCreate(item_indexes=[0, 1, 0], rating=4, comment="Lovely")
    )

    assert [(r.item_index, r.item_name) for r in reviews] == [(0, "Pizza Margherita"), (1, "House Wine")]
    assert reviews[0].menu_item_id == menu_item.id
    assert reviews[1].menu_item_id is None
    assert {r.user_id for r in reviews} == {customer.id}

    with pytest.raises(ConflictError, match="already reviewed"):
        await feedback_service.submit_feedback(db, order.order_number, FeedbackCreate(item_indexes=[1], rating=2))
    with pytest.raises(BadRequestError):
        await feedback_service.submit_feedback(db, order.order_number, FeedbackCreate(item_indexes=[5], rating=2))


async def test_feedback_flow_over_http(client, db, restaurant, tables, menu_item, manager_headers, customer_headers):
    first = await completed_order(db, restaurant.id, menu_item, table_number=1)
    second = await completed_order(db, restaurant.id, menu_item, table_number=2)

    form = (await client.get(f"/api/feedback/orders/{first.order_number}")).json()
    assert [i["name"] for i in form["items"]] == ["Pizza Margherita", "House Wine"]
    assert form["reviews"] == []

    created = await client.post(
        f"/api/feedback/orders/{first.order_number}", json={"item_indexes": [0], "rating": 5}
    )
    assert created.status_code == 201
    await client.post(f"/api/feedback/orders/{second.order_number}", json={"item_indexes": [1], "rating": 2})
    assert (await client.post(
        f"/api/feedback/orders/{second.order_number}", json={"item_indexes": [0], "rating": 9}
    )).status_code == 422

    listing = (await client.get("/api/feedback/reviews", headers=manager_headers)).json()
    assert listing["total"] == 2
    assert listing["average_rating"] == 3.5

    low = (await client.get("/api/feedback/reviews?max_rating=3", headers=manager_headers)).json()
    assert [r["item_name"] for r in low["reviews"]] == ["House Wine"]

    assert (await client.get("/api/feedback/reviews", headers=customer_headers)).status_code == 403
    assert (await client.get("/api/feedback/orders/ORD-NOPE")).status_code == 404
