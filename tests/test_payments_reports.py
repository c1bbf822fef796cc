"""Order payments, provider webhooks, dashboard and Excel exports."""

import io
import json
from datetime import date, datetime

import pandas as pd
import pytest

from dinehub.core.exceptions import BadRequestError, ConflictError
from dinehub.models import PaymentStatus
from dinehub.schemas import DineInOrderCreate, OrderItemCreate, PickupOrderCreate
from dinehub.services import orders as orders_service
from dinehub.services import payments as payments_service
from dinehub.services import reports as reports_service

ITEMS = [OrderItemCreate(name="Risotto", quantity=1, unit_price=18.0)]


async def place(db, restaurant_id, table_number=1):
    return await orders_service.place_dine_in_order(
        db, restaurant_id, DineInOrderCreate(table_number=table_number, items=ITEMS)
    )


# =============================================================================
# PAYMENTS
# =============================================================================

async def test_pay_order_once(db, restaurant, tables):
    order = await place(db, restaurant.id)

    result = await payments_service.pay_order(db, order, "card")
    assert result.success
    assert order.payment_status == PaymentStatus.PAID
    assert order.payment_intent_id.startswith("pi_mock_")

    with pytest.raises(ConflictError):
        await payments_service.pay_order(db, order, "card")


async def test_cancelling_paid_order_refunds_it(db, restaurant, tables):
    order = await place(db, restaurant.id)
    await payments_service.pay_order(db, order, "card")

    order = await orders_service.update_order_status(db, restaurant.id, order.id, "cancelled")

    assert order.payment_status == PaymentStatus.REFUNDED
    with pytest.raises(ConflictError):
        await payments_service.pay_order(db, order, "card")


async def test_webhook_marks_intent_paid(client, db, restaurant):
    order = await orders_service.place_pickup_order(db, restaurant.id, PickupOrderCreate(items=ITEMS))
    intent = await payments_service.create_intent(db, order)
    assert intent.success

    event = {"type": "payment_intent.succeeded", "data": {"object": {"id": intent.payment_intent_id}}}
    response = await client.post("/api/payments/webhook", content=json.dumps(event))

    assert response.status_code == 200
    assert response.json() == {"received": True, "order_id": order.id}
    await db.refresh(order)
    assert order.payment_status == PaymentStatus.PAID


async def test_late_webhook_does_not_revive_refunded_order(db, restaurant, tables):
    order = await place(db, restaurant.id)
    await payments_service.pay_order(db, order, "card")
    order = await orders_service.update_order_status(db, restaurant.id, order.id, "cancelled")
    assert order.payment_status == PaymentStatus.REFUNDED

    event = {"type": "payment_intent.succeeded", "data": {"object": {"id": order.payment_intent_id}}}
    await payments_service.handle_webhook(db, json.dumps(event).encode(), "")

    await db.refresh(order)
    assert order.payment_status == PaymentStatus.REFUNDED


async def test_webhook_ignores_other_events_and_rejects_garbage(db):
    ignored = await payments_service.handle_webhook(db, json.dumps({"type": "charge.refunded"}).encode(), "")
    assert ignored is None

    with pytest.raises(BadRequestError):
        await payments_service.handle_webhook(db, b"not json", "")


async def test_customer_cannot_pay_someone_elses_order(client, db, restaurant, tables, customer_headers):
    order = await place(db, restaurant.id)

    response = await client.post(
        f"/api/payments/orders/{order.id}/pay", json={"payment_method": "card"}, headers=customer_headers
    )
    assert response.status_code == 404


# =============================================================================
# REPORTS
# =============================================================================

def test_resolve_named_ranges():
    today = date(2025, 6, 18)

    assert reports_service.resolve_range("today", today=today) == (
        datetime(2025, 6, 18), datetime(2025, 6, 19)
    )
    assert reports_service.resolve_range("week", today=today)[0] == datetime(2025, 6, 12)
    assert reports_service.resolve_range("month", today=today)[0] == datetime(2025, 6, 1)
    assert reports_service.resolve_range("custom", date(2025, 5, 1), date(2025, 5, 31)) == (
        datetime(2025, 5, 1), datetime(2025, 6, 1)
    )


@pytest.mark.parametrize("start,end", [(None, date(2025, 5, 1)), (date(2025, 5, 2), date(2025, 5, 1))])
def test_bad_custom_range(start, end):
    with pytest.raises(BadRequestError):
        reports_service.resolve_range("custom", start, end)


async def test_dashboard_counts(db, restaurant, tables):
    await place(db, restaurant.id, 1)
    await place(db, restaurant.id, 2)

    dashboard = await reports_service.dashboard(db, restaurant.id)

    assert dashboard.tables_total == 3
    assert dashboard.tables_occupied == 2
    assert len(dashboard.recent_orders) == 2


async def test_export_downloads_workbook(client, db, restaurant, tables, manager_headers):
    order = await place(db, restaurant.id)

    response = await client.get("/api/reports/orders/export?range=today", headers=manager_headers)

    assert response.status_code == 200
    assert "attachment" in response.headers["content-disposition"]
    frame = pd.read_excel(io.BytesIO(response.content), engine="openpyxl")
    assert list(frame["order_number"]) == [order.order_number]
