"""Celery ledger export."""

import uuid

from dinehub.services.excel_manager import ExcelManager
from dinehub.tasks import export_order_to_excel


def ledger_row(order_number):
    return {
        "order_id": 1,
        "order_number": order_number,
        "restaurant_id": 1,
        "order_type": "pickup",
        "created_at": "2025-06-18T12:00:00",
        "items": '[{"name": "Soup", "quantity": 2, "unit_price": 4.0}]',
        "total_amount": 8.64,
        "order_status": "completed",
    }


def test_export_is_idempotent_per_order_number():
    order_number = f"ORD-TEST-{uuid.uuid4().hex[:6].upper()}"

    first = export_order_to_excel.apply(args=[ledger_row(order_number)]).get()
    second = export_order_to_excel.apply(args=[ledger_row(order_number)]).get()

    assert first["success"] and second["success"]
    assert "already exported" in second["message"]
    rows = [r for r in ExcelManager.get_all_orders() if r["order_number"] == order_number]
    assert len(rows) == 1
    assert rows[0]["items"] == "2x Soup"
    assert rows[0]["date_time"] == "2025-06-18T12:00:00"
