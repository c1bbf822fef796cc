"""Tables, menu, business settings, templates and loyalty."""

import json

import pytest

from dinehub.core.exceptions import BadRequestError, ConflictError
from dinehub.models import MenuCategory, MenuItem, Setting
from dinehub.schemas import (
    DineInOrderCreate,
    EmailTemplateUpsert,
    LoyaltySettings,
    OrderItemCreate,
    SettingUpsert,
    TableCreate,
)
from dinehub.services import loyalty as loyalty_service
from dinehub.services import orders as orders_service
from dinehub.services import settings as settings_service
from dinehub.services import tables as tables_service


# =============================================================================
# TABLES
# =============================================================================

async def test_duplicate_table_number_is_conflict(db, restaurant, tables):
    with pytest.raises(ConflictError):
        await tables_service.create_table(db, restaurant.id, TableCreate(number=1))


async def test_public_availability(client, db, restaurant, tables):
    await tables_service.update_status(db, restaurant.id, tables[1].id, "reserved")

    free = (await client.get(f"/api/tables/availability/{restaurant.id}/1")).json()
    reserved = (await client.get(f"/api/tables/availability/{restaurant.id}/2")).json()
    missing = (await client.get(f"/api/tables/availability/{restaurant.id}/42")).json()

    assert free["available"] is True
    assert reserved == {"number": 2, "exists": True, "available": False, "status": "reserved"}
    assert missing["exists"] is False


async def test_bad_table_status_is_rejected(db, restaurant, tables):
    with pytest.raises(BadRequestError):
        await tables_service.update_status(db, restaurant.id, tables[0].id, "broken")


async def test_staff_manage_tables_over_http(client, restaurant, manager_headers, cook_headers):
    created = await client.post("/api/tables", json={"number": 7, "capacity": 6}, headers=manager_headers)
    assert created.status_code == 201
    assert created.json()["status"] == "available"

    assert (await client.post("/api/tables", json={"number": 8}, headers=cook_headers)).status_code == 403

    updated = await client.patch(
        f"/api/tables/{created.json()['id']}/status", json={"status": "occupied"}, headers=cook_headers
    )
    assert updated.json()["status"] == "occupied"


# =============================================================================
# MENU
# =============================================================================

async def test_public_menu_groups_available_items(client, db, restaurant):
    pizzas = MenuCategory(restaurant_id=restaurant.id, name="Pizzas")
    db.add(pizzas)
    await db.flush()
    db.add_all([
        MenuItem(restaurant_id=restaurant.id, category_id=pizzas.id, name="Margherita", price=12.0),
        MenuItem(restaurant_id=restaurant.id, category_id=pizzas.id, name="Sold out", price=9.0, is_available=False),
        MenuItem(restaurant_id=restaurant.id, name="Water", price=2.0),
    ])
    await db.commit()

    response = await client.get(f"/api/menu/public/{restaurant.id}")
    sections = {s["category_name"]: [i["name"] for i in s["items"]] for s in response.json()}
    assert sections == {"Pizzas": ["Margherita"], "Other": ["Water"]}


async def test_menu_item_crud_over_http(client, manager_headers):
    created = await client.post(
        "/api/menu/items", json={"name": "Lasagna", "price": 15.5}, headers=manager_headers
    )
    assert created.status_code == 201
    item_id = created.json()["id"]

    patched = await client.patch(f"/api/menu/items/{item_id}", json={"price": 16.0}, headers=manager_headers)
    assert patched.json()["price"] == 16.0

    assert (await client.delete(f"/api/menu/items/{item_id}", headers=manager_headers)).status_code == 200
    assert (await client.get(f"/api/menu/items/{item_id}", headers=manager_headers)).status_code == 404


# =============================================================================
# SETTINGS & TEMPLATES
# =============================================================================

async def test_typed_setting_reads(db):
    db.add_all([
        Setting(key="FLAG", value="Yes"),
        Setting(key="NUMBER", value="not-a-number"),
        Setting(key="BLOB", value="{broken"),
    ])
    await db.commit()

    assert await settings_service.get_bool(db, "FLAG") is True
    assert await settings_service.get_bool(db, "MISSING", default=True) is True
    assert await settings_service.get_int(db, "NUMBER", 6) == 6
    assert await settings_service.get_json(db, "BLOB", default={}) == {}


async def test_fixed_and_disabled_tax(db):
    await settings_service.upsert_setting(db, SettingUpsert(
        key="tax_rates", value=json.dumps({"enabled": True, "type": "fixed", "rate": 3})
    ))
    assert await settings_service.compute_tax(db, 100.0) == 3.0

    await settings_service.upsert_setting(db, SettingUpsert(
        key="tax_rates", value=json.dumps({"enabled": False, "rate": 10})
    ))
    assert await settings_service.compute_tax(db, 100.0) == 0.0


async def test_invalid_loyalty_setting_is_rejected(db):
    with pytest.raises(BadRequestError):
        await settings_service.upsert_setting(db, SettingUpsert(key="loyalty", value="{\"redeemRate\": 0}"))


def test_render_template_keeps_unknown_placeholders():
    text = "Hi {{ customer_name }}, order {{order_number}} {{unknown}}"
    assert settings_service.render_template(text, {"customer_name": "Ana", "order_number": "ORD-1"}) == (
        "Hi Ana, order ORD-1 {{ unknown }}"
    )


async def test_template_with_broken_syntax_is_rejected(db):
    with pytest.raises(BadRequestError, match="template syntax"):
        await settings_service.upsert_template(
            db, "item_feedback", EmailTemplateUpsert(subject="Order {{ order_number", body="<p>Thanks</p>")
        )
    assert await settings_service.find_template(db, "item_feedback") is None


async def test_settings_admin_only_and_public_view(client, db, admin_headers, manager_headers):
    body = {"key": "OPENING_HOURS", "value": "9-22", "is_public": True}
    assert (await client.put("/api/settings", json=body, headers=manager_headers)).status_code == 403
    assert (await client.put("/api/settings", json=body, headers=admin_headers)).status_code == 200

    public = await client.get("/api/settings/public")
    assert [s["key"] for s in public.json()] == ["OPENING_HOURS"]

    template = await client.put(
        "/api/settings/templates/item_feedback",
        json={"subject": "How was {{order_number}}?", "body": "<p>Thanks {{customer_name}}</p>"},
        headers=admin_headers,
    )
    assert template.status_code == 200


# =============================================================================
# LOYALTY
# =============================================================================

def test_points_math():
    config = LoyaltySettings(enabled=True, earnRate=1.5, redeemRate=100, redeemValue=5)
    assert loyalty_service.points_for_total(21.9, config) == 32
    assert loyalty_service.points_value(250, config) == 12.5


async def test_redeeming_points_discounts_order(db, restaurant, tables, customer):
    await settings_service.upsert_setting(db, SettingUpsert(
        key="loyalty", value=json.dumps({"enabled": True, "minRedeemPoints": 100})
    ))
    items = [OrderItemCreate(name="Feast", quantity=1, unit_price=200.0)]
    first = await orders_service.place_dine_in_order(
        db, restaurant.id, DineInOrderCreate(table_number=1, items=items), customer=customer
    )
    assert await loyalty_service.get_balance(db, customer.id) == first.points_earned == 216

    second = await orders_service.place_dine_in_order(
        db, restaurant.id, DineInOrderCreate(table_number=2, items=items, redeem_points=200), customer=customer
    )
    assert second.discount == 10.0
    assert second.points_earned == 0
    assert await loyalty_service.get_balance(db, customer.id) == 16


async def test_redemption_rules(db, restaurant, tables, customer):
    items = [OrderItemCreate(name="Soup", quantity=1, unit_price=5.0)]

    with pytest.raises(BadRequestError, match="disabled"):
        await orders_service.place_dine_in_order(
            db, restaurant.id, DineInOrderCreate(table_number=1, items=items, redeem_points=100), customer=customer
        )

    await settings_service.upsert_setting(db, SettingUpsert(key="loyalty", value=json.dumps({"enabled": True})))
    with pytest.raises(BadRequestError, match="Insufficient"):
        await orders_service.place_dine_in_order(
            db, restaurant.id, DineInOrderCreate(table_number=1, items=items, redeem_points=100), customer=customer
        )
    with pytest.raises(BadRequestError, match="customer account"):
        await orders_service.place_dine_in_order(
            db, restaurant.id, DineInOrderCreate(table_number=1, items=items, redeem_points=100)
        )


async def test_balance_endpoint(client, customer_headers):
    response = await client.get("/api/loyalty/balance", headers=customer_headers)
    assert response.status_code == 200
    assert response.json()["balance"] == 0
    assert response.json()["enabled"] is False
