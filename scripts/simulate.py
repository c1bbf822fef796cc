"""
Chaos Simulation Script

Fires concurrent dine-in orders at a small set of tables and concurrent
kitchen accepts at the same orders, then reports how many won. A healthy
system never books a table twice and never accepts an order twice.

Run from project root (API running, restaurant and tables seeded):
    python scripts/simulate.py --restaurant-id 1 --tables 5 --orders 40 \\
        --email manager@example.com --password secret123
"""

import asyncio
import sys
import os
import random
import time
import argparse
from collections import Counter
from datetime import datetime
from typing import Any, Optional

import httpx
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8000"
TOTAL_ORDERS = 40

FIRST_NAMES = ["John", "Jane", "Mike", "Sarah", "Tom", "Emma", "David", "Lisa", "Chris", "Amy"]
LAST_NAMES = ["Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis", "Wilson", "Taylor"]
MENU_ITEMS = [
    {"name": "Pizza Margherita", "unit_price": 14.99},
    {"name": "Pepperoni Pizza", "unit_price": 16.99},
    {"name": "Caesar Salad", "unit_price": 8.99},
    {"name": "Garlic Bread", "unit_price": 5.99},
    {"name": "Pasta Carbonara", "unit_price": 13.99},
    {"name": "Tiramisu", "unit_price": 7.99},
    {"name": "Sparkling Water", "unit_price": 3.49},
]


def generate_random_items() -> list[dict]:
    """Generate random order items."""
    items = []
    for _ in range(random.randint(1, 4)):
        item = random.choice(MENU_ITEMS).copy()
        item["quantity"] = random.randint(1, 3)
        items.append(item)
    return items


def generate_dine_in_payload(restaurant_id: int, table_number: int) -> dict[str, Any]:
    return {
        "restaurant_id": restaurant_id,
        "table_number": table_number,
        "customer_name": f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}",
        "items": generate_random_items(),
        "notes": random.choice([None, "No onions", "Extra cheese", "Birthday"]),
    }


# =============================================================================
# DINE-IN RACE
# =============================================================================

async def send_dine_in_order(
    client: httpx.AsyncClient,
    order_num: int,
    restaurant_id: int,
    table_number: int,
) -> dict[str, Any]:
    start_time = time.time()
    try:
        response = await client.post(
            f"{API_BASE_URL}/api/orders/dine-in",
            json=generate_dine_in_payload(restaurant_id, table_number),
            timeout=30.0,
        )
        elapsed = round(time.time() - start_time, 3)
        result = {
            "order_num": order_num,
            "table": table_number,
            "status_code": response.status_code,
            "success": response.status_code == 201,
            "time": elapsed,
        }
        if result["success"]:
            data = response.json()
            result.update(order_id=data["id"], total=data["total_amount"])
        else:
            result["error"] = response.text[:100]
        return result
    except httpx.HTTPError as e:
        return {
            "order_num": order_num,
            "table": table_number,
            "status_code": None,
            "success": False,
            "error": str(e)[:100],
            "time": round(time.time() - start_time, 3),
        }


# =============================================================================
# KITCHEN ACCEPT RACE
# =============================================================================

async def login(client: httpx.AsyncClient, email: str, password: str) -> str:
    response = await client.post(f"{API_BASE_URL}/api/auth/login", json={"email": email, "password": password})
    response.raise_for_status()
    return response.json()["access_token"]


async def race_accepts(client: httpx.AsyncClient, token: str, order_ids: list[int]) -> Counter:
    """Send every order to the kitchen, then accept each one twice at once."""
    headers = {"Authorization": f"Bearer {token}"}
    response = await client.post(
        f"{API_BASE_URL}/api/kitchen/orders",
        json={"order_ids": order_ids},
        headers=headers,
    )
    response.raise_for_status()

    tasks = [
        client.post(f"{API_BASE_URL}/api/kitchen/orders/{order_id}/accept", headers=headers)
        for order_id in order_ids
        for _ in range(2)
    ]
    responses = await asyncio.gather(*tasks)
    return Counter(r.status_code for r in responses)


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(
    restaurant_id: int,
    num_tables: int,
    num_orders: int = TOTAL_ORDERS,
    email: Optional[str] = None,
    password: Optional[str] = None,
) -> dict[str, Any]:
    print("=" * 70)
    print("🔥 CHAOS SIMULATION - TABLE & KITCHEN RACES")
    print("=" * 70)
    print(f"📋 Orders: {num_orders} over {num_tables} tables")
    print(f"🎯 Target: {API_BASE_URL} (restaurant {restaurant_id})")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()
    async with httpx.AsyncClient() as client:
        print("\n🚀 Firing dine-in orders...\n")
        tasks = [
            send_dine_in_order(client, i + 1, restaurant_id, random.randint(1, num_tables))
            for i in range(num_orders)
        ]
        results = await asyncio.gather(*tasks)

        successful = [r for r in results if r["success"]]
        conflicts = [r for r in results if r["status_code"] == 409]
        failed = [r for r in results if not r["success"] and r["status_code"] != 409]

        accept_counts: Counter = Counter()
        if email and password and successful:
            print("\n👨‍🍳 Racing kitchen accepts...\n")
            token = await login(client, email, password)
            accept_counts = await race_accepts(client, token, [r["order_id"] for r in successful])

    total_time = round(time.time() - start_time, 2)
    booked = Counter(r["table"] for r in successful)
    double_booked = [table for table, count in booked.items() if count > 1]

    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n✅ Orders placed: {len(successful)}/{num_orders}")
    print(f"🚫 Rejected (table taken): {len(conflicts)}")
    print(f"❌ Other failures: {len(failed)}")
    print(f"⏱️  Total Time: {total_time}s")

    if double_booked:
        print(f"\n❌ DOUBLE-BOOKED TABLES: {double_booked}")
    else:
        print("\n✅ No table was booked twice")

    if accept_counts:
        print(f"\n👨‍🍳 Accepts: {accept_counts.get(200, 0)} won, {accept_counts.get(409, 0)} rejected")
        if accept_counts.get(200, 0) != len(successful):
            print("❌ Expected exactly one winning accept per order")
        else:
            print("✅ Exactly one accept per order")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        total_revenue = sum(r.get("total", 0) for r in successful)
        print("\n📈 Performance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   💰 Total Revenue: ${total_revenue:.2f}")

    if failed:
        print("\n⚠️  Failure Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']} (table {f['table']}): {f.get('error', 'Unknown error')}")

    print("=" * 70)
    return {
        "total": num_orders,
        "successful": len(successful),
        "conflicts": len(conflicts),
        "failed": len(failed),
        "double_booked": double_booked,
        "accepts": dict(accept_counts),
        "total_time": total_time,
    }


async def test_single_flows(restaurant_id: int) -> bool:
    """Check the API is reachable before the simulation."""
    print("\n" + "=" * 70)
    print("🧪 PRE-FLIGHT CHECKS")
    print("=" * 70)

    async with httpx.AsyncClient() as client:
        print("\n1️⃣ Health Check...")
        response = await client.get(f"{API_BASE_URL}/health")
        if response.status_code != 200:
            print(f"   ❌ Failed: {response.text}")
            return False
        data = response.json()
        print(f"   ✅ Status: {data.get('status')}")
        print(f"   Database: {data.get('database')}")
        print(f"   Redis: {data.get('redis')}")

        print("\n2️⃣ Public Menu...")
        response = await client.get(f"{API_BASE_URL}/api/menu/public/{restaurant_id}")
        if response.status_code != 200:
            print(f"   ❌ Failed: {response.text[:100]}")
            return False
        print(f"   ✅ {len(response.json())} menu sections")

        print("\n3️⃣ Table 1 Availability...")
        response = await client.get(f"{API_BASE_URL}/api/tables/availability/{restaurant_id}/1")
        print(f"   {response.json()}")

    print("\n" + "=" * 70)
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Chaos Simulation Script")
    parser.add_argument("--base-url", default=API_BASE_URL, help="API base URL")
    parser.add_argument("--restaurant-id", type=int, required=True, help="Restaurant to order at")
    parser.add_argument("--tables", type=int, default=5, help="Number of tables to contend for")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--email", help="Staff login for the kitchen race")
    parser.add_argument("--password", help="Staff password for the kitchen race")
    parser.add_argument("--skip-tests", action="store_true", help="Skip pre-flight checks")
    args = parser.parse_args()

    API_BASE_URL = args.base_url.rstrip("/")

    if not args.skip_tests:
        if not asyncio.run(test_single_flows(args.restaurant_id)):
            print("\n❌ Pre-flight checks failed. Fix issues before running simulation.")
            sys.exit(1)
        print("\n✅ Pre-flight checks passed!")

    summary = asyncio.run(run_simulation(
        args.restaurant_id, args.tables, args.orders, args.email, args.password
    ))
    sys.exit(1 if summary["double_booked"] else 0)
