"""Root, health check and tenant administration endpoints."""


async def test_root(client):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["documentation"] == "/docs"


async def test_health_reports_components(client):
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["database"] == "healthy"
    assert body["payment_service"] == "healthy"
    assert body["realtime_connections"] == 0
    assert body["status"] in ("operational", "degraded")


async def test_admin_creates_restaurant_and_staff(client, admin_headers, manager_headers):
    created = await client.post(
        "/api/restaurants", json={"name": "Sushi Bar", "slug": "sushi-bar"}, headers=admin_headers
    )
    assert created.status_code == 201
    restaurant_id = created.json()["id"]

    assert (await client.get("/api/restaurants", headers=manager_headers)).status_code == 403

    staff = await client.post("/api/users", json={
        "email": "chef@sushi.example.com",
        "password": "long-enough-pw",
        "first_name": "Kenji",
        "role": "Kitchen_boy",
        "restaurant_id": restaurant_id,
    }, headers=admin_headers)
    assert staff.status_code == 201
    assert staff.json()["restaurant_id"] == restaurant_id


async def test_manager_cannot_grant_admin(client, manager_headers):
    response = await client.post("/api/users", json={
        "email": "boss@example.com",
        "password": "long-enough-pw",
        "first_name": "Boss",
        "role": "Admin",
    }, headers=manager_headers)
    assert response.status_code == 403
