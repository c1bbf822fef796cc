"""
Shared fixtures.

The app runs against an in-memory SQLite database (one shared connection)
with mock providers that never fail and never sleep. Celery tasks run
eagerly and write the ledger into a temporary directory.
"""

import os
import tempfile

os.environ["ENV_MODE"] = "development"
os.environ["MOCK_FAILURE_RATE"] = "0"
os.environ["MOCK_LATENCY"] = "false"
os.environ["JWT_SECRET"] = "test-secret-key-with-enough-length-for-hs256"
os.environ.setdefault("DATA_DIRECTORY", tempfile.mkdtemp(prefix="dinehub-test-"))

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dinehub.celery_worker import celery_app
from dinehub.core.config import get_settings
from dinehub.database import Base, get_db
from dinehub.main import app
from dinehub.models import DiningTable, MenuItem, Restaurant, RoleName
from dinehub.realtime import hub
from dinehub.services import auth as auth_service
from dinehub.services.geo import reset_geo_service
from dinehub.services.notifications import reset_notification_service
from dinehub.services.payment import reset_payment_service

celery_app.conf.task_always_eager = True
celery_app.conf.task_eager_propagates = False

PASSWORD = "secret-password"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        await auth_service.ensure_roles(session)
        yield session


@pytest.fixture(autouse=True)
def fresh_services():
    get_settings.cache_clear()
    reset_notification_service()
    reset_payment_service()
    reset_geo_service()
    hub._rooms.clear()
    yield
    hub._rooms.clear()


@pytest.fixture
async def client(session_maker, db):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def restaurant(db):
    restaurant = Restaurant(name="Bella Napoli", slug="bella-napoli")
    db.add(restaurant)
    await db.commit()
    await db.refresh(restaurant)
    return restaurant


@pytest.fixture
async def tables(db, restaurant):
    rows = [DiningTable(restaurant_id=restaurant.id, number=n, capacity=4) for n in (1, 2, 3)]
    db.add_all(rows)
    await db.commit()
    return rows


@pytest.fixture
async def menu_item(db, restaurant):
    item = MenuItem(restaurant_id=restaurant.id, name="Pizza Margherita", price=12.5)
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return item


async def make_user(db, email, role=RoleName.CUSTOMER, restaurant_id=None, phone=None):
    return await auth_service.create_user(
        db, email, PASSWORD, "Test", "User", phone, role, restaurant_id
    )


async def token_for(db, user):
    token, _, _ = await auth_service.login(db, user.email, PASSWORD)
    return token


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def manager(db, restaurant):
    return await make_user(db, "manager@example.com", RoleName.MANAGER, restaurant.id)


@pytest.fixture
async def cook(db, restaurant):
    return await make_user(db, "cook@example.com", RoleName.KITCHEN, restaurant.id)


@pytest.fixture
async def customer(db):
    return await make_user(db, "guest@example.com", phone="+15550001111")


@pytest.fixture
async def admin(db):
    return await make_user(db, "admin@example.com", RoleName.ADMIN)


@pytest.fixture
async def manager_headers(db, manager):
    return bearer(await token_for(db, manager))


@pytest.fixture
async def cook_headers(db, cook):
    return bearer(await token_for(db, cook))


@pytest.fixture
async def customer_headers(db, customer):
    return bearer(await token_for(db, customer))


@pytest.fixture
async def admin_headers(db, admin):
    return bearer(await token_for(db, admin))
