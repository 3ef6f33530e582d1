"""
Shared fixtures.

Every test gets its own SQLite file database (aiosqlite), so tests never see
each other's rows. Stripe and the delivery service are replaced with
in-memory fakes through FastAPI dependency overrides.
"""
import os
from decimal import Decimal

# Environment must be set before any dreamsaver import reads Settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./dreamsaver-test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_dummy")
os.environ.setdefault("ENVIRONMENT", "testing")

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dreamsaver.api.deps import get_delivery_client, get_payment_gateway
from dreamsaver.core.database import Base, get_async_session
from dreamsaver.core.security import create_access_token
from dreamsaver.main import app
from dreamsaver.models.goal import Goal, GoalStatus
from dreamsaver.models.product import Product
from fakes import OTHER_USER_ID, USER_ID, FakeDeliveryClient, FakeGateway


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def product(db):
    product = Product(name="Noise Cancelling Headphones", price=Decimal("1000.00"), store_id="store-1")
    db.add(product)
    await db.commit()
    return product


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def delivery_client():
    return FakeDeliveryClient()


@pytest.fixture
async def client(session_factory, gateway, delivery_client):
    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_session
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_delivery_client] = lambda: delivery_client

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_access_token(USER_ID)}"}


@pytest.fixture
def other_auth_headers():
    return {"Authorization": f"Bearer {create_access_token(OTHER_USER_ID)}"}


@pytest.fixture
def make_goal(db, product):
    """Insert a goal directly, bypassing the lifecycle manager."""

    async def _make(
        target: str = "1000.00",
        saved: str = "0",
        status: GoalStatus = GoalStatus.ACTIVE,
        user_id: str = USER_ID,
    ) -> Goal:
        goal = Goal(
            user_id=user_id,
            product_id=product.id,
            target_amount=Decimal(target),
            saved=Decimal(saved),
            status=status,
            locked_price=product.price,
        )
        db.add(goal)
        await db.commit()
        return goal

    return _make
