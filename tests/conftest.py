"""Shared fixtures: in-memory database, HTTP client and catalog factories"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SMTP_HOST"] = ""

from decimal import Decimal
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from storeforge.core.database import get_db
from storeforge.core.security import SecurityUtils
from storeforge.main import app
from storeforge.models import (
    Base,
    Coupon,
    DiscountType,
    Product,
    ProductStatus,
    ProductVariant,
    Store,
    StoreStatus,
    VariantStatus,
)

OWNER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000aa")
CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


class FakeEmailService:
    """Records reminders instead of sending them"""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent = []

    async def send_abandoned_cart_reminder(self, **kwargs) -> bool:
        if self.succeed:
            self.sent.append(kwargs)
        return self.succeed


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def owner_headers():
    token = SecurityUtils.create_access_token({"sub": str(OWNER_ID)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def fake_email():
    return FakeEmailService()


@pytest.fixture
def make_store(db):
    async def _make_store(**overrides) -> Store:
        values = {
            "id": uuid.uuid4(),
            "owner_id": OWNER_ID,
            "name": "Demo Store",
            "slug": f"demo-{uuid.uuid4().hex[:8]}",
            "status": StoreStatus.ACTIVE,
            "settings": {},
            "cart_recovery_settings": None,
        }
        values.update(overrides)
        store = Store(**values)
        db.add(store)
        await db.commit()
        return store

    return _make_store


@pytest_asyncio.fixture
async def store(make_store):
    return await make_store()


@pytest.fixture
def make_product(db):
    async def _make_product(store: Store, **overrides) -> Product:
        values = {
            "id": uuid.uuid4(),
            "store_id": store.id,
            "title": "Cotton T-Shirt",
            "price": Decimal("500"),
            "quantity": 10,
            "track_quantity": True,
            "status": ProductStatus.PUBLISHED,
            "has_variants": False,
        }
        values.update(overrides)
        product = Product(**values)
        db.add(product)
        await db.commit()
        return product

    return _make_product


@pytest.fixture
def make_variant(db):
    async def _make_variant(product: Product, **overrides) -> ProductVariant:
        values = {
            "id": uuid.uuid4(),
            "product_id": product.id,
            "title": "Large",
            "attributes": {"size": "L"},
            "price": None,
            "quantity": 5,
            "track_quantity": True,
            "status": VariantStatus.ACTIVE,
        }
        values.update(overrides)
        variant = ProductVariant(**values)
        db.add(variant)
        await db.commit()
        return variant

    return _make_variant


@pytest.fixture
def make_coupon(db):
    async def _make_coupon(store: Store, **overrides) -> Coupon:
        coupon = build_coupon(store_id=store.id, **overrides)
        db.add(coupon)
        await db.commit()
        return coupon

    return _make_coupon


def build_coupon(**overrides) -> Coupon:
    """Unsaved coupon with every column filled, for pure evaluation"""
    values = {
        "id": uuid.uuid4(),
        "store_id": uuid.uuid4(),
        "code": "SAVE10",
        "discount_type": DiscountType.PERCENTAGE,
        "discount_value": Decimal("10"),
        "min_order_value": Decimal("0"),
        "max_discount_amount": None,
        "usage_limit": None,
        "usage_count": 0,
        "per_customer_limit": None,
        "starts_at": None,
        "expires_at": None,
        "active": True,
    }
    values.update(overrides)
    return Coupon(**values)


@pytest.fixture
def coupon_factory():
    return build_coupon
