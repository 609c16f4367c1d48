"""Pytest configuration and fixtures for the store sync test suite.

Provides:
- A fresh SQLite database (aiosqlite) per test with all tables created
- A session factory shared by services under test and the API client
- Disabled rate limiting
- Model factory fixtures for Store, Customer, Product and Order
- Sample Shopify payloads and a fake paginated Shopify client
- Webhook signing helpers
"""

import base64
import hashlib
import hmac
import json
from collections.abc import AsyncGenerator, Callable
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from types import TracebackType
from typing import Any
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.config import settings
from app.core.database import get_async_session
from app.core.deps import get_db
from app.core.encryption import encrypt_token
from app.core.rate_limit import limiter
from app.integrations.shopify.client import ResourcePage
from app.main import app
from app.models.base import Base
from app.models.customer import Customer
from app.models.order import Order
from app.models.product import Product
from app.models.store import Store, SyncStatus
from app.services.scheduler import SyncScheduler
from app.services.sync_runner import StoreSyncRunner

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
TEST_TENANT_ID = "tenant-1"
TEST_SHOP_DOMAIN = "test-shop.myshopify.com"
TEST_ACCESS_TOKEN = "shpat_test_token"
TEST_WEBHOOK_SECRET = "test-webhook-secret"

# ---------------------------------------------------------------------------
# Disable rate limiting globally for tests
# ---------------------------------------------------------------------------
limiter.enabled = False


# ---------------------------------------------------------------------------
# Per-test database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory bound to a throwaway SQLite database file.

    A file (rather than :memory:) lets every session open its own connection,
    the way pooled PostgreSQL connections behave in production.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for test setup and assertions."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Webhook signing
# ---------------------------------------------------------------------------


@pytest.fixture
def webhook_secret(monkeypatch: pytest.MonkeyPatch) -> str:
    """Configure a known webhook secret."""
    monkeypatch.setattr(settings, "shopify_webhook_secret", TEST_WEBHOOK_SECRET)
    return TEST_WEBHOOK_SECRET


def sign(body: bytes, secret: str = TEST_WEBHOOK_SECRET) -> str:
    """Compute the X-Shopify-Hmac-Sha256 header value for a body."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


@pytest.fixture
def webhook_request(webhook_secret: str) -> Callable[..., tuple[bytes, dict[str, str]]]:
    """Build a signed webhook body and headers from a payload."""

    def _build(
        payload: dict[str, Any],
        *,
        shop_domain: str = TEST_SHOP_DOMAIN,
        signature: str | None = None,
    ) -> tuple[bytes, dict[str, str]]:
        body = json.dumps(payload).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Hmac-Sha256": (
                signature if signature is not None else sign(body, webhook_secret)
            ),
            "X-Shopify-Shop-Domain": shop_domain,
        }
        return body, headers

    return _build


# ---------------------------------------------------------------------------
# Fake Shopify client
# ---------------------------------------------------------------------------


class FakeShopifyClient:
    """Serves canned pages per resource, addressed by page_info "1", "2", ...

    Call the instance like the ShopifyClient constructor; it returns itself.
    """

    def __init__(self) -> None:
        self.pages: dict[str, list[list[dict[str, Any]]]] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, str | None]] = []
        self.opened_with: list[tuple[str, str]] = []

    def __call__(self, shop_domain: str, access_token: str) -> "FakeShopifyClient":
        self.opened_with.append((shop_domain, access_token))
        return self

    async def __aenter__(self) -> "FakeShopifyClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        return None

    def set_pages(self, resource: str, *pages: list[dict[str, Any]]) -> None:
        self.pages[resource] = list(pages)

    def fail(self, resource: str, error: Exception) -> None:
        self.errors[resource] = error

    async def get_shop(self) -> dict[str, Any]:
        if "shop" in self.errors:
            raise self.errors["shop"]
        return {"domain": TEST_SHOP_DOMAIN}

    async def fetch_page(self, resource: str, page_info: str | None = None) -> ResourcePage:
        self.calls.append((resource, page_info))
        index = int(page_info) if page_info else 0
        if resource in self.errors and index >= len(self.pages.get(resource, [])):
            raise self.errors[resource]

        pages = self.pages.get(resource) or [[]]
        next_index = index + 1
        # A pending error is served as one more page after the canned ones
        has_next = next_index < len(pages) or resource in self.errors
        return ResourcePage(
            items=pages[index],
            next_page_info=str(next_index) if has_next else None,
        )


@pytest.fixture
def fake_shopify() -> FakeShopifyClient:
    return FakeShopifyClient()


@pytest.fixture
def runner(
    session_factory: async_sessionmaker[AsyncSession],
    fake_shopify: FakeShopifyClient,
) -> StoreSyncRunner:
    """Sync runner wired to the test database and the fake Shopify client."""
    return StoreSyncRunner(session_factory, client_factory=fake_shopify)  # type: ignore[arg-type]


@pytest.fixture
def scheduler(
    session_factory: async_sessionmaker[AsyncSession],
    runner: StoreSyncRunner,
) -> SyncScheduler:
    """A scheduler that has not been started."""
    return SyncScheduler(session_factory, runner=runner, reconcile_interval=300)


# ---------------------------------------------------------------------------
# API client (overrides DB and the scheduler)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    scheduler: SyncScheduler,
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client bound to the test database and scheduler."""

    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_db] = _override_session
    original_scheduler = app.state.scheduler
    app.state.scheduler = scheduler

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.state.scheduler = original_scheduler
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Model Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def store_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Store instances in the test database."""
    counter = {"n": 0}

    async def _create(
        *,
        name: str = "Test Store",
        tenant_id: str = TEST_TENANT_ID,
        shop_domain: str | None = None,
        access_token: str = TEST_ACCESS_TOKEN,
        is_active: bool = True,
        sync_status: SyncStatus = SyncStatus.PENDING,
        settings_data: dict[str, Any] | None = None,
        last_sync_at: datetime | None = None,
    ) -> Store:
        counter["n"] += 1
        store = Store(
            tenant_id=tenant_id,
            name=name,
            shop_domain=shop_domain or f"shop-{counter['n']}.myshopify.com",
            access_token=encrypt_token(access_token),
            is_active=is_active,
            sync_status=sync_status,
            settings=settings_data or {},
            last_sync_at=last_sync_at,
        )
        db_session.add(store)
        await db_session.commit()
        await db_session.refresh(store)
        return store

    return _create


@pytest_asyncio.fixture
async def store(store_factory: Callable[..., Any]) -> Store:
    """Default active store on TEST_SHOP_DOMAIN."""
    result: Store = await store_factory(shop_domain=TEST_SHOP_DOMAIN)
    return result


@pytest.fixture
def customer_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Customer instances."""

    async def _create(
        *,
        store_id: UUID,
        external_id: int,
        email: str | None = "customer@example.com",
        first_name: str | None = "Jane",
    ) -> Customer:
        customer = Customer(
            store_id=store_id,
            external_id=external_id,
            email=email,
            first_name=first_name,
        )
        db_session.add(customer)
        await db_session.commit()
        await db_session.refresh(customer)
        return customer

    return _create


@pytest.fixture
def product_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Product instances."""

    async def _create(
        *,
        store_id: UUID,
        external_id: int,
        title: str = "Test Product",
    ) -> Product:
        product = Product(store_id=store_id, external_id=external_id, title=title)
        db_session.add(product)
        await db_session.commit()
        await db_session.refresh(product)
        return product

    return _create


@pytest.fixture
def order_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Order instances."""

    async def _create(
        *,
        store_id: UUID,
        external_id: int,
        financial_status: str = "pending",
        total_price: Decimal = Decimal("10.00"),
    ) -> Order:
        order = Order(
            store_id=store_id,
            external_id=external_id,
            financial_status=financial_status,
            total_price=total_price,
        )
        db_session.add(order)
        await db_session.commit()
        await db_session.refresh(order)
        return order

    return _create


# ---------------------------------------------------------------------------
# Sample Shopify payloads
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_customer() -> dict[str, Any]:
    """A realistic Shopify customer payload."""
    return {
        "id": 7001,
        "email": "jane@example.com",
        "first_name": "Jane",
        "last_name": "Doe",
        "phone": "+15555550100",
        "state": "enabled",
        "accepts_marketing": True,
        "verified_email": True,
        "tax_exempt": False,
        "total_spent": "199.90",
        "orders_count": 3,
        "tags": "vip, newsletter",
        "default_address": {"city": "Ottawa", "country": "Canada"},
        "created_at": "2024-01-10T09:00:00-05:00",
        "updated_at": "2024-03-01T12:30:00-05:00",
    }


@pytest.fixture
def sample_product() -> dict[str, Any]:
    """A realistic Shopify product payload."""
    return {
        "id": 8001,
        "title": "Cotton T-Shirt",
        "body_html": "<p>Soft cotton tee.</p>",
        "handle": "cotton-t-shirt",
        "vendor": "Acme",
        "product_type": "Apparel",
        "status": "active",
        "published_scope": "web",
        "tags": "cotton,summer",
        "variants": [{"id": 81, "title": "Small", "price": "25.00", "sku": "TS-S"}],
        "options": [{"name": "Size", "values": ["Small"]}],
        "images": [{"id": 91, "src": "https://cdn.shopify.com/tshirt.jpg"}],
        "image": {"id": 91, "src": "https://cdn.shopify.com/tshirt.jpg"},
        "created_at": "2024-01-05T10:00:00Z",
        "updated_at": "2024-02-05T10:00:00Z",
    }


@pytest.fixture
def sample_order() -> dict[str, Any]:
    """A realistic Shopify order payload referencing customer 7001 and product 8001."""
    return {
        "id": 9001,
        "order_number": 1001,
        "name": "#1001",
        "email": "jane@example.com",
        "financial_status": "pending",
        "fulfillment_status": None,
        "currency": "CAD",
        "total_price": "50.00",
        "subtotal_price": "45.00",
        "total_tax": "5.00",
        "total_discounts": "0.00",
        "total_weight": 400,
        "taxes_included": False,
        "confirmed": True,
        "test": False,
        "tags": "",
        "source_name": "web",
        "customer": {"id": 7001, "email": "jane@example.com"},
        "shipping_address": {"city": "Ottawa"},
        "line_items": [
            {
                "id": 9101,
                "product_id": 8001,
                "variant_id": 81,
                "title": "Cotton T-Shirt",
                "variant_title": "Small",
                "sku": "TS-S",
                "quantity": 2,
                "price": "22.50",
                "total_discount": "0.00",
                "grams": 200,
            },
            {
                "id": 9102,
                "product_id": 8999,
                "title": "Gift wrap",
                "quantity": 1,
                "price": "0.00",
            },
        ],
        "processed_at": "2024-03-02T08:00:00Z",
        "created_at": "2024-03-02T08:00:00Z",
        "updated_at": "2024-03-02T08:05:00Z",
    }
