"""
Shared pytest fixtures for the storefront tests.

These fixtures provide a freshly seeded reference backend, an API client
talking to it in-process, and store/notification objects wired to throwaway
in-memory storage and event buses.
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from api.backend import Backend
from api.main import app, reset_backend
from client.api_client import ApiClient
from shop.catalog import normalize_products
from shop.config import Settings
from shop.event_bus import Event, EventBus
from shop.models import Product
from shop.storage import LocalStorage
from shop.store import ShopStore


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def data_dir() -> Path:
    """Path to the JSON fixtures directory."""
    return Path(__file__).parent.parent / "data"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage() -> LocalStorage:
    """In-memory storage, nothing touches disk."""
    return LocalStorage()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def published(event_bus: EventBus) -> list[Event]:
    """Every event published on ``event_bus`` during the test."""
    events: list[Event] = []
    event_bus.subscribe_all(events.append)
    return events


@pytest.fixture
def settings() -> Settings:
    """Settings that keep state in memory and never sleep between retries."""
    return Settings(storage_path=None, retry_backoff=0)


# =============================================================================
# Catalog Fixtures
# =============================================================================

@pytest.fixture
def catalog(data_dir: Path) -> list[Product]:
    """The seed products, normalized the way the client sees them."""
    with open(data_dir / "products.json", "r") as f:
        return normalize_products(json.load(f))


@pytest.fixture
def catalog_by_id(catalog: list[Product]) -> dict[str, Product]:
    return {p.id: p for p in catalog}


# =============================================================================
# Backend / API Fixtures
# =============================================================================

@pytest.fixture
def backend(data_dir: Path) -> Backend:
    """A freshly seeded backend installed as the app's backend."""
    return reset_backend(data_dir)


@pytest.fixture
def http_client(backend: Backend) -> TestClient:
    return TestClient(app)


@pytest.fixture
def api_client(http_client: TestClient) -> ApiClient:
    """Anonymous API client talking to the in-process backend."""
    return ApiClient(http=http_client)


@pytest.fixture
def jane_client(http_client: TestClient) -> ApiClient:
    """API client logged in as Jane (regular customer)."""
    api = ApiClient(http=http_client)
    api.set_token(api.login("jane@example.com", "password123").token)
    return api


@pytest.fixture
def admin_client(http_client: TestClient) -> ApiClient:
    """API client logged in as the admin user."""
    api = ApiClient(http=http_client)
    api.set_token(api.login("admin@example.com", "admin123").token)
    return api


# =============================================================================
# Store Fixtures
# =============================================================================

@pytest.fixture
def store(api_client: ApiClient, storage: LocalStorage, event_bus: EventBus, settings: Settings) -> ShopStore:
    """Store with the seed catalog loaded, nobody logged in."""
    shop_store = ShopStore(api=api_client, storage=storage, event_bus=event_bus, settings=settings)
    shop_store.load_products()
    return shop_store


@pytest.fixture
def logged_in_store(store: ShopStore) -> ShopStore:
    """Store with Jane logged in."""
    assert store.login("jane@example.com", "password123") is not None
    return store


@pytest.fixture
def shipping_address() -> dict:
    return {
        "fullName": "Jane Doe",
        "address": "12 Rue des Lilas",
        "city": "Casablanca",
        "postalCode": "20000",
        "country": "Morocco",
    }
