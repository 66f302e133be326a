"""
Tests for the shop store.

Most tests run the store end to end against the in-process reference
backend; the retry tests use a fake API so timeouts can be scripted.
"""

import httpx
import pytest

from client.api_client import ApiClient
from shop.config import Settings
from shop.errors import (
    ApiError,
    AuthenticationRequired,
    CheckoutError,
    ErrorCategory,
    TIMEOUT_MESSAGE,
)
from shop.events import EventTypes
from shop.models import User
from shop.storage import LocalStorage, StorageKeys
from shop.store import ShopStore


def messages(published, event_type):
    return [e.payload["message"] for e in published if e.event_type == event_type]


def unreachable_api() -> ApiClient:
    """An API client whose every request fails to connect."""
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    return ApiClient(http=httpx.Client(transport=httpx.MockTransport(refuse), base_url="http://shop.test"))


class TestCatalog:
    """Tests for loading the product catalog."""

    def test_load_products(self, store: ShopStore):
        assert len(store.products) == 6
        assert store.get_product("p1").image == ["/uploads/linen-dress-front.jpg", "/uploads/linen-dress-back.jpg"]

    def test_failed_refresh_keeps_catalog(self, store: ShopStore, published):
        store.api = unreachable_api()

        products = store.refresh_products()

        assert len(products) == 6
        assert messages(published, EventTypes.OPERATION_FAILED) == ["Failed to refresh product data"]

    def test_failed_initial_load_is_silent(self, store: ShopStore, published):
        store.api = unreachable_api()
        store.load_products()

        assert messages(published, EventTypes.OPERATION_FAILED) == []


class TestCart:
    """Tests for cart operations."""

    def test_sized_product_requires_size(self, store: ShopStore, published):
        assert store.add_to_cart("p1") is False

        assert store.cart == {}
        assert messages(published, EventTypes.VALIDATION_FAILED) == ["Please select a size"]

    def test_unknown_product_rejected(self, store: ShopStore, published):
        assert store.add_to_cart("nope", size="M") is False
        assert messages(published, EventTypes.VALIDATION_FAILED) == ["Product not found"]

    def test_unavailable_size_rejected(self, store: ShopStore):
        assert store.add_to_cart("p1", size="XXL") is False

    def test_product_without_sizes_needs_no_size(self, store: ShopStore):
        assert store.add_to_cart("p5") is True
        assert list(store.cart) == ["p5"]

    def test_add_merges_and_counts(self, store: ShopStore, published):
        store.add_to_cart("p1", quantity=2, size="M")
        store.add_to_cart("p1", size="M")
        store.add_to_cart("p2", size="L")

        assert store.cart["p1_M"].quantity == 3
        assert store.get_cart_count() == 4
        assert store.get_cart_total() == pytest.approx(3 * 49.99 + 39.5)
        assert [e.payload["product_name"] for e in published if e.event_type == EventTypes.CART_ITEM_ADDED] == [
            "Linen Summer Dress", "Linen Summer Dress", "Classic Oxford Shirt",
        ]

    def test_update_quantity_below_one_removes(self, store: ShopStore, published):
        store.add_to_cart("p1", quantity=2, size="M")

        assert store.update_cart_quantity("p1_M", 5) is True
        assert store.cart["p1_M"].quantity == 5

        assert store.update_cart_quantity("p1_M", 0) is True
        assert store.cart == {}
        assert any(e.event_type == EventTypes.CART_ITEM_REMOVED for e in published)

    def test_update_unknown_key(self, store: ShopStore):
        assert store.update_cart_quantity("p9_M", 2) is False

    def test_cart_persists_across_restart(self, store: ShopStore, api_client, storage, event_bus, settings):
        store.add_to_cart("p3", size="S")

        restarted = ShopStore(api=api_client, storage=storage, event_bus=event_bus, settings=settings)

        assert list(restarted.cart) == ["p3_S"]
        assert storage.get_item(StorageKeys.CART) == {"p3_S": {"productId": "p3", "size": "S", "quantity": 1}}

    def test_stored_cart_that_is_not_an_object_starts_empty(self, api_client, storage, event_bus, settings):
        storage.set_item(StorageKeys.CART, ["garbage"])

        restarted = ShopStore(api=api_client, storage=storage, event_bus=event_bus, settings=settings)

        assert restarted.cart == {}
        assert restarted.get_cart_count() == 0

    def test_order_totals(self, store: ShopStore):
        store.add_to_cart("p2", size="M")

        totals = store.get_order_totals()

        assert totals.items_price == 39.5
        assert totals.shipping_price == 10
        assert totals.total_price == pytest.approx(39.5 * 1.05 + 10)

    def test_cart_lines_skip_unknown_products(self, store: ShopStore, storage):
        store.add_to_cart("p5")
        storage.set_item(StorageKeys.CART, {
            **storage.get_item(StorageKeys.CART),
            "gone": {"productId": "gone", "quantity": 1},
        })
        store._cart = store._load_cart()

        assert [line.key for line in store.cart_lines()] == ["p5"]

    def test_clear_cart(self, store: ShopStore, storage):
        store.add_to_cart("p5")
        store.clear_cart()

        assert store.get_cart_count() == 0
        assert StorageKeys.CART not in storage


class TestWishlist:
    """Tests for the server-backed wishlist."""

    def test_requires_login(self, store: ShopStore, published):
        assert store.add_to_wishlist("p3") is False

        required = [e for e in published if e.event_type == EventTypes.LOGIN_REQUIRED]
        assert required[0].payload["redirect"] == "/product/p3"

    def test_add_toggles(self, logged_in_store: ShopStore):
        assert logged_in_store.add_to_wishlist("p3") is True
        assert logged_in_store.is_in_wishlist("p3")
        assert logged_in_store.get_wishlist_count() == 1

        assert logged_in_store.add_to_wishlist("p3") is True
        assert not logged_in_store.is_in_wishlist("p3")

    def test_wishlist_fetched_on_login(self, jane_client: ApiClient, store: ShopStore):
        jane_client.add_to_wishlist("p5")

        store.login("jane@example.com", "password123")

        assert [item.product_id for item in store.wishlist] == ["p5"]

    def test_clear(self, logged_in_store: ShopStore):
        logged_in_store.add_to_wishlist("p1")
        logged_in_store.add_to_wishlist("p2")

        assert logged_in_store.clear_wishlist() is True
        assert logged_in_store.wishlist == []
        assert logged_in_store.api.get_wishlist() == []

    def test_unknown_product_reports_server_message(self, logged_in_store: ShopStore, published):
        assert logged_in_store.add_to_wishlist("nope") is False
        assert messages(published, EventTypes.OPERATION_FAILED) == ["Product not found"]


class TestAuthentication:
    """Tests for login, registration and the session."""

    def test_login(self, store: ShopStore, storage, published):
        user = store.login("jane@example.com", "password123")

        assert user.name == "Jane Doe"
        assert store.is_authenticated()
        assert storage.get_item(StorageKeys.USER)["token"] == user.token
        assert any(e.event_type == EventTypes.USER_LOGGED_IN for e in published)

    def test_wrong_password(self, store: ShopStore, published):
        assert store.login("jane@example.com", "wrong-password") is None
        assert messages(published, EventTypes.OPERATION_FAILED) == ["Invalid email or password"]
        assert not store.is_authenticated()

    @pytest.mark.parametrize("email,password,expected", [
        ("", "password123", "Please fill in all fields"),
        ("jane.example.com", "password123", "Please enter a valid email address"),
        ("jane@example.com", "12345", "Password must be at least 6 characters"),
    ])
    def test_credentials_validated_locally(self, store: ShopStore, published, email, password, expected):
        assert store.login(email, password) is None
        assert messages(published, EventTypes.VALIDATION_FAILED) == [expected]

    def test_network_failure_message(self, store: ShopStore, published):
        store.api = unreachable_api()

        assert store.login("jane@example.com", "password123") is None
        assert messages(published, EventTypes.OPERATION_FAILED) == ["Server error, please try again later"]

    def test_register(self, store: ShopStore):
        user = store.register("Nadia", "nadia@example.com", "secret1", "secret1")

        assert user.email == "nadia@example.com"
        assert store.is_authenticated()

    def test_register_existing_user(self, store: ShopStore, published):
        assert store.register("Jane", "jane@example.com", "password123") is None
        assert messages(published, EventTypes.OPERATION_FAILED) == ["User already exists"]

    def test_register_password_mismatch(self, store: ShopStore, published):
        assert store.register("Nadia", "nadia@example.com", "secret1", "secret2") is None
        assert messages(published, EventTypes.VALIDATION_FAILED) == ["Passwords do not match"]

    def test_logout(self, logged_in_store: ShopStore, storage):
        logged_in_store.add_to_wishlist("p3")
        logged_in_store.logout()

        assert logged_in_store.user is None
        assert logged_in_store.wishlist == []
        assert StorageKeys.USER not in storage
        assert logged_in_store.api.token is None

    def test_session_restored_from_storage(self, logged_in_store: ShopStore, http_client, storage, event_bus, settings):
        restarted = ShopStore(api=ApiClient(http=http_client), storage=storage, event_bus=event_bus, settings=settings)

        assert restarted.is_authenticated()
        assert restarted.get_user_profile().email == "jane@example.com"

    def test_rejected_token_logs_out(self, logged_in_store: ShopStore):
        logged_in_store.api.set_token("expired")

        assert logged_in_store.get_user_profile() is None
        assert logged_in_store.user is None

    def test_update_profile_keeps_token(self, logged_in_store: ShopStore):
        token = logged_in_store.user.token

        updated = logged_in_store.update_profile(name="Jane D.")

        assert updated.name == "Jane D."
        assert updated.token == token
        assert logged_in_store.get_user_profile().name == "Jane D."


class TestOrders:
    """Tests for checkout and payment."""

    def test_requires_login(self, store: ShopStore, shipping_address):
        store.add_to_cart("p5")

        with pytest.raises(AuthenticationRequired):
            store.create_order(shipping_address, "PayPal")

    def test_empty_cart(self, logged_in_store: ShopStore, shipping_address):
        with pytest.raises(CheckoutError):
            logged_in_store.create_order(shipping_address, "PayPal")

    def test_incomplete_address(self, logged_in_store: ShopStore, shipping_address, published):
        logged_in_store.add_to_cart("p5")

        with pytest.raises(CheckoutError):
            logged_in_store.create_order({**shipping_address, "city": ""}, "PayPal")
        assert "Please fill in all required shipping information" in messages(published, EventTypes.VALIDATION_FAILED)

    @pytest.mark.parametrize("payment_method", ["", "Bitcoin"])
    def test_unsupported_payment_method(self, logged_in_store: ShopStore, shipping_address, published, payment_method):
        logged_in_store.add_to_cart("p5")

        with pytest.raises(CheckoutError):
            logged_in_store.create_order(shipping_address, payment_method)
        assert "Please select a payment method" in messages(published, EventTypes.VALIDATION_FAILED)
        assert logged_in_store.get_cart_count() == 1

    def test_create_order(self, logged_in_store: ShopStore, shipping_address, storage, published):
        logged_in_store.add_to_cart("p1", quantity=2, size="M")
        logged_in_store.add_to_cart("p5")

        order = logged_in_store.create_order(shipping_address, "CashOnDelivery")

        assert order.items_price == 184.98
        assert order.tax_price == 9.25
        assert order.shipping_price == 0
        assert order.total_price == 194.23
        assert [(i.product, i.qty, i.size) for i in order.order_items] == [("p1", 2, "M"), ("p5", 1, None)]
        assert logged_in_store.get_cart_count() == 0
        assert storage.get_item(StorageKeys.PENDING_ORDER_ID) == order.id
        assert storage.get_item(StorageKeys.SHIPPING_INFO)["city"] == "Casablanca"
        assert any(e.event_type == EventTypes.ORDER_PLACED for e in published)

    def test_insufficient_stock_keeps_cart(self, logged_in_store: ShopStore, shipping_address, published):
        logged_in_store.add_to_cart("p4", size="6Y")

        with pytest.raises(ApiError) as exc_info:
            logged_in_store.create_order(shipping_address, "PayPal")

        assert exc_info.value.status_code == 400
        assert messages(published, EventTypes.OPERATION_FAILED) == [
            "Insufficient stock for Kids Cotton Hoodie. Available: 0, Requested: 1"
        ]
        assert logged_in_store.get_cart_count() == 1

    def test_pay_order(self, logged_in_store: ShopStore, shipping_address, storage, backend):
        logged_in_store.add_to_cart("p3", size="S")
        order = logged_in_store.create_order(shipping_address, "PayPal")

        paid = logged_in_store.update_order_to_paid(order.id, {"id": "PAY-1", "status": "COMPLETED"})

        assert paid.is_paid is True
        assert paid.paid_at is not None
        assert StorageKeys.PENDING_ORDER_ID not in storage
        assert backend.products["p3"]["countInStock"] == 2

    def test_sizes_of_one_product_share_its_stock(self, logged_in_store: ShopStore, shipping_address):
        logged_in_store.add_to_cart("p3", quantity=2, size="S")
        logged_in_store.add_to_cart("p3", quantity=2, size="M")

        with pytest.raises(ApiError) as exc_info:
            logged_in_store.create_order(shipping_address, "PayPal")

        assert exc_info.value.status_code == 400
        logged_in_store.refresh_products()
        assert "p3" in [p.id for p in logged_in_store.products]
        assert logged_in_store.get_cart_count() == 4

    def test_fetch_orders_and_lookup(self, logged_in_store: ShopStore, shipping_address):
        logged_in_store.add_to_cart("p5")
        order = logged_in_store.create_order(shipping_address, "PayPal")

        assert [o.id for o in logged_in_store.fetch_user_orders()] == [order.id]
        assert logged_in_store.get_order_by_id(order.id).id == order.id

    def test_unknown_order(self, logged_in_store: ShopStore, published):
        with pytest.raises(ApiError) as exc_info:
            logged_in_store.get_order_by_id("missing")

        assert exc_info.value.category == ErrorCategory.NOT_FOUND
        assert messages(published, EventTypes.OPERATION_FAILED) == ["Failed to load order details"]


class FakeOrdersApi:
    """Scripted ``my_orders`` responses for the retry tests."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = 0
        self.token = None

    def set_token(self, token):
        self.token = token

    def my_orders(self):
        self.calls += 1
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class TestProfileStats:
    """Tests for the retrying profile statistics fetch."""

    @pytest.fixture
    def session_storage(self) -> LocalStorage:
        storage = LocalStorage()
        storage.set_item(StorageKeys.USER, User(id="u2", name="Jane", email="jane@example.com", token="t").to_wire())
        return storage

    def make_store(self, api, storage, event_bus, sleeps):
        return ShopStore(
            api=api,
            storage=storage,
            event_bus=event_bus,
            settings=Settings(storage_path=None, retry_backoff=1.0),
            sleep=sleeps.append,
        )

    def timeout(self):
        return ApiError(TIMEOUT_MESSAGE, category=ErrorCategory.TIMEOUT)

    def test_retries_timeouts_with_linear_backoff(self, session_storage, event_bus):
        sleeps = []
        api = FakeOrdersApi([self.timeout(), self.timeout(), []])
        store = self.make_store(api, session_storage, event_bus, sleeps)

        stats = store.get_profile_stats()

        assert stats.order_count == 0
        assert api.calls == 3
        assert sleeps == [1.0, 2.0]

    def test_gives_up_after_three_attempts(self, session_storage, event_bus, published):
        sleeps = []
        api = FakeOrdersApi([self.timeout(), self.timeout(), self.timeout(), []])
        store = self.make_store(api, session_storage, event_bus, sleeps)

        assert store.get_profile_stats() is None
        assert api.calls == 3
        assert messages(published, EventTypes.OPERATION_FAILED) == ["Failed to load profile statistics"]

    def test_other_errors_are_not_retried(self, session_storage, event_bus):
        sleeps = []
        api = FakeOrdersApi([ApiError("Server error", category=ErrorCategory.SERVER, status_code=500), []])
        store = self.make_store(api, session_storage, event_bus, sleeps)

        assert store.get_profile_stats() is None
        assert api.calls == 1
        assert sleeps == []

    def test_stats_from_real_orders(self, logged_in_store: ShopStore, shipping_address):
        logged_in_store.add_to_cart("p5")
        first = logged_in_store.create_order(shipping_address, "PayPal")
        logged_in_store.add_to_cart("p2", size="M")
        logged_in_store.create_order(shipping_address, "PayPal")
        logged_in_store.update_order_to_paid(first.id, {"id": "PAY-1", "status": "COMPLETED"})
        logged_in_store.add_to_wishlist("p3")

        stats = logged_in_store.get_profile_stats()

        assert stats.order_count == 2
        assert stats.total_spent == first.total_price
        assert stats.pending_deliveries == 2
        assert stats.wishlist_count == 1


class TestPreferences:
    """Tests for currency and language preferences."""

    def test_currency_persisted_and_applied(self, store: ShopStore, storage):
        assert store.set_currency("€") == "€"
        assert storage.get_item(StorageKeys.CURRENCY) == "€"
        assert store.convert_price(100) == pytest.approx(93)
        assert store.display_price(100) == "€93.00"

    def test_invalid_currency_falls_back(self, store: ShopStore):
        assert store.set_currency("¥") == "$"

    def test_language(self, store: ShopStore, storage):
        assert store.set_language("fr") == "fr"
        assert store.set_language("de") == "en"
        assert storage.get_item(StorageKeys.LANGUAGE) == "en"

    def test_preferences_restored(self, store: ShopStore, api_client, storage, event_bus, settings):
        store.set_currency("MAD")

        restarted = ShopStore(api=api_client, storage=storage, event_bus=event_bus, settings=settings)

        assert restarted.currency == "MAD"
