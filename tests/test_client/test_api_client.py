"""
Tests for the REST API client.

Transport and error mapping are tested against httpx's MockTransport; the
endpoint methods are tested end to end against the reference backend.
"""

import httpx
import pytest

from client.api_client import MALFORMED_RESPONSE_MESSAGE, ApiClient
from shop.errors import SERVER_ERROR_MESSAGE, TIMEOUT_MESSAGE, ApiError, ErrorCategory


def mock_client(handler) -> ApiClient:
    return ApiClient(http=httpx.Client(transport=httpx.MockTransport(handler), base_url="http://shop.test"))


class TestTransport:
    """Tests for request handling and error mapping."""

    def test_bearer_token_sent(self):
        seen = {}

        def handler(request):
            seen["authorization"] = request.headers.get("Authorization")
            return httpx.Response(200, json=[])

        api = mock_client(handler)
        api.set_token("abc123")
        api.list_products()

        assert seen["authorization"] == "Bearer abc123"

    def test_no_token_no_header(self):
        seen = {}

        def handler(request):
            seen["has_auth"] = "Authorization" in request.headers
            return httpx.Response(200, json=[])

        mock_client(handler).list_products()

        assert seen["has_auth"] is False

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        with pytest.raises(ApiError) as exc_info:
            mock_client(handler).my_orders()

        assert exc_info.value.is_timeout
        assert exc_info.value.message == TIMEOUT_MESSAGE
        assert exc_info.value.status_code is None

    def test_connection_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ApiError) as exc_info:
            mock_client(handler).list_products()

        assert exc_info.value.category == ErrorCategory.NETWORK
        assert exc_info.value.message == SERVER_ERROR_MESSAGE

    @pytest.mark.parametrize("status,category", [
        (400, ErrorCategory.VALIDATION),
        (401, ErrorCategory.AUTH),
        (403, ErrorCategory.AUTH),
        (404, ErrorCategory.NOT_FOUND),
        (500, ErrorCategory.SERVER),
    ])
    def test_status_categories(self, status, category):
        api = mock_client(lambda request: httpx.Response(status, json={"message": "nope"}))

        with pytest.raises(ApiError) as exc_info:
            api.get_product("p1")

        assert exc_info.value.category == category
        assert exc_info.value.status_code == status
        assert exc_info.value.message == "nope"

    def test_detail_body_and_plain_text_errors(self):
        api = mock_client(lambda request: httpx.Response(422, json={"detail": "bad field"}))
        with pytest.raises(ApiError, match="bad field"):
            api.get_product("p1")

        api = mock_client(lambda request: httpx.Response(502, text="<html>Bad Gateway</html>"))
        with pytest.raises(ApiError) as exc_info:
            api.get_product("p1")
        assert exc_info.value.message == "Bad Gateway"

    def test_empty_body_is_none(self):
        api = mock_client(lambda request: httpx.Response(204))

        assert api.request("DELETE", "/api/wishlist") is None

    def test_malformed_product_is_a_server_error(self):
        doc = {"_id": "p3", "name": "Wool Winter Coat", "price": 120, "countInStock": -1}
        api = mock_client(lambda request: httpx.Response(200, json=doc))

        with pytest.raises(ApiError) as exc_info:
            api.get_product("p3")

        assert exc_info.value.category == ErrorCategory.SERVER
        assert exc_info.value.message == MALFORMED_RESPONSE_MESSAGE

    @pytest.mark.parametrize("call,body", [
        (lambda api: api.my_orders(), [{"paymentMethod": "PayPal"}]),
        (lambda api: api.get_notifications(), [{"message": "no id"}]),
        (lambda api: api.get_order("o1"), None),
        (lambda api: api.get_wishlist(), {"products": [{"product": {"name": "Scarf", "price": -5}}]}),
    ])
    def test_bodies_that_do_not_fit_raise_api_error(self, call, body):
        api = mock_client(lambda request: httpx.Response(200, json=body))

        with pytest.raises(ApiError) as exc_info:
            call(api)

        assert exc_info.value.category == ErrorCategory.SERVER

    def test_wrapped_product_listing(self):
        payload = {"products": [{"id": 1, "name": "Scarf", "price": 5, "image": {"url": "scarf.png"}}]}
        api = mock_client(lambda request: httpx.Response(200, json=payload))

        products = api.list_products()

        assert products[0].id == "1"
        assert products[0].image == ["/scarf.png"]


class TestUserEndpoints:
    """End-to-end tests for authentication endpoints."""

    def test_login(self, api_client: ApiClient):
        user = api_client.login("admin@example.com", "admin123")

        assert user.is_admin is True
        assert user.token

    def test_login_failure(self, api_client: ApiClient):
        with pytest.raises(ApiError) as exc_info:
            api_client.login("jane@example.com", "nope-nope")

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Invalid email or password"

    def test_register_duplicate(self, api_client: ApiClient):
        with pytest.raises(ApiError) as exc_info:
            api_client.register("Jane", "JANE@example.com", "password123")

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "User already exists"

    def test_profile_requires_token(self, api_client: ApiClient):
        with pytest.raises(ApiError) as exc_info:
            api_client.get_profile()

        assert exc_info.value.message == "Not authorized, no token"

    def test_profile(self, jane_client: ApiClient):
        assert jane_client.get_profile().name == "Jane Doe"


class TestCatalogEndpoints:
    """End-to-end tests for product endpoints."""

    def test_list_and_get(self, api_client: ApiClient):
        products = api_client.list_products()

        assert len(products) == 6
        assert api_client.get_product("p2").image == ["/uploads/oxford-shirt.jpg"]

    def test_keyword_filter(self, api_client: ApiClient):
        assert [p.id for p in api_client.list_products(keyword="coat")] == ["p3"]

    def test_featured_reviews(self, api_client: ApiClient):
        reviews = api_client.featured_reviews()

        assert [r.id for r in reviews] == ["r4", "r1", "r2", "r3"]
        assert reviews[0].product_name == "Wool Winter Coat"
        assert all(r.rating >= 4 for r in reviews)


class TestOrderAndNotificationEndpoints:
    """End-to-end tests for orders, notifications and the wishlist."""

    @pytest.fixture
    def order_data(self, shipping_address) -> dict:
        return {
            "orderItems": [{"name": "Leather Tote Bag", "qty": 1, "image": "/uploads/leather-tote.jpg",
                            "price": 85.0, "product": "p5"}],
            "shippingAddress": shipping_address,
            "paymentMethod": "PayPal",
            "itemsPrice": 85.0,
            "taxPrice": 4.25,
            "shippingPrice": 10.0,
            "totalPrice": 99.25,
        }

    def test_order_lifecycle(self, jane_client: ApiClient, admin_client: ApiClient, order_data):
        order = jane_client.create_order(order_data)
        assert order.total_price == 99.25
        assert order.is_paid is False

        paid = jane_client.pay_order(order.id, {"id": "PAY-1", "status": "COMPLETED"})
        assert paid.is_paid is True

        delivered = admin_client.deliver_order(order.id)
        assert delivered.is_delivered is True

        assert [o.id for o in jane_client.my_orders()] == [order.id]

    @pytest.mark.parametrize("change,message", [
        ({"orderItems": []}, "No order items"),
        ({"paymentMethod": ""}, "Missing required fields"),
        ({"orderItems": [{"name": "Ghost", "qty": 1, "price": 1, "product": "p404"}]}, "Product not found: p404"),
    ])
    def test_order_rejected(self, jane_client: ApiClient, order_data, change, message):
        with pytest.raises(ApiError) as exc_info:
            jane_client.create_order({**order_data, **change})

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == message

    def test_customer_cannot_deliver(self, jane_client: ApiClient, order_data):
        order = jane_client.create_order(order_data)

        with pytest.raises(ApiError) as exc_info:
            jane_client.deliver_order(order.id)

        assert exc_info.value.status_code == 403

    def test_notifications(self, jane_client: ApiClient, order_data):
        order = jane_client.create_order(order_data)

        notifications = jane_client.get_notifications()
        assert len(notifications) == 1
        assert notifications[0].title == "Order Placed Successfully"
        assert order.id in notifications[0].message
        assert notifications[0].is_server_notification

        jane_client.mark_notification_read(notifications[0].id)
        assert jane_client.get_notifications()[0].read is True

    def test_mark_unknown_notification(self, jane_client: ApiClient):
        with pytest.raises(ApiError) as exc_info:
            jane_client.mark_notification_read("missing")

        assert exc_info.value.message == "Notification not found"

    def test_wishlist(self, jane_client: ApiClient):
        items = jane_client.add_to_wishlist("p3")
        jane_client.add_to_wishlist("p3")
        items = jane_client.add_to_wishlist("p1")

        assert [i.product_id for i in items] == ["p3", "p1"]
        assert items[0].product.name == "Wool Winter Coat"

        jane_client.remove_from_wishlist("p3")
        assert [i.product_id for i in jane_client.get_wishlist()] == ["p1"]

        jane_client.clear_wishlist()
        assert jane_client.get_wishlist() == []
