"""
REST client for the boutique API.

Wraps an ``httpx.Client`` and converts responses into domain models. Every
failure surfaces as an ApiError whose category tells the caller whether it
was a transport problem, a timeout, bad input, or an auth failure.

Design decisions:
- The bearer token is held by the client and attached to every request
- An existing ``httpx.Client`` can be injected (FastAPI's TestClient in tests)
- No automatic retries here; the few callers that retry do so explicitly
- Error bodies follow the backend's ``{"message": ...}`` shape, with FastAPI's
  ``{"detail": ...}`` accepted as a fallback
"""

import logging
from typing import Any, Callable, Optional, TypeVar

import httpx
from pydantic import ValidationError

from shop.catalog import normalize_product, normalize_products
from shop.errors import (
    SERVER_ERROR_MESSAGE,
    TIMEOUT_MESSAGE,
    ApiError,
    ErrorCategory,
)
from shop.models import Notification, Order, Product, Review, User, WishlistItem

logger = logging.getLogger("api_client")

T = TypeVar("T")

MALFORMED_RESPONSE_MESSAGE = "Unexpected response from server"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("detail")
        if isinstance(message, str) and message:
            return message
    return response.reason_phrase or f"HTTP {response.status_code}"


def _parse(parse: Callable[[Any], T], data: Any) -> T:
    """Build models from a response body; a body that does not fit is a server error."""
    try:
        return parse(data)
    except (ValidationError, KeyError, TypeError) as e:
        logger.error(f"Malformed response body: {e!r}")
        raise ApiError(MALFORMED_RESPONSE_MESSAGE, category=ErrorCategory.SERVER) from e


def _parse_many(parse: Callable[[Any], T], data: Any) -> list[T]:
    return _parse(lambda items: [parse(item) for item in items], data)


def _wishlist_from_payload(payload: Any) -> list[WishlistItem]:
    """Convert ``{"products": [{"product": {...}, "dateAdded": ...}]}``."""
    if not isinstance(payload, dict):
        return []
    items = []
    for entry in payload.get("products") or []:
        raw_product = entry.get("product") if isinstance(entry, dict) else None
        if not isinstance(raw_product, dict):
            continue
        product = normalize_product(raw_product)
        items.append(WishlistItem(
            product_id=product.id,
            date_added=entry.get("dateAdded"),
            product=product,
        ))
    return items


class ApiClient:
    """
    Typed access to the ``/api`` endpoints.

    Example:
        api = ApiClient("http://localhost:5000")
        user = api.login("jane@example.com", "secret")
        api.set_token(user.token)
        orders = api.my_orders()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = 10.0,
        token: Optional[str] = None,
    ):
        """
        Args:
            base_url: API root, used when no ``http`` client is given
            http: Pre-configured client; takes precedence over ``base_url``
            timeout: Request timeout in seconds for the default client
            token: Bearer token to start with
        """
        if http is None:
            http = httpx.Client(base_url=base_url or "http://localhost:5000", timeout=timeout)
        self.http = http
        self.token = token

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    def close(self) -> None:
        self.http.close()

    # =========================================================================
    # Transport
    # =========================================================================

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Perform a request and return the decoded JSON body (None when empty).

        Raises:
            ApiError: on transport failures and non-2xx responses
        """
        try:
            response = self.http.request(
                method, path, json=json, params=params, headers=self._headers()
            )
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {path} timed out: {e}")
            raise ApiError(TIMEOUT_MESSAGE, category=ErrorCategory.TIMEOUT) from e
        except httpx.TransportError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(SERVER_ERROR_MESSAGE, category=ErrorCategory.NETWORK) from e

        if response.is_error:
            message = _error_message(response)
            logger.info(f"{method} {path} -> {response.status_code}: {message}")
            raise ApiError(
                message,
                category=ApiError.category_for_status(response.status_code),
                status_code=response.status_code,
            )

        if not response.content:
            return None
        return response.json()

    # =========================================================================
    # Users
    # =========================================================================

    def login(self, email: str, password: str) -> User:
        data = self.request("POST", "/api/users/login", json={"email": email, "password": password})
        return _parse(User.model_validate, data)

    def register(self, name: str, email: str, password: str) -> User:
        data = self.request(
            "POST", "/api/users", json={"name": name, "email": email, "password": password}
        )
        return _parse(User.model_validate, data)

    def get_profile(self) -> User:
        return _parse(User.model_validate, self.request("GET", "/api/users/profile"))

    def update_profile(self, **fields: Any) -> User:
        return _parse(User.model_validate, self.request("PUT", "/api/users/profile", json=fields))

    # =========================================================================
    # Products
    # =========================================================================

    def list_products(self, **params: Any) -> list[Product]:
        return normalize_products(self.request("GET", "/api/products", params=params or None))

    def get_product(self, product_id: str) -> Product:
        return _parse(normalize_product, self.request("GET", f"/api/products/{product_id}"))

    def featured_reviews(self) -> list[Review]:
        data = self.request("GET", "/api/products/reviews/featured") or []
        return _parse_many(Review.model_validate, data)

    # =========================================================================
    # Orders
    # =========================================================================

    def create_order(self, order_data: dict[str, Any]) -> Order:
        return _parse(Order.model_validate, self.request("POST", "/api/orders", json=order_data))

    def my_orders(self) -> list[Order]:
        data = self.request("GET", "/api/orders/myorders") or []
        return _parse_many(Order.model_validate, data)

    def get_order(self, order_id: str) -> Order:
        return _parse(Order.model_validate, self.request("GET", f"/api/orders/{order_id}"))

    def update_order(self, order_id: str, **fields: Any) -> Order:
        return _parse(Order.model_validate, self.request("PUT", f"/api/orders/{order_id}", json=fields))

    def delete_order(self, order_id: str) -> None:
        self.request("DELETE", f"/api/orders/{order_id}")

    def pay_order(self, order_id: str, payment_result: dict[str, Any]) -> Order:
        return _parse(
            Order.model_validate,
            self.request("PUT", f"/api/orders/{order_id}/pay", json=payment_result)
        )

    def deliver_order(self, order_id: str) -> Order:
        return _parse(Order.model_validate, self.request("PUT", f"/api/orders/{order_id}/deliver"))

    # =========================================================================
    # Notifications
    # =========================================================================

    def get_notifications(self) -> list[Notification]:
        data = self.request("GET", "/api/notifications") or []
        return _parse_many(Notification.from_server, data)

    def mark_notification_read(self, notification_id: str) -> None:
        self.request("PATCH", f"/api/notifications/{notification_id}/read")

    # =========================================================================
    # Wishlist
    # =========================================================================

    def get_wishlist(self) -> list[WishlistItem]:
        return _parse(_wishlist_from_payload, self.request("GET", "/api/wishlist"))

    def add_to_wishlist(self, product_id: str) -> list[WishlistItem]:
        return _parse(
            _wishlist_from_payload,
            self.request("POST", "/api/wishlist", json={"productId": product_id})
        )

    def remove_from_wishlist(self, product_id: str) -> None:
        self.request("DELETE", f"/api/wishlist/{product_id}")

    def clear_wishlist(self) -> None:
        self.request("DELETE", "/api/wishlist")

    # =========================================================================
    # Admin
    # =========================================================================

    def list_orders(self) -> list[Order]:
        data = self.request("GET", "/api/orders") or []
        return _parse_many(Order.model_validate, data)

    def list_users(self) -> list[User]:
        data = self.request("GET", "/api/users") or []
        return _parse_many(User.model_validate, data)

    def get_user(self, user_id: str) -> User:
        return _parse(User.model_validate, self.request("GET", f"/api/users/{user_id}"))

    def update_user(self, user_id: str, **fields: Any) -> User:
        return _parse(User.model_validate, self.request("PUT", f"/api/users/{user_id}", json=fields))

    def delete_user(self, user_id: str) -> None:
        self.request("DELETE", f"/api/users/{user_id}")

    def create_product(self, product_data: dict[str, Any]) -> Product:
        return _parse(normalize_product, self.request("POST", "/api/products", json=product_data))

    def update_product(self, product_id: str, product_data: dict[str, Any]) -> Product:
        return _parse(
            normalize_product,
            self.request("PUT", f"/api/products/{product_id}", json=product_data)
        )

    def delete_product(self, product_id: str) -> None:
        self.request("DELETE", f"/api/products/{product_id}")
