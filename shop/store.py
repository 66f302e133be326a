"""
Shop store: the client-side application state.

Holds the product catalog, the cart, the wishlist, the authenticated user and
the display preferences, and exposes the operations the storefront pages call.
It is a plain object with injected dependencies (API client, storage, event
bus), so it can be driven and tested without any UI.

Design decisions:
- Cart mutations go through the pure reducers in ``shop.cart``; totals come
  from ``shop.pricing``
- The store never renders messages itself: it publishes events, and the
  notification center (or anything else subscribed) reacts
- Fire-and-forget UI actions (add to wishlist, log in) report failure through
  an event and a falsy return value; operations whose result the caller needs
  (creating and paying orders) also re-raise
"""

import logging
import time
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError

from client.api_client import ApiClient
from shop import events
from shop.cart import (
    Cart,
    add_item,
    cart_count,
    remove_item,
    update_quantity,
)
from shop.config import Settings, get_settings
from shop.errors import (
    SERVER_ERROR_MESSAGE,
    ApiError,
    AuthenticationRequired,
    CheckoutError,
    ErrorCategory,
)
from shop.event_bus import Event, EventBus, get_event_bus
from shop.models import (
    CartItem,
    CartLine,
    Order,
    OrderItem,
    OrderTotals,
    PaymentMethod,
    PaymentResult,
    Product,
    ProfileStats,
    ShippingAddress,
    User,
    WishlistItem,
)
from shop.pricing import (
    BASE_CURRENCY,
    DEFAULT_LANGUAGE,
    calculate_totals,
    cart_subtotal,
    convert_price,
    format_price,
    normalize_currency,
    normalize_language,
)
from shop.storage import LocalStorage, StorageKeys

logger = logging.getLogger("shop_store")


MIN_PASSWORD_LENGTH = 6


def _network_message(error: ApiError, fallback: str) -> str:
    """Message to show for a failed call: the server's, unless there was none."""
    if error.category in (ErrorCategory.NETWORK, ErrorCategory.TIMEOUT):
        return SERVER_ERROR_MESSAGE
    return error.message or fallback


class ShopStore:
    """
    Client-side shop state.

    Example:
        store = ShopStore(api=ApiClient("http://localhost:5000"))
        store.load_products()
        store.add_to_cart("p1", quantity=2, size="M")
        store.get_order_totals()
    """

    def __init__(
        self,
        api: Optional[ApiClient] = None,
        storage: Optional[LocalStorage] = None,
        event_bus: Optional[EventBus] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            api: REST client (defaults to one built from settings)
            storage: Persisted client state (defaults to the configured file)
            event_bus: Where store events are published (defaults to singleton)
            settings: Runtime configuration (defaults to the environment)
            sleep: Used between retries, injectable for tests
        """
        if settings is None and (api is None or storage is None):
            settings = get_settings()
        self.settings = settings or Settings(storage_path=None)
        self.api = api or ApiClient(self.settings.api_url, timeout=self.settings.http_timeout)
        self.storage = storage or LocalStorage(self.settings.storage_path)
        self.event_bus = event_bus or get_event_bus()
        self._sleep = sleep

        self._products: dict[str, Product] = {}
        self._cart: Cart = self._load_cart()
        self._wishlist: dict[str, WishlistItem] = {}
        self.orders: list[Order] = []

        self.user: Optional[User] = self._load_user()
        if self.user and self.user.token:
            self.api.set_token(self.user.token)

        saved_currency = self.storage.get_item(StorageKeys.CURRENCY)
        self.currency = normalize_currency(saved_currency) if saved_currency else BASE_CURRENCY
        saved_language = self.storage.get_item(StorageKeys.LANGUAGE)
        self.language = normalize_language(saved_language) if saved_language else DEFAULT_LANGUAGE

    # =========================================================================
    # Persistence helpers
    # =========================================================================

    def _load_cart(self) -> Cart:
        cart: Cart = {}
        stored = self.storage.get_item(StorageKeys.CART) or {}
        if not isinstance(stored, dict):
            logger.warning(f"Ignoring stored cart of type {type(stored).__name__}")
            return cart
        for key, raw in stored.items():
            try:
                item = CartItem.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Dropping invalid stored cart item {key}: {e}")
                continue
            cart[item.key] = item
        return cart

    def _load_user(self) -> Optional[User]:
        raw = self.storage.get_item(StorageKeys.USER)
        if not raw:
            return None
        try:
            return User.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Error parsing stored user info: {e}")
            self.storage.remove_item(StorageKeys.USER)
            return None

    def _set_cart(self, cart: Cart) -> None:
        self._cart = cart
        self.storage.set_item(StorageKeys.CART, {key: item.to_wire() for key, item in cart.items()})

    def _set_user(self, user: User) -> None:
        self.user = user
        self.storage.set_item(StorageKeys.USER, user.to_wire())
        self.api.set_token(user.token)

    def _publish(self, event: Event) -> None:
        self.event_bus.publish(event)

    def _fail(self, operation: str, message: str, error: Optional[ApiError] = None) -> None:
        category = error.category if error is not None else None
        self._publish(events.operation_failed(operation, message, category=category))

    # =========================================================================
    # Catalog
    # =========================================================================

    @property
    def products(self) -> list[Product]:
        return list(self._products.values())

    def get_product(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def load_products(self, notify_failure: bool = False) -> list[Product]:
        """Fetch the catalog. The current catalog is kept if the fetch fails."""
        try:
            products = self.api.list_products()
        except ApiError as e:
            logger.error(f"Error fetching products: {e}")
            if notify_failure:
                self._fail("refresh_products", "Failed to refresh product data", e)
            return self.products

        self._products = {p.id: p for p in products}
        logger.info(f"Catalog now has {len(self._products)} products")
        return self.products

    def refresh_products(self) -> list[Product]:
        return self.load_products(notify_failure=True)

    # =========================================================================
    # Cart
    # =========================================================================

    @property
    def cart(self) -> Cart:
        return dict(self._cart)

    def add_to_cart(self, product_id: str, quantity: int = 1, size: Optional[str] = None) -> bool:
        """
        Add units of a product to the cart.

        Products that come in sizes require one of their sizes. Returns False
        (and publishes a ValidationFailed event) when the item is rejected.
        """
        product = self._products.get(product_id)
        if product is None:
            self._publish(events.validation_failed("Product not found"))
            return False
        if quantity < 1:
            self._publish(events.validation_failed("Quantity must be at least 1", field="quantity"))
            return False
        if product.sizes and not size:
            self._publish(events.validation_failed("Please select a size", field="size"))
            return False
        if size and product.sizes and size not in product.sizes:
            self._publish(events.validation_failed(
                f"Size {size} is not available for {product.name}", field="size"
            ))
            return False

        self._set_cart(add_item(self._cart, product_id, quantity, size))
        self._publish(events.cart_item_added(product_id, product.name, quantity, size))
        return True

    def update_cart_quantity(self, key: str, quantity: int) -> bool:
        """Set a line's quantity; anything below 1 removes the line."""
        if key not in self._cart:
            return False
        if quantity < 1:
            return self.remove_from_cart(key)
        self._set_cart(update_quantity(self._cart, key, quantity))
        return True

    def remove_from_cart(self, key: str) -> bool:
        item = self._cart.get(key)
        if item is None:
            return False
        self._set_cart(remove_item(self._cart, key))
        self._publish(events.cart_item_removed(key, item.product_id))
        return True

    def clear_cart(self) -> None:
        self._cart = {}
        self.storage.remove_item(StorageKeys.CART)
        self._publish(events.cart_cleared())

    def get_cart_count(self) -> int:
        return cart_count(self._cart)

    def get_cart_total(self) -> float:
        """Cart subtotal at current catalog prices, in the base currency."""
        return cart_subtotal(self._cart, self._products)

    def get_order_totals(self) -> OrderTotals:
        return calculate_totals(self.get_cart_total())

    def cart_lines(self) -> list[CartLine]:
        """Cart items joined with their products; unknown products are left out."""
        lines = []
        for key, item in self._cart.items():
            product = self._products.get(item.product_id)
            if product is not None:
                lines.append(CartLine(key=key, item=item, product=product))
        return lines

    # =========================================================================
    # Wishlist
    # =========================================================================

    @property
    def wishlist(self) -> list[WishlistItem]:
        return list(self._wishlist.values())

    def is_in_wishlist(self, product_id: str) -> bool:
        return product_id in self._wishlist

    def get_wishlist_count(self) -> int:
        return len(self._wishlist)

    def _set_wishlist(self, items: list[WishlistItem]) -> None:
        self._wishlist = {item.product_id: item for item in items}

    def fetch_wishlist(self) -> list[WishlistItem]:
        if not self.user:
            return []
        try:
            self._set_wishlist(self.api.get_wishlist())
        except ApiError as e:
            logger.error(f"Error fetching wishlist: {e}")
            # An expired token is not worth a message
            if e.status_code != 401:
                self._fail("fetch_wishlist", "Failed to load wishlist", e)
        return self.wishlist

    def add_to_wishlist(self, product_id: str) -> bool:
        """
        Toggle a product in the wishlist.

        Adds it when absent, removes it when already saved. Returns True if
        the server accepted the change.
        """
        if not self.user:
            self._publish(events.login_required(
                "Please log in to add items to your wishlist",
                redirect=f"/product/{product_id}",
            ))
            return False

        if self.is_in_wishlist(product_id):
            return self.remove_from_wishlist(product_id)

        try:
            items = self.api.add_to_wishlist(product_id)
        except ApiError as e:
            logger.error(f"Error adding to wishlist: {e}")
            if e.status_code == 401:
                self._publish(events.login_required(
                    "Please log in to add items to your wishlist",
                    redirect=f"/product/{product_id}",
                ))
            else:
                self._fail("add_to_wishlist", _network_message(e, "Failed to add item to wishlist"), e)
            return False

        self._set_wishlist(items)
        product = self._products.get(product_id)
        saved = self._wishlist.get(product_id)
        name = product.name if product else (saved.product.name if saved and saved.product else product_id)
        self._publish(events.wishlist_item_added(product_id, name))
        return True

    def remove_from_wishlist(self, product_id: str) -> bool:
        if not self.user:
            self._publish(events.login_required("Please log in to manage your wishlist"))
            return False
        try:
            self.api.remove_from_wishlist(product_id)
        except ApiError as e:
            logger.error(f"Error removing from wishlist: {e}")
            self._fail(
                "remove_from_wishlist",
                _network_message(e, "Failed to remove item from wishlist"),
                e,
            )
            return False

        self._wishlist.pop(product_id, None)
        self._publish(events.wishlist_item_removed(product_id))
        return True

    def clear_wishlist(self) -> bool:
        if not self.user:
            self._publish(events.login_required("Please log in to manage your wishlist"))
            return False
        try:
            self.api.clear_wishlist()
        except ApiError as e:
            logger.error(f"Error clearing wishlist: {e}")
            self._fail("clear_wishlist", "Failed to clear wishlist", e)
            return False

        self._wishlist = {}
        self._publish(events.wishlist_cleared())
        return True

    # =========================================================================
    # Authentication
    # =========================================================================

    def is_authenticated(self) -> bool:
        return bool(self.user and self.user.token)

    def _validate_credentials(self, email: str, password: str) -> bool:
        if not email or not password:
            self._publish(events.validation_failed("Please fill in all fields"))
            return False
        if "@" not in email:
            self._publish(events.validation_failed("Please enter a valid email address", field="email"))
            return False
        if len(password) < MIN_PASSWORD_LENGTH:
            self._publish(events.validation_failed(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field="password"
            ))
            return False
        return True

    def _start_session(self, user: User) -> bool:
        if not user.token:
            logger.error(f"Login failed: no token received for {user.email}")
            self._fail("login", "Authentication failed: No token received")
            return False
        self._set_user(user)
        self.fetch_wishlist()
        return True

    def login(self, email: str, password: str) -> Optional[User]:
        if not self._validate_credentials(email, password):
            return None
        try:
            user = self.api.login(email, password)
        except ApiError as e:
            logger.info(f"Login failed for {email}: {e}")
            if e.status_code == 401:
                message = "Invalid email or password"
            else:
                message = _network_message(e, "Login failed")
            self._fail("login", message, e)
            return None

        if not self._start_session(user):
            return None
        logger.info(f"User {user.id} logged in")
        self._publish(events.user_logged_in(user.id, user.name))
        return user

    def register(
        self,
        name: str,
        email: str,
        password: str,
        confirm_password: Optional[str] = None,
    ) -> Optional[User]:
        if not name or not name.strip():
            self._publish(events.validation_failed("Please enter your name", field="name"))
            return None
        if not self._validate_credentials(email, password):
            return None
        if confirm_password is not None and confirm_password != password:
            self._publish(events.validation_failed("Passwords do not match", field="confirmPassword"))
            return None

        try:
            user = self.api.register(name.strip(), email, password)
        except ApiError as e:
            logger.info(f"Registration failed for {email}: {e}")
            if e.status_code == 400:
                message = "User already exists"
            else:
                message = _network_message(e, "Registration failed")
            self._fail("register", message, e)
            return None

        if not self._start_session(user):
            return None
        logger.info(f"User {user.id} registered")
        self._publish(events.user_registered(user.id, user.name))
        return user

    def logout(self) -> None:
        self.user = None
        self.storage.remove_item(StorageKeys.USER)
        self.api.set_token(None)
        self._wishlist = {}
        self.orders = []
        self._publish(events.user_logged_out())

    def get_user_profile(self) -> Optional[User]:
        """Fetch the profile. A rejected token ends the session."""
        if not self.is_authenticated():
            return None
        try:
            return self.api.get_profile()
        except ApiError as e:
            logger.error(f"Error fetching user profile: {e}")
            if e.status_code == 401:
                self.logout()
            return None

    def update_profile(self, **fields: Any) -> Optional[User]:
        if not self.is_authenticated():
            self._publish(events.login_required("Please log in to update your profile"))
            return None
        try:
            updated = self.api.update_profile(**fields)
        except ApiError as e:
            logger.error(f"Error updating profile: {e}")
            self._fail("update_profile", _network_message(e, "Failed to update profile"), e)
            return None

        # The backend only reissues a token when it has to
        if not updated.token:
            updated = updated.model_copy(update={"token": self.user.token})
        self._set_user(updated)
        self._publish(events.profile_updated(updated.id))
        return updated

    def get_profile_stats(self) -> Optional[ProfileStats]:
        """
        Order statistics for the profile page.

        The order fetch is retried on timeout only, with a linear backoff
        (``retry_backoff`` seconds times the attempt number).
        """
        if not self.is_authenticated():
            return None

        attempts = self.settings.profile_stats_attempts
        for attempt in range(1, attempts + 1):
            try:
                orders = self.api.my_orders()
                break
            except ApiError as e:
                if e.is_timeout and attempt < attempts:
                    delay = self.settings.retry_backoff * attempt
                    logger.warning(
                        f"Profile stats fetch timed out (attempt {attempt}/{attempts}), "
                        f"retrying in {delay:.1f}s"
                    )
                    self._sleep(delay)
                    continue
                logger.error(f"Error fetching profile stats: {e}")
                self._fail("profile_stats", "Failed to load profile statistics", e)
                return None

        return ProfileStats(
            order_count=len(orders),
            total_spent=round(sum(o.total_price for o in orders if o.is_paid), 2),
            pending_deliveries=sum(1 for o in orders if not o.is_delivered),
            wishlist_count=self.get_wishlist_count(),
        )

    # =========================================================================
    # Orders
    # =========================================================================

    def create_order(
        self,
        shipping_address: Union[ShippingAddress, dict[str, Any]],
        payment_method: str,
    ) -> Order:
        """
        Submit the cart as an order.

        Totals are computed client-side from current catalog prices and
        rounded to cents; the server has the final word. On success the cart
        is emptied and the new order id is remembered as pending.

        Raises:
            AuthenticationRequired: no logged-in user
            CheckoutError: empty cart, missing payment method or incomplete address
            ApiError: the server rejected the order
        """
        if not self.is_authenticated():
            self._publish(events.login_required(
                "You must be logged in to place an order", redirect="/place-order"
            ))
            raise AuthenticationRequired("Authentication required")

        lines = self.cart_lines()
        if not lines:
            self._publish(events.validation_failed("Your cart is empty"))
            raise CheckoutError("Cart is empty")

        try:
            address = ShippingAddress.model_validate(shipping_address)
        except ValidationError as e:
            self._publish(events.validation_failed("Please fill in all required shipping information"))
            raise CheckoutError("Incomplete shipping address") from e
        if payment_method not in {m.value for m in PaymentMethod}:
            self._publish(events.validation_failed("Please select a payment method", field="paymentMethod"))
            raise CheckoutError(f"Unsupported payment method: {payment_method!r}")

        self.storage.set_item(StorageKeys.SHIPPING_INFO, address.to_wire())

        totals = self.get_order_totals().rounded()
        order_items = [
            OrderItem(
                name=line.product.name,
                qty=line.item.quantity,
                image=line.product.primary_image or "",
                price=line.product.price,
                product=line.product.id,
                size=line.item.size,
            )
            for line in lines
        ]
        order_data = {
            "orderItems": [item.to_wire() for item in order_items],
            "shippingAddress": address.to_wire(),
            "paymentMethod": payment_method,
            **totals.to_wire(),
        }

        logger.info(f"Submitting order: {len(order_items)} items, total {totals.total_price:.2f}")
        try:
            order = self.api.create_order(order_data)
        except ApiError as e:
            logger.error(f"Error creating order: {e}")
            if e.status_code is None:
                message = "Failed to place order. Network error or server is down."
            else:
                message = e.message or "Failed to place order"
            self._fail("create_order", message, e)
            raise

        self.storage.set_item(StorageKeys.PENDING_ORDER_ID, order.id)
        self.clear_cart()
        self.orders.insert(0, order)
        self._publish(events.order_placed(order.id, order.total_price, len(order.order_items)))
        return order

    def fetch_user_orders(self) -> list[Order]:
        if not self.user:
            return []
        try:
            self.orders = self.api.my_orders()
        except ApiError as e:
            logger.error(f"Error fetching orders: {e}")
            self._fail("fetch_orders", "Failed to load orders", e)
            return []
        return list(self.orders)

    def get_order_by_id(self, order_id: str) -> Order:
        try:
            return self.api.get_order(order_id)
        except ApiError as e:
            logger.error(f"Error fetching order {order_id}: {e}")
            self._fail("get_order", "Failed to load order details", e)
            raise

    def update_order_to_paid(
        self,
        order_id: str,
        payment_result: Union[PaymentResult, dict[str, Any]],
    ) -> Order:
        result = PaymentResult.model_validate(payment_result)
        try:
            order = self.api.pay_order(order_id, result.to_wire())
        except ApiError as e:
            logger.error(f"Error updating payment status for {order_id}: {e}")
            self._fail("pay_order", "Failed to process payment", e)
            raise

        if self.storage.get_item(StorageKeys.PENDING_ORDER_ID) == order_id:
            self.storage.remove_item(StorageKeys.PENDING_ORDER_ID)
        self.orders = [order if o.id == order_id else o for o in self.orders]
        self._publish(events.order_paid(order_id))
        return order

    # =========================================================================
    # Preferences
    # =========================================================================

    def set_currency(self, currency: str) -> str:
        self.currency = normalize_currency(currency)
        self.storage.set_item(StorageKeys.CURRENCY, self.currency)
        return self.currency

    def set_language(self, language: str) -> str:
        self.language = normalize_language(language)
        self.storage.set_item(StorageKeys.LANGUAGE, self.language)
        return self.language

    def convert_price(self, amount, currency: Optional[str] = None) -> float:
        return convert_price(amount, currency or self.currency)

    def display_price(self, amount) -> str:
        return format_price(self.convert_price(amount), self.currency)
