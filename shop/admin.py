"""
Administrative panel operations.

Product, order and user management for admin users, plus the figures shown
on the dashboard overview. Every operation is a thin call through the API
client; failures are published as OperationFailed events and re-raised so the
admin screens can keep their own state consistent.
"""

import logging
from typing import Any, Callable, Optional, TypeVar, Union

from client.api_client import ApiClient
from shop import events
from shop.errors import ApiError
from shop.event_bus import EventBus, get_event_bus
from shop.models import DashboardStats, Order, Product, ProductInput, User

logger = logging.getLogger("admin_service")

T = TypeVar("T")


class AdminService:
    """
    Admin-side operations against the REST API.

    The API client must carry an admin user's token; the backend answers
    401/403 otherwise.
    """

    def __init__(self, api: ApiClient, event_bus: Optional[EventBus] = None):
        self.api = api
        self.event_bus = event_bus or get_event_bus()

    def _call(self, operation: str, failure_message: str, fn: Callable[..., T], *args, **kwargs) -> T:
        try:
            return fn(*args, **kwargs)
        except ApiError as e:
            logger.error(f"Admin operation {operation} failed: {e}")
            message = e.message if e.status_code else failure_message
            self.event_bus.publish(events.operation_failed(
                operation, message, category=e.category, source=events.ADMIN_SOURCE
            ))
            raise

    # =========================================================================
    # Products
    # =========================================================================

    def list_products(self) -> list[Product]:
        return self._call("list_products", "Failed to load products", self.api.list_products)

    def create_product(self, data: Union[ProductInput, dict[str, Any]]) -> Product:
        product_input = ProductInput.model_validate(data)
        product = self._call(
            "create_product", "Failed to save product",
            self.api.create_product, product_input.to_wire(),
        )
        logger.info(f"Created product {product.id} ({product.name})")
        self.event_bus.publish(events.product_saved(product.id, product.name, created=True))
        return product

    def update_product(self, product_id: str, data: Union[ProductInput, dict[str, Any]]) -> Product:
        product_input = ProductInput.model_validate(data)
        product = self._call(
            "update_product", "Failed to save product",
            self.api.update_product, product_id, product_input.to_wire(),
        )
        self.event_bus.publish(events.product_saved(product.id, product.name, created=False))
        return product

    def delete_product(self, product_id: str) -> None:
        self._call("delete_product", "Failed to delete product", self.api.delete_product, product_id)
        self.event_bus.publish(events.product_deleted(product_id))

    # =========================================================================
    # Orders
    # =========================================================================

    def list_orders(self) -> list[Order]:
        return self._call("list_orders", "Failed to load orders", self.api.list_orders)

    def get_order(self, order_id: str) -> Order:
        return self._call("get_order", "Failed to load order details", self.api.get_order, order_id)

    def mark_delivered(self, order_id: str) -> Order:
        order = self._call(
            "deliver_order", "Failed to update order status", self.api.deliver_order, order_id
        )
        self.event_bus.publish(events.order_delivered(order_id))
        return order

    def delete_order(self, order_id: str) -> None:
        self._call("delete_order", "Failed to delete order", self.api.delete_order, order_id)
        self.event_bus.publish(events.order_deleted(order_id))

    # =========================================================================
    # Users
    # =========================================================================

    def list_users(self) -> list[User]:
        return self._call("list_users", "Failed to load users", self.api.list_users)

    def get_user(self, user_id: str) -> User:
        return self._call("get_user", "Failed to load user", self.api.get_user, user_id)

    def update_user(self, user_id: str, **fields: Any) -> User:
        user = self._call("update_user", "Failed to update user", self.api.update_user, user_id, **fields)
        self.event_bus.publish(events.user_updated(user_id))
        return user

    def toggle_admin(self, user: User) -> User:
        return self.update_user(user.id, isAdmin=not user.is_admin)

    def delete_user(self, user_id: str) -> None:
        self._call("delete_user", "Failed to delete user", self.api.delete_user, user_id)
        self.event_bus.publish(events.user_deleted(user_id))

    # =========================================================================
    # Dashboard
    # =========================================================================

    def dashboard_stats(self) -> DashboardStats:
        products = self.list_products()
        orders = self.list_orders()
        users = self.list_users()
        return build_dashboard_stats(products, orders, users)


def build_dashboard_stats(
    products: list[Product],
    orders: list[Order],
    users: list[User],
) -> DashboardStats:
    """Total sales count paid orders only; unpaid orders are pending."""
    return DashboardStats(
        product_count=len(products),
        order_count=len(orders),
        user_count=len(users),
        total_sales=round(sum(o.total_price for o in orders if o.is_paid), 2),
        pending_order_count=sum(1 for o in orders if not o.is_paid),
        undelivered_order_count=sum(1 for o in orders if not o.is_delivered),
    )
