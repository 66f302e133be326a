"""
Domain models for the boutique storefront.

These models mirror the documents the REST API exchanges with the client
(products, orders, users, notifications) plus the client-only state held by
the shop store (cart items, wishlist entries).

Design decisions:
- Using Pydantic for validation and serialization
- Python attributes are snake_case; the wire format is the backend's camelCase
  JSON (``subCategory``, ``isPaid``, ``_id``), handled by an alias generator
- ``populate_by_name`` lets tests and internal code build models with
  snake_case keyword arguments
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ShopModel(BaseModel):
    """Base model speaking the backend's camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize for the REST API (aliases, ISO datetimes)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# Enums
# =============================================================================

class NotificationLevel(str, Enum):
    """Severity of a user-facing notification."""
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class PaymentMethod(str, Enum):
    PAYPAL = "PayPal"
    STRIPE = "Stripe"
    CASH_ON_DELIVERY = "CashOnDelivery"


# =============================================================================
# Catalog
# =============================================================================

class Product(ShopModel):
    """
    Canonical catalog product.

    Raw API payloads go through ``shop.catalog.normalize_product`` before they
    become a Product, so ``image`` is always a list of URL strings.
    """
    id: str = Field(..., alias="_id", description="Product identifier")
    name: str = Field(..., description="Display name")
    price: float = Field(..., ge=0, description="Current price in base currency")
    image: list[str] = Field(default_factory=list)
    category: str = Field(default="")
    sub_category: Optional[str] = Field(default=None)
    sizes: list[str] = Field(default_factory=list)
    description: str = Field(default="")
    brand: Optional[str] = Field(default=None)
    rating: float = Field(default=0, ge=0)
    num_reviews: int = Field(default=0, ge=0)
    is_new: bool = Field(default=False)
    bestseller: bool = Field(default=False)
    count_in_stock: int = Field(default=0, ge=0)
    created_at: Optional[datetime] = Field(default=None)

    @property
    def primary_image(self) -> Optional[str]:
        return self.image[0] if self.image else None


class ProductInput(ShopModel):
    """Fields an administrator submits when creating or editing a product."""
    name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    image: list[str] = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    sub_category: Optional[str] = Field(default=None)
    sizes: list[str] = Field(default_factory=list)
    description: str = Field(..., min_length=1)
    brand: Optional[str] = Field(default=None)
    count_in_stock: int = Field(default=0, ge=0)
    is_new: bool = Field(default=False)
    bestseller: bool = Field(default=False)


class Review(ShopModel):
    """A product review as returned by the featured-reviews endpoint."""
    id: Optional[str] = Field(default=None, alias="_id")
    name: str
    rating: float = Field(..., ge=0, le=5)
    comment: str
    product_id: Optional[str] = Field(default=None)
    product_name: Optional[str] = Field(default=None)
    created_at: Optional[datetime] = Field(default=None)


# =============================================================================
# Cart / Wishlist
# =============================================================================

class CartItem(ShopModel):
    """A (product, size, quantity) tuple held client-side pending checkout."""
    product_id: str = Field(..., description="Reference to product")
    size: Optional[str] = Field(default=None)
    quantity: int = Field(..., ge=1, description="Quantity in cart")

    @property
    def key(self) -> str:
        if self.size:
            return f"{self.product_id}_{self.size}"
        return self.product_id


class CartLine(ShopModel):
    """A cart item joined with its current catalog product."""
    key: str
    item: CartItem
    product: Product

    @property
    def line_total(self) -> float:
        return self.product.price * self.item.quantity


class WishlistItem(ShopModel):
    """A saved product. A product appears at most once in a wishlist."""
    product_id: str
    date_added: Optional[datetime] = Field(default=None)
    product: Optional[Product] = Field(default=None)


# =============================================================================
# Users
# =============================================================================

class User(ShopModel):
    """Authenticated user as returned by login/registration."""
    id: str = Field(..., alias="_id")
    name: str
    email: str
    is_admin: bool = Field(default=False)
    token: Optional[str] = Field(default=None)
    created_at: Optional[datetime] = Field(default=None)


class ProfileStats(ShopModel):
    """Summary shown on the profile page."""
    order_count: int = 0
    total_spent: float = 0
    pending_deliveries: int = 0
    wishlist_count: int = 0


# =============================================================================
# Orders
# =============================================================================

class ShippingAddress(ShopModel):
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    full_name: Optional[str] = Field(default=None)
    phone_number: Optional[str] = Field(default=None)


class OrderItem(ShopModel):
    """A single line of a submitted order. Prices are snapshots."""
    name: str
    qty: int = Field(..., ge=1)
    image: str = Field(default="")
    price: float = Field(..., ge=0)
    product: str = Field(..., description="Product id")
    size: Optional[str] = Field(default=None)


class OrderTotals(ShopModel):
    """
    Price breakdown of a cart.

    Invariant: total_price == items_price + tax_price + shipping_price.
    """
    items_price: float = Field(..., ge=0)
    tax_price: float = Field(..., ge=0)
    shipping_price: float = Field(..., ge=0)
    total_price: float = Field(..., ge=0)

    def rounded(self) -> "OrderTotals":
        """Round each component to cents, the way the order is submitted."""
        items = round(self.items_price, 2)
        tax = round(self.tax_price, 2)
        shipping = round(self.shipping_price, 2)
        return OrderTotals(
            items_price=items,
            tax_price=tax,
            shipping_price=shipping,
            total_price=round(items + tax + shipping, 2),
        )


class PaymentResult(ShopModel):
    id: str
    status: str
    update_time: Optional[str] = Field(default=None, alias="update_time")
    email_address: Optional[str] = Field(default=None, alias="email_address")


class Order(ShopModel):
    """
    Order document. The server is authoritative for every field; the client
    only computes the totals before submission.
    """
    id: str = Field(..., alias="_id")
    user: Optional[Any] = Field(default=None, description="User id or populated user")
    order_items: list[OrderItem] = Field(default_factory=list)
    shipping_address: ShippingAddress
    payment_method: str
    items_price: float = Field(default=0, ge=0)
    tax_price: float = Field(default=0, ge=0)
    shipping_price: float = Field(default=0, ge=0)
    total_price: float = Field(default=0, ge=0)
    is_paid: bool = Field(default=False)
    paid_at: Optional[datetime] = Field(default=None)
    is_delivered: bool = Field(default=False)
    delivered_at: Optional[datetime] = Field(default=None)
    created_at: Optional[datetime] = Field(default=None)

    @property
    def status_text(self) -> str:
        if self.is_delivered:
            return "Delivered"
        if self.is_paid:
            return "Paid"
        return "Pending"


class DashboardStats(ShopModel):
    """Figures shown on the admin dashboard overview."""
    product_count: int = 0
    order_count: int = 0
    user_count: int = 0
    total_sales: float = 0
    pending_order_count: int = 0
    undelivered_order_count: int = 0


# =============================================================================
# Notifications
# =============================================================================

class Notification(ShopModel):
    """
    A user-facing notification, either generated locally or fetched from
    the server (``is_server_notification``).
    """
    id: str
    message: str
    title: Optional[str] = Field(default=None)
    type: NotificationLevel = Field(default=NotificationLevel.INFO)
    timestamp: datetime = Field(default_factory=utc_now)
    read: bool = Field(default=False)
    is_server_notification: bool = Field(default=False)

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Timestamps are compared against an aware clock
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_server(cls, doc: dict[str, Any]) -> "Notification":
        """Build a notification from a ``GET /api/notifications`` document."""
        level = doc.get("type")
        if level not in NotificationLevel._value2member_map_:
            level = NotificationLevel.INFO
        return cls(
            id=str(doc["_id"]),
            message=doc.get("message", ""),
            title=doc.get("title"),
            type=level,
            timestamp=doc.get("createdAt") or utc_now(),
            read=bool(doc.get("read", False)),
            is_server_notification=True,
        )
