"""
Client-side core of the boutique storefront.

This package holds the domain models, the pricing and cart arithmetic, the
persisted client state and the in-process event bus. The stateful pieces
that talk to the REST API live in ``shop.store``, ``shop.notifications`` and
``shop.admin``.
"""

from shop.event_bus import Event, EventBus, get_event_bus, reset_event_bus
from shop.models import (
    CartItem,
    Notification,
    NotificationLevel,
    Order,
    OrderTotals,
    Product,
    ShippingAddress,
    User,
    WishlistItem,
)
from shop.storage import LocalStorage, StorageKeys

__all__ = [
    "CartItem",
    "Event",
    "EventBus",
    "LocalStorage",
    "Notification",
    "NotificationLevel",
    "Order",
    "OrderTotals",
    "Product",
    "ShippingAddress",
    "StorageKeys",
    "User",
    "WishlistItem",
    "get_event_bus",
    "reset_event_bus",
]
