"""
Event definitions published by the shop store and the admin service.

Events are named in past tense and carry everything a subscriber needs (the
product name for a cart message, the order total for a confirmation), so
subscribers never have to query the store back.
"""

from typing import Optional

from shop.event_bus import Event

STORE_SOURCE = "shop-store"
ADMIN_SOURCE = "admin-service"


class EventTypes:
    """Constants for event type names."""
    # Cart events
    CART_ITEM_ADDED = "CartItemAdded"
    CART_ITEM_REMOVED = "CartItemRemoved"
    CART_CLEARED = "CartCleared"

    # Wishlist events
    WISHLIST_ITEM_ADDED = "WishlistItemAdded"
    WISHLIST_ITEM_REMOVED = "WishlistItemRemoved"
    WISHLIST_CLEARED = "WishlistCleared"

    # Session events
    USER_LOGGED_IN = "UserLoggedIn"
    USER_REGISTERED = "UserRegistered"
    USER_LOGGED_OUT = "UserLoggedOut"
    PROFILE_UPDATED = "ProfileUpdated"
    LOGIN_REQUIRED = "LoginRequired"

    # Order events
    ORDER_PLACED = "OrderPlaced"
    ORDER_PAID = "OrderPaid"
    ORDER_DELIVERED = "OrderDelivered"
    ORDER_DELETED = "OrderDeleted"

    # Admin catalog / user events
    PRODUCT_SAVED = "ProductSaved"
    PRODUCT_DELETED = "ProductDeleted"
    USER_UPDATED = "UserUpdated"
    USER_DELETED = "UserDeleted"

    # Failures
    VALIDATION_FAILED = "ValidationFailed"
    OPERATION_FAILED = "OperationFailed"


# =============================================================================
# Cart / Wishlist Events
# =============================================================================

def cart_item_added(
    product_id: str,
    product_name: str,
    quantity: int,
    size: Optional[str] = None,
    source: str = STORE_SOURCE,
) -> Event:
    return Event(
        event_type=EventTypes.CART_ITEM_ADDED,
        source=source,
        payload={
            "product_id": product_id,
            "product_name": product_name,
            "quantity": quantity,
            "size": size,
        },
    )


def cart_item_removed(key: str, product_id: str, source: str = STORE_SOURCE) -> Event:
    return Event(
        event_type=EventTypes.CART_ITEM_REMOVED,
        source=source,
        payload={"key": key, "product_id": product_id},
    )


def cart_cleared(source: str = STORE_SOURCE) -> Event:
    return Event(event_type=EventTypes.CART_CLEARED, source=source, payload={})


def wishlist_item_added(product_id: str, product_name: str, source: str = STORE_SOURCE) -> Event:
    return Event(
        event_type=EventTypes.WISHLIST_ITEM_ADDED,
        source=source,
        payload={"product_id": product_id, "product_name": product_name},
    )


def wishlist_item_removed(product_id: str, source: str = STORE_SOURCE) -> Event:
    return Event(
        event_type=EventTypes.WISHLIST_ITEM_REMOVED,
        source=source,
        payload={"product_id": product_id},
    )


def wishlist_cleared(source: str = STORE_SOURCE) -> Event:
    return Event(event_type=EventTypes.WISHLIST_CLEARED, source=source, payload={})


# =============================================================================
# Session Events
# =============================================================================

def user_logged_in(user_id: str, name: str, source: str = STORE_SOURCE) -> Event:
    return Event(
        event_type=EventTypes.USER_LOGGED_IN,
        source=source,
        payload={"user_id": user_id, "name": name},
    )


def user_registered(user_id: str, name: str, source: str = STORE_SOURCE) -> Event:
    return Event(
        event_type=EventTypes.USER_REGISTERED,
        source=source,
        payload={"user_id": user_id, "name": name},
    )


def user_logged_out(source: str = STORE_SOURCE) -> Event:
    return Event(event_type=EventTypes.USER_LOGGED_OUT, source=source, payload={})


def profile_updated(user_id: str, source: str = STORE_SOURCE) -> Event:
    return Event(
        event_type=EventTypes.PROFILE_UPDATED,
        source=source,
        payload={"user_id": user_id},
    )


def login_required(message: str, redirect: Optional[str] = None, source: str = STORE_SOURCE) -> Event:
    """
    Published when an action needs an authenticated user.

    ``redirect`` is the path the UI should return to after logging in.
    """
    return Event(
        event_type=EventTypes.LOGIN_REQUIRED,
        source=source,
        payload={"message": message, "redirect": redirect},
    )


# =============================================================================
# Order Events
# =============================================================================

def order_placed(
    order_id: str,
    total_price: float,
    item_count: int,
    source: str = STORE_SOURCE,
) -> Event:
    return Event(
        event_type=EventTypes.ORDER_PLACED,
        source=source,
        payload={
            "order_id": order_id,
            "total_price": total_price,
            "item_count": item_count,
        },
    )


def order_paid(order_id: str, source: str = STORE_SOURCE) -> Event:
    return Event(
        event_type=EventTypes.ORDER_PAID,
        source=source,
        payload={"order_id": order_id},
    )


def order_delivered(order_id: str, source: str = ADMIN_SOURCE) -> Event:
    return Event(
        event_type=EventTypes.ORDER_DELIVERED,
        source=source,
        payload={"order_id": order_id},
    )


def order_deleted(order_id: str, source: str = ADMIN_SOURCE) -> Event:
    return Event(
        event_type=EventTypes.ORDER_DELETED,
        source=source,
        payload={"order_id": order_id},
    )


# =============================================================================
# Admin Events
# =============================================================================

def product_saved(product_id: str, product_name: str, created: bool, source: str = ADMIN_SOURCE) -> Event:
    return Event(
        event_type=EventTypes.PRODUCT_SAVED,
        source=source,
        payload={"product_id": product_id, "product_name": product_name, "created": created},
    )


def product_deleted(product_id: str, source: str = ADMIN_SOURCE) -> Event:
    return Event(
        event_type=EventTypes.PRODUCT_DELETED,
        source=source,
        payload={"product_id": product_id},
    )


def user_updated(user_id: str, source: str = ADMIN_SOURCE) -> Event:
    return Event(
        event_type=EventTypes.USER_UPDATED,
        source=source,
        payload={"user_id": user_id},
    )


def user_deleted(user_id: str, source: str = ADMIN_SOURCE) -> Event:
    return Event(
        event_type=EventTypes.USER_DELETED,
        source=source,
        payload={"user_id": user_id},
    )


# =============================================================================
# Failure Events
# =============================================================================

def validation_failed(message: str, field: Optional[str] = None, source: str = STORE_SOURCE) -> Event:
    return Event(
        event_type=EventTypes.VALIDATION_FAILED,
        source=source,
        payload={"message": message, "field": field},
    )


def operation_failed(
    operation: str,
    message: str,
    category: Optional[str] = None,
    source: str = STORE_SOURCE,
) -> Event:
    """
    Published when an API-backed operation fails.

    ``category`` is the error category of the underlying ApiError (network,
    auth, validation, ...), if there was one.
    """
    return Event(
        event_type=EventTypes.OPERATION_FAILED,
        source=source,
        payload={"operation": operation, "message": message, "category": category},
    )
