"""
User-facing message templates for store events.

Each template pairs a notification level with a message string using
``{variable}`` placeholders filled from the event payload. Events without a
template (currency changes, an emptied cart after checkout) produce no message.
"""

from dataclasses import dataclass
from typing import Any, Optional

from shop.events import EventTypes
from shop.models import NotificationLevel


@dataclass
class MessageTemplate:
    """A message template and the level it is shown at."""
    level: NotificationLevel
    text: str

    def render(self, **context: Any) -> str:
        return self.text.format(**context)


TEMPLATES: dict[str, MessageTemplate] = {
    # Cart / wishlist
    EventTypes.CART_ITEM_ADDED: MessageTemplate(NotificationLevel.SUCCESS, "{product_name} added to cart"),
    EventTypes.CART_ITEM_REMOVED: MessageTemplate(NotificationLevel.INFO, "Item removed from cart"),
    EventTypes.WISHLIST_ITEM_ADDED: MessageTemplate(NotificationLevel.SUCCESS, "Added to wishlist"),
    EventTypes.WISHLIST_ITEM_REMOVED: MessageTemplate(NotificationLevel.INFO, "Removed from wishlist"),
    EventTypes.WISHLIST_CLEARED: MessageTemplate(NotificationLevel.INFO, "Wishlist cleared"),

    # Session
    EventTypes.USER_LOGGED_IN: MessageTemplate(NotificationLevel.SUCCESS, "Welcome back, {name}!"),
    EventTypes.USER_REGISTERED: MessageTemplate(NotificationLevel.SUCCESS, "Welcome, {name}! Your account has been created"),
    EventTypes.USER_LOGGED_OUT: MessageTemplate(NotificationLevel.INFO, "You have been logged out"),
    EventTypes.PROFILE_UPDATED: MessageTemplate(NotificationLevel.SUCCESS, "Profile updated successfully"),
    EventTypes.LOGIN_REQUIRED: MessageTemplate(NotificationLevel.INFO, "{message}"),

    # Orders
    EventTypes.ORDER_PLACED: MessageTemplate(NotificationLevel.SUCCESS, "Order placed successfully!"),
    EventTypes.ORDER_PAID: MessageTemplate(NotificationLevel.SUCCESS, "Payment processed successfully!"),
    EventTypes.ORDER_DELIVERED: MessageTemplate(NotificationLevel.SUCCESS, "Order marked as delivered"),
    EventTypes.ORDER_DELETED: MessageTemplate(NotificationLevel.SUCCESS, "Order deleted"),

    # Admin
    EventTypes.PRODUCT_SAVED: MessageTemplate(NotificationLevel.SUCCESS, "Product saved: {product_name}"),
    EventTypes.PRODUCT_DELETED: MessageTemplate(NotificationLevel.SUCCESS, "Product deleted"),
    EventTypes.USER_UPDATED: MessageTemplate(NotificationLevel.SUCCESS, "User updated"),
    EventTypes.USER_DELETED: MessageTemplate(NotificationLevel.SUCCESS, "User removed successfully"),

    # Failures
    EventTypes.VALIDATION_FAILED: MessageTemplate(NotificationLevel.ERROR, "{message}"),
    EventTypes.OPERATION_FAILED: MessageTemplate(NotificationLevel.ERROR, "{message}"),
}


def get_template(event_type: str) -> Optional[MessageTemplate]:
    return TEMPLATES.get(event_type)


def render_message(event_type: str, **context: Any) -> Optional[tuple[str, NotificationLevel]]:
    """
    Render the message for an event.

    Returns:
        (message, level), or None when the event type has no template
    """
    template = get_template(event_type)
    if template is None:
        return None
    return template.render(**context), NotificationLevel(template.level)
