"""
Pure cart reducers.

A cart is a ``dict`` mapping a composite item key (``productId_size``) to a
CartItem. Every function returns a new dict and leaves its input untouched,
so the shop store can swap state atomically and tests need no store at all.
"""

from typing import Mapping, Optional

from shop.models import CartItem

Cart = dict[str, CartItem]


def cart_item_key(product_id: str, size: Optional[str] = None) -> str:
    """Composite key for a product in a given size."""
    if size:
        return f"{product_id}_{size}"
    return product_id


def parse_cart_item_key(key: str) -> tuple[str, Optional[str]]:
    """Split a cart key back into (product_id, size)."""
    product_id, _, size = key.partition("_")
    return product_id, size or None


def add_item(
    cart: Mapping[str, CartItem],
    product_id: str,
    quantity: int = 1,
    size: Optional[str] = None,
) -> Cart:
    """Add ``quantity`` units, merging with an existing line for the same key."""
    if quantity < 1:
        raise ValueError(f"Quantity must be at least 1, got {quantity}")

    key = cart_item_key(product_id, size)
    new_cart = dict(cart)
    existing = new_cart.get(key)
    if existing:
        new_cart[key] = existing.model_copy(
            update={"quantity": existing.quantity + quantity}
        )
    else:
        new_cart[key] = CartItem(product_id=product_id, size=size, quantity=quantity)
    return new_cart


def update_quantity(cart: Mapping[str, CartItem], key: str, quantity: int) -> Cart:
    """
    Set the quantity of an existing line.

    A quantity below 1 removes the line; an unknown key leaves the cart as is.
    """
    if quantity < 1:
        return remove_item(cart, key)

    new_cart = dict(cart)
    existing = new_cart.get(key)
    if existing:
        new_cart[key] = existing.model_copy(update={"quantity": quantity})
    return new_cart


def remove_item(cart: Mapping[str, CartItem], key: str) -> Cart:
    new_cart = dict(cart)
    new_cart.pop(key, None)
    return new_cart


def cart_count(cart: Mapping[str, CartItem]) -> int:
    """Total number of units across all lines."""
    return sum(item.quantity for item in cart.values())
