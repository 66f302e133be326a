"""
Price arithmetic for the cart and checkout.

All functions here are pure: they take the cart and the catalog as arguments
and never touch store state. The shop store and the checkout flow share them,
so the totals shown in the cart are the totals submitted with the order.

Business rules:
- Subtotal uses each product's *current* catalog price, not a snapshot
- Tax is a flat 5% of the subtotal
- Shipping is a flat 10 units, waived once the subtotal reaches 100
- Display-currency conversion never feeds back into stored amounts
"""

import logging
import math
from typing import Mapping, Optional

from shop.models import CartItem, OrderTotals, Product

logger = logging.getLogger("pricing")


TAX_RATE = 0.05
SHIPPING_FEE = 10.0
FREE_SHIPPING_THRESHOLD = 100.0

BASE_CURRENCY = "$"
EXCHANGE_RATES: dict[str, float] = {
    "$": 1.0,      # USD (base currency)
    "€": 0.93,     # EUR
    "£": 0.79,     # GBP
    "MAD": 10.1,   # Moroccan Dirham
}

SUPPORTED_LANGUAGES = ("en", "fr")
DEFAULT_LANGUAGE = "en"


def cart_subtotal(
    cart: Mapping[str, CartItem],
    catalog: Mapping[str, Product],
) -> float:
    """
    Sum of unit price × quantity over the cart, in the base currency.

    Items whose product is missing from the catalog contribute nothing.
    """
    total = 0.0
    for item in cart.values():
        product = catalog.get(item.product_id)
        if product is None:
            logger.debug(f"Product {item.product_id} not in catalog, skipped in subtotal")
            continue
        total += product.price * item.quantity
    return total


def tax_price(subtotal: float) -> float:
    return subtotal * TAX_RATE


def shipping_price(subtotal: float) -> float:
    """Flat shipping fee, waived when the subtotal reaches the threshold."""
    if subtotal >= FREE_SHIPPING_THRESHOLD:
        return 0.0
    return SHIPPING_FEE


def calculate_totals(subtotal: float) -> OrderTotals:
    """Full price breakdown for a given subtotal."""
    tax = tax_price(subtotal)
    shipping = shipping_price(subtotal)
    return OrderTotals(
        items_price=subtotal,
        tax_price=tax,
        shipping_price=shipping,
        total_price=subtotal + tax + shipping,
    )


def amount_to_free_shipping(subtotal: float) -> float:
    """How much more has to be spent before shipping becomes free."""
    return max(0.0, FREE_SHIPPING_THRESHOLD - subtotal)


def convert_price(amount, currency: str = BASE_CURRENCY) -> float:
    """
    Convert a base-currency amount into a display currency.

    Missing, zero or non-numeric amounts convert to 0. Unknown currencies
    fall back to a rate of 1.
    """
    if not amount:
        return 0.0
    try:
        price = float(amount)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(price):
        return 0.0
    return price * EXCHANGE_RATES.get(currency, 1.0)


def normalize_currency(currency: Optional[str]) -> str:
    if currency not in EXCHANGE_RATES:
        logger.error(f"Invalid currency: {currency}, defaulting to {BASE_CURRENCY}")
        return BASE_CURRENCY
    return currency


def normalize_language(language: Optional[str]) -> str:
    if language not in SUPPORTED_LANGUAGES:
        logger.error(f"Invalid language: {language}, defaulting to {DEFAULT_LANGUAGE}")
        return DEFAULT_LANGUAGE
    return language


def format_price(amount: float, currency: str = BASE_CURRENCY) -> str:
    """Render an already-converted amount the way the storefront shows it."""
    return f"{currency}{amount:.2f}"
