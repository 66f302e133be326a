"""
Demonstration scripts for the storefront client.

Each scenario drives the shop store against the reference backend running
in-process (through FastAPI's TestClient), with a NotificationCenter attached
to the event bus so every store action shows up as a notification.
"""

import logging

from fastapi.testclient import TestClient

from api.main import app, reset_backend
from client.api_client import ApiClient
from shop.admin import AdminService
from shop.config import Settings
from shop.event_bus import reset_event_bus
from shop.notifications import NotificationCenter
from shop.storage import LocalStorage
from shop.store import ShopStore

# Configure logging to see what's happening
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)


DEMO_ADDRESS = {
    "fullName": "Jane Doe",
    "address": "12 Rue des Lilas",
    "city": "Casablanca",
    "postalCode": "20000",
    "country": "Morocco",
}


def _setup():
    """Fresh backend, event bus, store and notification center."""
    reset_backend()
    event_bus = reset_event_bus()
    api = ApiClient(http=TestClient(app))
    storage = LocalStorage()
    store = ShopStore(api=api, storage=storage, event_bus=event_bus, settings=Settings(storage_path=None))
    center = NotificationCenter(storage=storage, api=api)
    center.attach(event_bus)
    return store, center


def _print_notifications(center: NotificationCenter) -> None:
    print(f"\nNotifications ({center.unread_count} unread):")
    for n in center.notifications:
        origin = "server" if n.is_server_notification else "local"
        print(f"  [{n.type:<7}] ({origin}) {n.message}")


def run_checkout_demo():
    """
    Browse, fill the cart, check out and pay.

    This shows:
    1. Cart validation (a sized product without a size is rejected)
    2. Totals with tax and the free-shipping threshold
    3. Order creation clearing the cart
    4. Server notifications for the order merged into the local list
    """
    print("\n" + "=" * 70)
    print("DEMO: Checkout")
    print("=" * 70 + "\n")

    store, center = _setup()
    store.load_products()
    print(f"Catalog: {len(store.products)} products")

    store.login("jane@example.com", "password123")

    print("\nACTION: Add the linen dress without choosing a size")
    store.add_to_cart("p1")

    print("ACTION: Add the linen dress (M) twice and the oxford shirt (L)")
    store.add_to_cart("p1", quantity=2, size="M")
    store.add_to_cart("p2", size="L")

    totals = store.get_order_totals()
    print(f"\nCart: {store.get_cart_count()} items")
    print(f"  Subtotal: {store.display_price(totals.items_price)}")
    print(f"  Tax:      {store.display_price(totals.tax_price)}")
    print(f"  Shipping: {store.display_price(totals.shipping_price)}")
    print(f"  Total:    {store.display_price(totals.total_price)}")

    order = store.create_order(DEMO_ADDRESS, "CashOnDelivery")
    print(f"\nOrder {order.id} placed, status {order.status_text}; cart now has {store.get_cart_count()} items")

    paid = store.update_order_to_paid(order.id, {"id": "demo-payment", "status": "COMPLETED"})
    print(f"Order {paid.id} status {paid.status_text}")

    center.fetch_from_server()
    _print_notifications(center)

    print("\nEvents published by the store:")
    for event in store.event_bus.get_event_log():
        print(f"  {event.event_type}")
    return center.notifications


def run_wishlist_demo():
    """Toggle products in the wishlist, before and after logging in."""
    print("\n" + "=" * 70)
    print("DEMO: Wishlist")
    print("=" * 70 + "\n")

    store, center = _setup()
    store.load_products()

    print("ACTION: Save a product while logged out")
    store.add_to_wishlist("p3")

    store.login("jane@example.com", "password123")
    print("ACTION: Save two products, then toggle the first one off")
    store.add_to_wishlist("p3")
    store.add_to_wishlist("p5")
    store.add_to_wishlist("p3")
    print(f"\nWishlist: {[item.product_id for item in store.wishlist]}")

    _print_notifications(center)
    return store.wishlist


def run_admin_demo():
    """Place an order as a customer, then deliver it from the admin side."""
    print("\n" + "=" * 70)
    print("DEMO: Admin dashboard")
    print("=" * 70 + "\n")

    store, center = _setup()
    store.load_products()
    store.login("jane@example.com", "password123")
    store.add_to_cart("p3", size="S")
    order = store.create_order(DEMO_ADDRESS, "PayPal")

    admin_api = ApiClient(http=TestClient(app))
    admin_api.set_token(admin_api.login("admin@example.com", "admin123").token)
    admin = AdminService(admin_api, event_bus=store.event_bus)

    admin.mark_delivered(order.id)
    stats = admin.dashboard_stats()
    print(f"\nProducts: {stats.product_count}  Orders: {stats.order_count}  Users: {stats.user_count}")
    print(f"Total sales: {stats.total_sales:.2f}  Pending: {stats.pending_order_count}")

    center.fetch_from_server()
    _print_notifications(center)
    return stats


if __name__ == "__main__":
    print("\nRunning Storefront Demos")
    print("=" * 70)

    run_checkout_demo()
    print("\n")

    run_wishlist_demo()
    print("\n")

    run_admin_demo()
