"""
In-memory reference backend for the boutique REST API.

Holds users, products, orders, wishlists and per-user notifications, seeded
from the JSON fixtures in ``data/``. The FastAPI routes in ``api.main`` are
thin wrappers around this class; everything here speaks the wire format
(camelCase dicts with ``_id`` keys) so responses can be returned as-is.

Design decisions:
- Fixtures are the starting state; writes only touch memory
- Passwords are kept as salted SHA-256 digests, tokens as random hex strings
- Failures raise BackendError carrying the HTTP status and the message the
  client shows to the user
"""

import copy
import hashlib
import json
import logging
import secrets
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional
from uuid import uuid4

from shop.models import utc_now

logger = logging.getLogger("backend")


FEATURED_REVIEW_LIMIT = 6
FEATURED_REVIEW_MIN_RATING = 4
REQUIRED_ADDRESS_FIELDS = ("address", "city", "postalCode", "country")
REQUIRED_PRODUCT_FIELDS = ("name", "price", "image", "category", "description")
EDITABLE_PRODUCT_FIELDS = (
    "name", "price", "image", "category", "subCategory", "sizes", "description",
    "brand", "countInStock", "isNew", "bestseller",
)


class BackendError(Exception):
    """A request the backend refuses, with the HTTP status to answer."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _new_id() -> str:
    return uuid4().hex[:24]


def _hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(8)
    digest = hashlib.sha256(f"{salt}:{password}".encode()).hexdigest()
    return f"{salt}${digest}"


def _check_password(password: str, stored: str) -> bool:
    salt, _, _ = stored.partition("$")
    return secrets.compare_digest(_hash_password(password, salt), stored)


class Backend:
    """
    In-memory store behind the REST API.

    Example:
        backend = Backend()
        user = backend.authenticate("jane@example.com", "password123")
        backend.create_order(user["_id"], {...})
    """

    def __init__(self, data_dir: Optional[Path] = None, clock: Callable[[], datetime] = utc_now):
        """
        Args:
            data_dir: Directory holding products.json and users.json.
                      Defaults to ./data relative to the project root.
            clock: Time source for createdAt/paidAt stamps
        """
        if data_dir is None:
            data_dir = Path(__file__).parent.parent / "data"
        self.data_dir = Path(data_dir)
        self.clock = clock

        self.users: dict[str, dict[str, Any]] = {}
        self.products: dict[str, dict[str, Any]] = {}
        self.orders: dict[str, dict[str, Any]] = {}
        self.wishlists: dict[str, list[dict[str, Any]]] = {}
        self.notifications: dict[str, list[dict[str, Any]]] = {}
        self.tokens: dict[str, str] = {}

        self._load_fixtures()

    # =========================================================================
    # Fixtures
    # =========================================================================

    def _load_json(self, filename: str) -> list[dict]:
        filepath = self.data_dir / filename
        if not filepath.exists():
            logger.warning(f"Fixture {filepath} not found, starting empty")
            return []
        with open(filepath, "r") as f:
            return json.load(f)

    def _load_fixtures(self) -> None:
        for raw in self._load_json("users.json"):
            user = {key: value for key, value in raw.items() if key != "password"}
            user["passwordHash"] = _hash_password(raw["password"])
            user.setdefault("isAdmin", False)
            self.users[user["_id"]] = user
        for raw in self._load_json("products.json"):
            product = dict(raw)
            product.setdefault("reviews", [])
            self.products[product["_id"]] = product
        logger.info(f"Loaded {len(self.users)} users and {len(self.products)} products")

    def _now(self) -> str:
        return self.clock().isoformat()

    # =========================================================================
    # Users and authentication
    # =========================================================================

    @staticmethod
    def public_user(user: dict[str, Any], token: Optional[str] = None) -> dict[str, Any]:
        data = {key: value for key, value in user.items() if key != "passwordHash"}
        if token:
            data["token"] = token
        return data

    def _find_by_email(self, email: str) -> Optional[dict[str, Any]]:
        email = (email or "").strip().lower()
        return next((u for u in self.users.values() if u["email"].lower() == email), None)

    def issue_token(self, user_id: str) -> str:
        token = secrets.token_hex(24)
        self.tokens[token] = user_id
        return token

    def user_for_token(self, token: str) -> Optional[dict[str, Any]]:
        user_id = self.tokens.get(token)
        return self.users.get(user_id) if user_id else None

    def authenticate(self, email: str, password: str) -> dict[str, Any]:
        user = self._find_by_email(email)
        if user is None or not _check_password(password or "", user["passwordHash"]):
            raise BackendError(401, "Invalid email or password")
        return self.public_user(user, self.issue_token(user["_id"]))

    def register(self, name: str, email: str, password: str) -> dict[str, Any]:
        if not name or not email or not password:
            raise BackendError(400, "Please fill in all fields")
        if self._find_by_email(email) is not None:
            raise BackendError(400, "User already exists")
        user = {
            "_id": _new_id(),
            "name": name,
            "email": email.strip().lower(),
            "passwordHash": _hash_password(password),
            "isAdmin": False,
            "createdAt": self._now(),
        }
        self.users[user["_id"]] = user
        logger.info(f"Registered user {user['_id']} ({user['email']})")
        return self.public_user(user, self.issue_token(user["_id"]))

    def get_user(self, user_id: str) -> dict[str, Any]:
        user = self.users.get(user_id)
        if user is None:
            raise BackendError(404, "User not found")
        return self.public_user(user)

    def list_users(self) -> list[dict[str, Any]]:
        return [self.public_user(u) for u in self.users.values()]

    def update_profile(self, user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        user = self.users.get(user_id)
        if user is None:
            raise BackendError(404, "User not found")
        email = fields.get("email")
        if email:
            other = self._find_by_email(email)
            if other is not None and other["_id"] != user_id:
                raise BackendError(400, "Email already in use")
            user["email"] = email.strip().lower()
        if fields.get("name"):
            user["name"] = fields["name"]
        if fields.get("password"):
            user["passwordHash"] = _hash_password(fields["password"])
        return self.public_user(user)

    def update_user(self, user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Admin edit: name, email and the admin flag."""
        user = self.users.get(user_id)
        if user is None:
            raise BackendError(404, "User not found")
        if fields.get("name"):
            user["name"] = fields["name"]
        if fields.get("email"):
            user["email"] = fields["email"].strip().lower()
        if "isAdmin" in fields:
            user["isAdmin"] = bool(fields["isAdmin"])
        return self.public_user(user)

    def delete_user(self, user_id: str) -> dict[str, str]:
        if self.users.pop(user_id, None) is None:
            raise BackendError(404, "User not found")
        self.tokens = {t: uid for t, uid in self.tokens.items() if uid != user_id}
        self.wishlists.pop(user_id, None)
        self.notifications.pop(user_id, None)
        return {"message": "User removed successfully"}

    # =========================================================================
    # Products
    # =========================================================================

    def _product(self, product_id: str) -> dict[str, Any]:
        product = self.products.get(product_id)
        if product is None:
            raise BackendError(404, "Product not found")
        return product

    def list_products(self, keyword: Optional[str] = None, category: Optional[str] = None) -> list[dict[str, Any]]:
        products = list(self.products.values())
        if keyword:
            needle = keyword.lower()
            products = [p for p in products if needle in p.get("name", "").lower()]
        if category:
            products = [p for p in products if p.get("category", "").lower() == category.lower()]
        return copy.deepcopy(products)

    def get_product(self, product_id: str) -> dict[str, Any]:
        return copy.deepcopy(self._product(product_id))

    def create_product(self, data: dict[str, Any]) -> dict[str, Any]:
        if any(data.get(field) in (None, "", []) for field in REQUIRED_PRODUCT_FIELDS):
            raise BackendError(400, "Missing required fields")
        product = {field: data[field] for field in EDITABLE_PRODUCT_FIELDS if field in data}
        product.update({
            "_id": _new_id(),
            "rating": 0,
            "numReviews": 0,
            "reviews": [],
            "createdAt": self._now(),
        })
        product.setdefault("countInStock", 0)
        product.setdefault("sizes", [])
        self.products[product["_id"]] = product
        logger.info(f"Created product {product['_id']} ({product['name']})")
        return copy.deepcopy(product)

    def update_product(self, product_id: str, data: dict[str, Any]) -> dict[str, Any]:
        product = self._product(product_id)
        for field in EDITABLE_PRODUCT_FIELDS:
            if field in data:
                product[field] = data[field]
        return copy.deepcopy(product)

    def delete_product(self, product_id: str) -> dict[str, str]:
        self._product(product_id)
        del self.products[product_id]
        for entries in self.wishlists.values():
            entries[:] = [e for e in entries if e["product"] != product_id]
        return {"message": "Product removed"}

    def featured_reviews(self) -> list[dict[str, Any]]:
        """Best recent reviews across the catalog, with their product attached."""
        reviews = [
            {**review, "productId": product["_id"], "productName": product["name"]}
            for product in self.products.values()
            for review in product.get("reviews", [])
            if review.get("rating", 0) >= FEATURED_REVIEW_MIN_RATING
        ]
        reviews.sort(key=lambda r: (r.get("rating", 0), r.get("createdAt") or ""), reverse=True)
        return reviews[:FEATURED_REVIEW_LIMIT]

    # =========================================================================
    # Orders
    # =========================================================================

    def _order(self, order_id: str) -> dict[str, Any]:
        order = self.orders.get(order_id)
        if order is None:
            raise BackendError(404, "Order not found")
        return order

    def _check_stock(self, items: list[dict[str, Any]]) -> None:
        """Lines for the same product (one per size) draw on a single stock count."""
        requested_by_product: dict[str, int] = defaultdict(int)
        for item in items:
            product_id = item.get("product")
            if product_id not in self.products:
                raise BackendError(400, f"Product not found: {product_id}")
            requested_by_product[product_id] += int(item.get("qty", 0))

        for product_id, requested in requested_by_product.items():
            product = self.products[product_id]
            available = int(product.get("countInStock", 0))
            if requested > available:
                raise BackendError(
                    400,
                    f"Insufficient stock for {product['name']}. "
                    f"Available: {available}, Requested: {requested}",
                )

    def create_order(self, user_id: str, data: dict[str, Any]) -> dict[str, Any]:
        items = data.get("orderItems") or []
        if not items:
            raise BackendError(400, "No order items")
        address = data.get("shippingAddress") or {}
        if not data.get("paymentMethod") or any(not address.get(f) for f in REQUIRED_ADDRESS_FIELDS):
            raise BackendError(400, "Missing required fields")
        self._check_stock(items)

        order = {
            "_id": _new_id(),
            "user": user_id,
            "orderItems": copy.deepcopy(items),
            "shippingAddress": dict(address),
            "paymentMethod": data["paymentMethod"],
            "itemsPrice": data.get("itemsPrice", 0),
            "taxPrice": data.get("taxPrice", 0),
            "shippingPrice": data.get("shippingPrice", 0),
            "totalPrice": data.get("totalPrice", 0),
            "isPaid": False,
            "paidAt": None,
            "isDelivered": False,
            "deliveredAt": None,
            "createdAt": self._now(),
        }
        self.orders[order["_id"]] = order
        logger.info(f"Order {order['_id']} created for user {user_id}: total {order['totalPrice']}")
        self.notify(
            user_id,
            "Order Placed Successfully",
            f"Your order #{order['_id']} has been placed successfully and is being processed.",
            "success",
        )
        return copy.deepcopy(order)

    def _with_user(self, order: dict[str, Any]) -> dict[str, Any]:
        data = copy.deepcopy(order)
        user = self.users.get(order["user"])
        if user is not None:
            data["user"] = {"_id": user["_id"], "name": user["name"], "email": user["email"]}
        return data

    def get_order(self, order_id: str, requester: dict[str, Any]) -> dict[str, Any]:
        order = self._order(order_id)
        if order["user"] != requester["_id"] and not requester.get("isAdmin"):
            raise BackendError(403, "Not authorized to view this order")
        return self._with_user(order)

    def user_orders(self, user_id: str) -> list[dict[str, Any]]:
        orders = [o for o in self.orders.values() if o["user"] == user_id]
        orders.sort(key=lambda o: o["createdAt"], reverse=True)
        return copy.deepcopy(orders)

    def all_orders(self) -> list[dict[str, Any]]:
        orders = sorted(self.orders.values(), key=lambda o: o["createdAt"], reverse=True)
        return [self._with_user(o) for o in orders]

    def update_order(self, order_id: str, requester: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
        """Edit the shipping address or payment method of an unpaid order."""
        order = self._order(order_id)
        if order["user"] != requester["_id"] and not requester.get("isAdmin"):
            raise BackendError(403, "Not authorized to update this order")
        if order["isPaid"]:
            raise BackendError(400, "Order has already been paid")
        if "shippingAddress" in fields:
            address = fields["shippingAddress"] or {}
            if any(not address.get(f) for f in REQUIRED_ADDRESS_FIELDS):
                raise BackendError(400, "Missing required fields")
            order["shippingAddress"] = dict(address)
        if fields.get("paymentMethod"):
            order["paymentMethod"] = fields["paymentMethod"]
        return copy.deepcopy(order)

    def pay_order(self, order_id: str, payment_result: dict[str, Any]) -> dict[str, Any]:
        """Mark an order paid. Stock is checked again and then decremented."""
        order = self._order(order_id)
        if order["isPaid"]:
            raise BackendError(400, "Order has already been paid")
        self._check_stock(order["orderItems"])
        for item in order["orderItems"]:
            product = self.products[item["product"]]
            product["countInStock"] = max(0, int(product.get("countInStock", 0)) - int(item["qty"]))

        order["isPaid"] = True
        order["paidAt"] = self._now()
        order["paymentResult"] = {
            "id": payment_result.get("id"),
            "status": payment_result.get("status"),
            "update_time": payment_result.get("update_time"),
            "email_address": payment_result.get("email_address"),
        }
        self.notify(
            order["user"],
            "Payment Received",
            f"Payment for order #{order_id} has been received. Thank you!",
            "success",
        )
        return copy.deepcopy(order)

    def deliver_order(self, order_id: str) -> dict[str, Any]:
        order = self._order(order_id)
        order["isDelivered"] = True
        order["deliveredAt"] = self._now()
        self.notify(
            order["user"],
            "Order Delivered",
            f"Your order #{order_id} has been delivered. Enjoy your purchase!",
            "success",
        )
        return copy.deepcopy(order)

    def delete_order(self, order_id: str) -> dict[str, str]:
        self._order(order_id)
        del self.orders[order_id]
        return {"message": "Order removed"}

    # =========================================================================
    # Notifications
    # =========================================================================

    def notify(self, user_id: str, title: str, message: str, type_: str = "info") -> dict[str, Any]:
        notification = {
            "_id": _new_id(),
            "user": user_id,
            "title": title,
            "message": message,
            "type": type_,
            "read": False,
            "createdAt": self._now(),
        }
        self.notifications.setdefault(user_id, []).append(notification)
        return notification

    def user_notifications(self, user_id: str) -> list[dict[str, Any]]:
        entries = sorted(
            self.notifications.get(user_id, []), key=lambda n: n["createdAt"], reverse=True
        )
        return copy.deepcopy(entries)

    def mark_notification_read(self, user_id: str, notification_id: str) -> dict[str, Any]:
        for notification in self.notifications.get(user_id, []):
            if notification["_id"] == notification_id:
                notification["read"] = True
                return dict(notification)
        raise BackendError(404, "Notification not found")

    # =========================================================================
    # Wishlist
    # =========================================================================

    def wishlist(self, user_id: str) -> dict[str, Any]:
        entries = []
        for entry in self.wishlists.get(user_id, []):
            product = self.products.get(entry["product"])
            if product is not None:
                entries.append({"product": copy.deepcopy(product), "dateAdded": entry["dateAdded"]})
        return {"user": user_id, "products": entries}

    def add_to_wishlist(self, user_id: str, product_id: Optional[str]) -> dict[str, Any]:
        if not product_id:
            raise BackendError(400, "Product ID is required")
        self._product(product_id)
        entries = self.wishlists.setdefault(user_id, [])
        if all(e["product"] != product_id for e in entries):
            entries.append({"product": product_id, "dateAdded": self._now()})
        return self.wishlist(user_id)

    def remove_from_wishlist(self, user_id: str, product_id: str) -> dict[str, Any]:
        entries = self.wishlists.get(user_id, [])
        entries[:] = [e for e in entries if e["product"] != product_id]
        return self.wishlist(user_id)

    def clear_wishlist(self, user_id: str) -> dict[str, str]:
        self.wishlists[user_id] = []
        return {"message": "Wishlist cleared"}
