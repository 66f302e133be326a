"""
FastAPI application serving the boutique REST API.

A reference implementation of the endpoints the storefront client talks to,
backed by the in-memory ``api.backend.Backend``. It is what the demo and the
end-to-end client tests run against.

Run with:
    uvicorn api.main:app --reload --port 5000

Then visit http://localhost:5000/docs for interactive API documentation.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException

from api.backend import Backend, BackendError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger("api")


# Request models
class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class RegisterRequest(BaseModel):
    name: str = ""
    email: str = ""
    password: str = ""


class WishlistRequest(BaseModel):
    productId: Optional[str] = None


# =============================================================================
# Backend state
# =============================================================================

_backend: Optional[Backend] = None


def get_backend() -> Backend:
    """Get the process-wide backend, creating it from the fixtures on first use."""
    global _backend
    if _backend is None:
        _backend = Backend()
    return _backend


def reset_backend(data_dir: Optional[Path] = None) -> Backend:
    """Replace the backend with a freshly seeded one (useful for testing)."""
    global _backend
    _backend = Backend(data_dir=data_dir)
    return _backend


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info("Starting boutique API")
    get_backend()
    yield
    logger.info("Shutting down")


app = FastAPI(
    title="Boutique API",
    description="""
    Reference REST backend for the boutique storefront.

    ## Endpoints

    - `/api/users/*` - Authentication, profile and user administration
    - `/api/products/*` - Catalog and featured reviews
    - `/api/orders/*` - Checkout, payment and delivery
    - `/api/notifications/*` - Per-user server notifications
    - `/api/wishlist/*` - Saved products
    """,
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Error handling
# =============================================================================

@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"message": message})


# =============================================================================
# Authentication
# =============================================================================

def current_user(
    authorization: Optional[str] = Header(default=None),
    backend: Backend = Depends(get_backend),
) -> dict[str, Any]:
    if not authorization or not authorization.startswith("Bearer "):
        raise BackendError(401, "Not authorized, no token")
    user = backend.user_for_token(authorization[len("Bearer "):].strip())
    if user is None:
        raise BackendError(401, "Not authorized, token failed")
    return user


def admin_user(user: dict[str, Any] = Depends(current_user)) -> dict[str, Any]:
    if not user.get("isAdmin"):
        raise BackendError(403, "Not authorized as an admin")
    return user


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "boutique-api"}


# =============================================================================
# Users
# =============================================================================

@app.post("/api/users/login", tags=["Users"])
def login(request: LoginRequest, backend: Backend = Depends(get_backend)):
    return backend.authenticate(request.email, request.password)


@app.post("/api/users", status_code=201, tags=["Users"])
def register(request: RegisterRequest, backend: Backend = Depends(get_backend)):
    return backend.register(request.name, request.email, request.password)


@app.get("/api/users/profile", tags=["Users"])
def get_profile(user: dict = Depends(current_user), backend: Backend = Depends(get_backend)):
    return backend.public_user(user)


@app.put("/api/users/profile", tags=["Users"])
def update_profile(
    fields: dict[str, Any] = Body(...),
    user: dict = Depends(current_user),
    backend: Backend = Depends(get_backend),
):
    return backend.update_profile(user["_id"], fields)


@app.get("/api/users", tags=["Users"])
def list_users(admin: dict = Depends(admin_user), backend: Backend = Depends(get_backend)):
    return backend.list_users()


@app.get("/api/users/{user_id}", tags=["Users"])
def get_user(user_id: str, admin: dict = Depends(admin_user), backend: Backend = Depends(get_backend)):
    return backend.get_user(user_id)


@app.put("/api/users/{user_id}", tags=["Users"])
def update_user(
    user_id: str,
    fields: dict[str, Any] = Body(...),
    admin: dict = Depends(admin_user),
    backend: Backend = Depends(get_backend),
):
    return backend.update_user(user_id, fields)


@app.delete("/api/users/{user_id}", tags=["Users"])
def delete_user(user_id: str, admin: dict = Depends(admin_user), backend: Backend = Depends(get_backend)):
    return backend.delete_user(user_id)


# =============================================================================
# Products
# =============================================================================

@app.get("/api/products", tags=["Products"])
def list_products(
    keyword: Optional[str] = None,
    category: Optional[str] = None,
    backend: Backend = Depends(get_backend),
):
    return backend.list_products(keyword=keyword, category=category)


@app.get("/api/products/reviews/featured", tags=["Products"])
def featured_reviews(backend: Backend = Depends(get_backend)):
    return backend.featured_reviews()


@app.get("/api/products/{product_id}", tags=["Products"])
def get_product(product_id: str, backend: Backend = Depends(get_backend)):
    return backend.get_product(product_id)


@app.post("/api/products", status_code=201, tags=["Products"])
def create_product(
    data: dict[str, Any] = Body(...),
    admin: dict = Depends(admin_user),
    backend: Backend = Depends(get_backend),
):
    return backend.create_product(data)


@app.put("/api/products/{product_id}", tags=["Products"])
def update_product(
    product_id: str,
    data: dict[str, Any] = Body(...),
    admin: dict = Depends(admin_user),
    backend: Backend = Depends(get_backend),
):
    return backend.update_product(product_id, data)


@app.delete("/api/products/{product_id}", tags=["Products"])
def delete_product(product_id: str, admin: dict = Depends(admin_user), backend: Backend = Depends(get_backend)):
    return backend.delete_product(product_id)


# =============================================================================
# Orders
# =============================================================================

@app.post("/api/orders", status_code=201, tags=["Orders"])
def create_order(
    data: dict[str, Any] = Body(...),
    user: dict = Depends(current_user),
    backend: Backend = Depends(get_backend),
):
    return backend.create_order(user["_id"], data)


@app.get("/api/orders", tags=["Orders"])
def list_orders(admin: dict = Depends(admin_user), backend: Backend = Depends(get_backend)):
    return backend.all_orders()


@app.get("/api/orders/myorders", tags=["Orders"])
def my_orders(user: dict = Depends(current_user), backend: Backend = Depends(get_backend)):
    return backend.user_orders(user["_id"])


@app.get("/api/orders/{order_id}", tags=["Orders"])
def get_order(order_id: str, user: dict = Depends(current_user), backend: Backend = Depends(get_backend)):
    return backend.get_order(order_id, user)


@app.put("/api/orders/{order_id}", tags=["Orders"])
def update_order(
    order_id: str,
    fields: dict[str, Any] = Body(...),
    user: dict = Depends(current_user),
    backend: Backend = Depends(get_backend),
):
    return backend.update_order(order_id, user, fields)


@app.delete("/api/orders/{order_id}", tags=["Orders"])
def delete_order(order_id: str, admin: dict = Depends(admin_user), backend: Backend = Depends(get_backend)):
    return backend.delete_order(order_id)


@app.put("/api/orders/{order_id}/pay", tags=["Orders"])
def pay_order(
    order_id: str,
    payment_result: dict[str, Any] = Body(default={}),
    user: dict = Depends(current_user),
    backend: Backend = Depends(get_backend),
):
    backend.get_order(order_id, user)
    return backend.pay_order(order_id, payment_result)


@app.put("/api/orders/{order_id}/deliver", tags=["Orders"])
def deliver_order(order_id: str, admin: dict = Depends(admin_user), backend: Backend = Depends(get_backend)):
    return backend.deliver_order(order_id)


# =============================================================================
# Notifications
# =============================================================================

@app.get("/api/notifications", tags=["Notifications"])
def list_notifications(user: dict = Depends(current_user), backend: Backend = Depends(get_backend)):
    return backend.user_notifications(user["_id"])


@app.patch("/api/notifications/{notification_id}/read", tags=["Notifications"])
def mark_notification_read(
    notification_id: str,
    user: dict = Depends(current_user),
    backend: Backend = Depends(get_backend),
):
    return backend.mark_notification_read(user["_id"], notification_id)


# =============================================================================
# Wishlist
# =============================================================================

@app.get("/api/wishlist", tags=["Wishlist"])
def get_wishlist(user: dict = Depends(current_user), backend: Backend = Depends(get_backend)):
    return backend.wishlist(user["_id"])


@app.post("/api/wishlist", tags=["Wishlist"])
def add_to_wishlist(
    request: WishlistRequest,
    user: dict = Depends(current_user),
    backend: Backend = Depends(get_backend),
):
    return backend.add_to_wishlist(user["_id"], request.productId)


@app.delete("/api/wishlist", tags=["Wishlist"])
def clear_wishlist(user: dict = Depends(current_user), backend: Backend = Depends(get_backend)):
    return backend.clear_wishlist(user["_id"])


@app.delete("/api/wishlist/{product_id}", tags=["Wishlist"])
def remove_from_wishlist(
    product_id: str,
    user: dict = Depends(current_user),
    backend: Backend = Depends(get_backend),
):
    return backend.remove_from_wishlist(user["_id"], product_id)
