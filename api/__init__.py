"""
Reference REST backend for the boutique storefront.

This package provides:
- An in-memory backend seeded from the JSON fixtures in data/
- The FastAPI application exposing it under /api
"""

from api.backend import Backend, BackendError
from api.main import app, get_backend, reset_backend

__all__ = ["app", "Backend", "BackendError", "get_backend", "reset_backend"]
