"""
Exceptions raised by the storefront client.

Everything derives from ShopError so callers that only care about "the shop
could not do that" can catch one type. ApiError carries the category the UI
uses to pick a message: network failures, validation failures and auth
failures are shown differently.
"""

from enum import Enum
from typing import Optional


SERVER_ERROR_MESSAGE = "Server error, please try again later"
TIMEOUT_MESSAGE = "The server took too long to respond"


class ErrorCategory(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    VALIDATION = "validation"
    AUTH = "auth"
    NOT_FOUND = "not_found"
    SERVER = "server"


class ShopError(Exception):
    """Base class for storefront errors."""


class AuthenticationRequired(ShopError):
    """The operation needs a logged-in user."""


class ApiError(ShopError):
    """
    A failed REST call.

    Attributes:
        message: Server-provided message, or a generic one for transport errors
        category: ErrorCategory used to decide how the failure is surfaced
        status_code: HTTP status, None for transport failures
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.SERVER,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.status_code = status_code

    @property
    def is_timeout(self) -> bool:
        return self.category == ErrorCategory.TIMEOUT

    @classmethod
    def category_for_status(cls, status_code: int) -> ErrorCategory:
        if status_code in (401, 403):
            return ErrorCategory.AUTH
        if status_code == 404:
            return ErrorCategory.NOT_FOUND
        if status_code in (400, 409, 422):
            return ErrorCategory.VALIDATION
        return ErrorCategory.SERVER

    def __str__(self) -> str:
        if self.status_code:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message


class CheckoutError(ShopError):
    """The order cannot be submitted (empty cart, incomplete shipping info)."""
