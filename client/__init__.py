"""
HTTP access to the boutique REST API.
"""

from client.api_client import ApiClient

__all__ = ["ApiClient"]
