"""
JSON-backed key/value storage for client-side persisted state.

This plays the role the browser's ``localStorage`` plays for the storefront:
the cart, the logged-in user, notification history, preferences and a few
checkout breadcrumbs survive a restart of the client.

Design decisions:
- One JSON document per storage file, keys map to JSON-serializable values
- Loaded lazily on first access, written through on every mutation
- ``path=None`` keeps everything in memory (tests, throwaway sessions)
- A corrupt or unreadable file is logged and treated as empty rather than
  crashing the client
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger("storage")


class StorageKeys:
    """
    Keys persisted by the client.

    Using constants prevents typos and makes it easy to see all persisted state.
    """
    USER = "user"
    CART = "cart"
    CURRENCY = "currency"
    LANGUAGE = "language"
    NOTIFICATIONS = "notifications"
    DELETED_NOTIFICATIONS = "deletedNotifications"
    NOTIFICATION_SOUND = "notificationSound"
    RECENT_SEARCHES = "recentSearches"
    SHIPPING_INFO = "shippingInfo"
    PENDING_ORDER_ID = "pendingOrderId"


class LocalStorage:
    """
    Persistent key/value store.

    Example usage:
        storage = LocalStorage(Path("~/.boutique/storage.json").expanduser())
        storage.set_item("currency", "€")
        storage.get_item("currency")  # "€"
    """

    def __init__(self, path: Optional[Path] = None):
        """
        Initialize the storage.

        Args:
            path: JSON file to persist to. ``None`` keeps data in memory only.
        """
        self.path = Path(path) if path is not None else None
        self._data: Optional[dict[str, Any]] = None

    # =========================================================================
    # Loading / saving
    # =========================================================================

    def _ensure_loaded(self) -> dict[str, Any]:
        if self._data is None:
            self._data = self._read()
        return self._data

    def _read(self) -> dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not read storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Storage file {self.path} does not hold an object, ignoring it")
            return {}
        return data

    def _write(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False, indent=2)
        tmp_path.replace(self.path)

    # =========================================================================
    # Public API
    # =========================================================================

    def get_item(self, key: str, default: Any = None) -> Any:
        return self._ensure_loaded().get(key, default)

    def set_item(self, key: str, value: Any) -> None:
        self._ensure_loaded()[key] = value
        self._write()

    def remove_item(self, key: str) -> None:
        data = self._ensure_loaded()
        if key in data:
            del data[key]
            self._write()

    def clear(self) -> None:
        self._data = {}
        self._write()

    def keys(self) -> list[str]:
        return list(self._ensure_loaded().keys())

    def reload(self) -> None:
        """Drop the in-memory copy so the next access re-reads the file."""
        self._data = None

    def __contains__(self, key: str) -> bool:
        return key in self._ensure_loaded()
