"""
Notification store.

Holds the user-facing notification list shown in the notification center.
Entries come from two sources: messages generated locally (store events,
rendered through ``shop.messages``) and notifications fetched from the server.

Rules:
- The list is newest first and never holds more than 50 entries
- Adding a notification with the same message and type as one created less
  than 2 seconds earlier is a no-op
- On fetch, server notifications replace the previously fetched ones and are
  merged with local-only notifications
- Removing a server notification records its id so a later fetch does not
  bring it back

The list transformations are pure functions; NotificationCenter wires them to
persistence, the API and the event bus.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional, Protocol
from uuid import uuid4

from pydantic import ValidationError

from shop.errors import ApiError
from shop.event_bus import Event, EventBus
from shop.messages import render_message
from shop.models import Notification, NotificationLevel, utc_now
from shop.storage import LocalStorage, StorageKeys

logger = logging.getLogger("notifications")


MAX_NOTIFICATIONS = 50
DUPLICATE_WINDOW = timedelta(milliseconds=2000)


class NotificationSource(Protocol):
    """The part of the API client the notification center needs."""

    def get_notifications(self) -> list[Notification]: ...

    def mark_notification_read(self, notification_id: str) -> None: ...


# =============================================================================
# Pure reducers
# =============================================================================

def coerce_level(level) -> NotificationLevel:
    """Unknown notification types fall back to ``info``."""
    try:
        return NotificationLevel(level)
    except ValueError:
        return NotificationLevel.INFO


def is_duplicate(
    notifications: Iterable[Notification],
    message: str,
    level: NotificationLevel,
    now: datetime,
) -> bool:
    """True if the same (message, type) was added within the duplicate window."""
    return any(
        n.message == message
        and n.type == level
        and now - n.timestamp < DUPLICATE_WINDOW
        for n in notifications
    )


def add_notification(
    notifications: list[Notification],
    message: str,
    level=NotificationLevel.INFO,
    now: Optional[datetime] = None,
    notification_id: Optional[str] = None,
) -> tuple[list[Notification], Optional[Notification]]:
    """
    Prepend a new local notification.

    Returns:
        (new list, the created notification), or (the original list, None)
        when the notification was suppressed as a duplicate
    """
    now = now or utc_now()
    level = coerce_level(level)
    if is_duplicate(notifications, message, level, now):
        return notifications, None

    notification = Notification(
        id=notification_id or str(uuid4()),
        message=message,
        type=level,
        timestamp=now,
    )
    return [notification, *notifications][:MAX_NOTIFICATIONS], notification


def merge_notifications(
    local: Iterable[Notification],
    server: Iterable[Notification],
    deleted_ids: Iterable[str] = (),
) -> list[Notification]:
    """
    Combine local-only notifications with a fresh server fetch.

    Server-origin entries already held locally are replaced by the fetched
    copies; ids the user deleted are dropped. The result is sorted newest
    first and capped.
    """
    deleted = set(deleted_ids)
    merged: dict[str, Notification] = {}
    for n in local:
        if not n.is_server_notification:
            merged[n.id] = n
    for n in server:
        if n.id in deleted:
            continue
        merged[n.id] = n.model_copy(update={"is_server_notification": True})

    ordered = sorted(merged.values(), key=lambda n: n.timestamp, reverse=True)
    return ordered[:MAX_NOTIFICATIONS]


def mark_as_read(notifications: Iterable[Notification], notification_id: str) -> list[Notification]:
    return [
        n.model_copy(update={"read": True}) if n.id == notification_id else n
        for n in notifications
    ]


def mark_all_as_read(notifications: Iterable[Notification]) -> list[Notification]:
    return [n if n.read else n.model_copy(update={"read": True}) for n in notifications]


def remove_notification(notifications: Iterable[Notification], notification_id: str) -> list[Notification]:
    return [n for n in notifications if n.id != notification_id]


# =============================================================================
# Stateful store
# =============================================================================

class NotificationCenter:
    """
    Persistent notification store.

    Example:
        center = NotificationCenter(storage=LocalStorage(), api=api_client)
        center.attach(event_bus)          # store events become notifications
        center.add("Profile saved", "success")
        center.fetch_from_server()        # merge in server notifications
        center.unread_count
    """

    def __init__(
        self,
        storage: Optional[LocalStorage] = None,
        api: Optional[NotificationSource] = None,
        clock: Callable[[], datetime] = utc_now,
        play_sound: Optional[Callable[[Notification], None]] = None,
    ):
        """
        Args:
            storage: Where notifications and preferences persist (in-memory by default)
            api: Source of server notifications; without one, fetching is a no-op
            clock: Time source, injectable for deterministic tests
            play_sound: Called for each accepted notification while sound is enabled
        """
        self.storage = storage or LocalStorage()
        self.api = api
        self.clock = clock
        self.play_sound = play_sound

        self._notifications = self._load_notifications()
        self._deleted_ids: set[str] = set(self.storage.get_item(StorageKeys.DELETED_NOTIFICATIONS) or [])
        saved_sound = self.storage.get_item(StorageKeys.NOTIFICATION_SOUND)
        self._sound_enabled = True if saved_sound is None else saved_sound is True

        self._attached: list[EventBus] = []

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load_notifications(self) -> list[Notification]:
        loaded = []
        for raw in self.storage.get_item(StorageKeys.NOTIFICATIONS) or []:
            try:
                loaded.append(Notification.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Dropping unreadable stored notification: {e}")
        return loaded[:MAX_NOTIFICATIONS]

    def _set(self, notifications: list[Notification]) -> None:
        self._notifications = notifications
        self.storage.set_item(
            StorageKeys.NOTIFICATIONS,
            [n.model_dump(mode="json", by_alias=True) for n in notifications],
        )

    def _save_deleted(self) -> None:
        self.storage.set_item(StorageKeys.DELETED_NOTIFICATIONS, sorted(self._deleted_ids))

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def notifications(self) -> list[Notification]:
        return list(self._notifications)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._notifications if not n.read)

    @property
    def deleted_ids(self) -> set[str]:
        return set(self._deleted_ids)

    @property
    def sound_enabled(self) -> bool:
        return self._sound_enabled

    def get(self, notification_id: str) -> Optional[Notification]:
        return next((n for n in self._notifications if n.id == notification_id), None)

    # =========================================================================
    # Mutations
    # =========================================================================

    def add(self, message: str, level=NotificationLevel.INFO) -> Optional[Notification]:
        """
        Add a local notification.

        Returns the new notification, or None if it was suppressed as a duplicate.
        """
        notifications, created = add_notification(
            self._notifications, message, level, now=self.clock()
        )
        if created is None:
            logger.debug(f"Suppressed duplicate notification: {message}")
            return None

        self._set(notifications)
        if self._sound_enabled and self.play_sound is not None:
            try:
                self.play_sound(created)
            except Exception as e:
                logger.warning(f"Notification sound failed: {e}")
        return created

    def fetch_from_server(self) -> list[Notification]:
        """
        Merge the server's notifications into the list.

        A failed fetch is logged and leaves the current list untouched.
        """
        if self.api is None:
            return self.notifications
        try:
            server = self.api.get_notifications()
        except ApiError as e:
            logger.error(f"Failed to fetch notifications: {e}")
            return self.notifications

        self._set(merge_notifications(self._notifications, server, self._deleted_ids))
        logger.info(f"Merged {len(server)} server notifications, {len(self._notifications)} total")
        return self.notifications

    def mark_as_read(self, notification_id: str) -> None:
        notification = self.get(notification_id)
        if notification is None:
            return
        self._set(mark_as_read(self._notifications, notification_id))
        if notification.is_server_notification and not notification.read:
            self._sync_read(notification_id)

    def mark_all_as_read(self) -> None:
        unread_server_ids = [
            n.id for n in self._notifications
            if n.is_server_notification and not n.read
        ]
        self._set(mark_all_as_read(self._notifications))
        for notification_id in unread_server_ids:
            self._sync_read(notification_id)

    def _sync_read(self, notification_id: str) -> None:
        if self.api is None:
            return
        try:
            self.api.mark_notification_read(notification_id)
        except ApiError as e:
            logger.error(f"Failed to mark notification {notification_id} as read on server: {e}")

    def remove(self, notification_id: str) -> None:
        notification = self.get(notification_id)
        if notification is None:
            return
        if notification.is_server_notification:
            self._deleted_ids.add(notification_id)
            self._save_deleted()
        self._set(remove_notification(self._notifications, notification_id))

    def clear_all(self) -> None:
        server_ids = {n.id for n in self._notifications if n.is_server_notification}
        if server_ids:
            self._deleted_ids |= server_ids
            self._save_deleted()
        self._set([])

    def toggle_sound(self) -> bool:
        self._sound_enabled = not self._sound_enabled
        self.storage.set_item(StorageKeys.NOTIFICATION_SOUND, self._sound_enabled)
        return self._sound_enabled

    # =========================================================================
    # Event bus wiring
    # =========================================================================

    def attach(self, event_bus: EventBus) -> None:
        """Turn every templated event on ``event_bus`` into a notification."""
        if event_bus in self._attached:
            logger.warning("NotificationCenter already attached to this event bus")
            return
        event_bus.subscribe_all(self._handle_event)
        self._attached.append(event_bus)

    def detach(self, event_bus: EventBus) -> None:
        if event_bus in self._attached:
            event_bus.unsubscribe("*", self._handle_event)
            self._attached.remove(event_bus)

    def _handle_event(self, event: Event) -> None:
        rendered = render_message(event.event_type, **event.payload)
        if rendered is None:
            return
        message, level = rendered
        self.add(message, level)
