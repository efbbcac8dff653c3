"""Notification pipeline: change feed -> normalizer -> ledger -> subscribers."""

from __future__ import annotations

import logging
import threading
from typing import Iterable

from care_alerts.config import Settings
from care_alerts.domain.entities import (
    ALERTS_TABLE,
    DELIVERIES_TABLE,
    USERS_TABLE,
    ChangeEvent,
    ChangeType,
    Notification,
)
from care_alerts.infrastructure.notifications import (
    ChangeFeed,
    SubscriberRegistry,
    UnreadLedger,
    Unsubscribe,
)
from care_alerts.infrastructure.notifications.registry import Subscriber
from care_alerts.infrastructure.storage import KeyValueStorage, build_storage

from .normalizer import NotificationIdGenerator, accepts, has_mapping, normalize

logger = logging.getLogger(__name__)

DEFAULT_TABLES = (USERS_TABLE, ALERTS_TABLE, DELIVERIES_TABLE)


class NotificationNotFoundError(LookupError):
    """Raised when a notification id is not present in the log."""


class NotificationService:
    """Facade used by the UI layer to receive and acknowledge notifications.

    Construction performs no I/O. :meth:`init` loads the persisted ledger
    and subscribes to the change feed; calling it again is a no-op.
    """

    def __init__(
        self,
        ledger: UnreadLedger,
        registry: SubscriberRegistry | None = None,
        id_generator: NotificationIdGenerator | None = None,
        *,
        watch_status_changes: bool = False,
    ) -> None:
        self._ledger = ledger
        self._registry = registry or SubscriberRegistry()
        self._id_generator = id_generator or NotificationIdGenerator()
        self._watch_status_changes = watch_status_changes
        self._lock = threading.RLock()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def init(self, feed: ChangeFeed | None = None, tables: Iterable[str] = DEFAULT_TABLES) -> None:
        with self._lock:
            if self._initialized:
                logger.info("Notification service already initialized")
                return
            self._initialized = True
            self._ledger.load()

        if feed is None:
            logger.warning("No change feed configured; only persisted notifications are available")
            return

        for table in tables:
            feed.subscribe(table, ChangeType.INSERT, self.handle_change)
            if self._watch_status_changes and has_mapping(table, ChangeType.UPDATE):
                feed.subscribe(table, ChangeType.UPDATE, self.handle_change)
            logger.info("Watching %s for notifications", table)

    def handle_change(self, event: ChangeEvent) -> Notification | None:
        """Run one change event through the pipeline.

        The ledger is updated before any subscriber is called. Returns the
        published notification, or ``None`` when the event was filtered out.
        """

        if event.change_type is ChangeType.UPDATE and not self._watch_status_changes:
            logger.debug("Ignoring UPDATE on %s; status change notifications are disabled", event.table)
            return None
        if not accepts(event):
            logger.debug("%s event on %s does not warrant a notification", event.change_type.value, event.table)
            return None

        with self._lock:
            notification = normalize(event, id_generator=self._id_generator)
            self._ledger.record(notification)
            self._registry.publish(notification)
        return notification

    def subscribe(self, callback: Subscriber) -> Unsubscribe:
        return self._registry.subscribe(callback)

    def get_unread_count(self) -> int:
        return self._ledger.unread_count

    def load_all(self) -> list[Notification]:
        return self._ledger.snapshot()

    def mark_as_read(self, notification_id: str) -> None:
        with self._lock:
            self._ledger.mark_read(notification_id)

    def mark_all_as_read(self) -> None:
        with self._lock:
            self._ledger.mark_all_read()

    def delete(self, notification_id: str) -> None:
        with self._lock:
            self._ledger.delete_one(notification_id)

    def clear_all(self) -> None:
        with self._lock:
            self._ledger.clear_all()

    def activate(self, notification_id: str) -> str | None:
        """Mark ``notification_id`` read and return where the UI should navigate."""

        with self._lock:
            notification = self._ledger.get(notification_id)
            if notification is None:
                raise NotificationNotFoundError(notification_id)
            self._ledger.mark_read(notification_id)
        return notification.action_path


def build_notification_service(
    settings: Settings, storage: KeyValueStorage | None = None
) -> NotificationService:
    """Wire a service from ``settings``; ``storage`` overrides the configured backend."""

    ledger = UnreadLedger(
        storage or build_storage(settings.storage_backend, settings.database_url),
        cap=settings.notification_log_cap,
        unread_count_key=settings.unread_count_key,
        notifications_key=settings.notifications_key,
    )
    return NotificationService(
        ledger,
        SubscriberRegistry(),
        watch_status_changes=settings.watch_status_changes,
    )


__all__ = [
    "DEFAULT_TABLES",
    "NotificationNotFoundError",
    "NotificationService",
    "build_notification_service",
]
