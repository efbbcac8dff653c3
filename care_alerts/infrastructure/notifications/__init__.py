"""Notification delivery helpers for the infrastructure layer."""

from .ledger import UnreadLedger
from .manager import NotificationConnectionManager
from .publisher import (
    WebsocketNotificationPublisher,
    deserialize_notification,
    serialize_notification,
)
from .realtime import (
    ChangeFeed,
    InMemoryChangeFeed,
    SupabaseChangeFeed,
    build_change_feed,
    event_from_payload,
)
from .registry import SubscriberRegistry, Unsubscribe

__all__ = [
    "ChangeFeed",
    "InMemoryChangeFeed",
    "SupabaseChangeFeed",
    "build_change_feed",
    "event_from_payload",
    "NotificationConnectionManager",
    "SubscriberRegistry",
    "Unsubscribe",
    "UnreadLedger",
    "WebsocketNotificationPublisher",
    "deserialize_notification",
    "serialize_notification",
]
