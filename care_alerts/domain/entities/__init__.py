"""Domain entities exposed by the application."""

from .change_event import (
    ALERTS_TABLE,
    DELIVERIES_TABLE,
    INVENTORY_TABLE,
    USERS_TABLE,
    ChangeEvent,
    ChangeType,
)
from .notification import Notification, NotificationKind, NotificationPriority

__all__ = [
    "ChangeEvent",
    "ChangeType",
    "USERS_TABLE",
    "ALERTS_TABLE",
    "DELIVERIES_TABLE",
    "INVENTORY_TABLE",
    "Notification",
    "NotificationKind",
    "NotificationPriority",
]
