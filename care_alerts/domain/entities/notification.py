"""Domain entity representing a dashboard notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class NotificationKind(str, Enum):
    """Closed set of notification variants."""

    USER_REGISTERED = "user_registered"
    ALERT_CREATED = "alert_created"
    ALERT_RESOLVED = "alert_resolved"
    DELIVERY_ASSIGNED = "delivery_assigned"
    DELIVERY_COMPLETED = "delivery_completed"
    STOCK_LOW = "stock_low"
    SYSTEM_ALERT = "system_alert"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class Notification:
    """A normalized change event ready to be shown to dashboard users."""

    id: str
    kind: NotificationKind
    title: str
    message: str
    priority: NotificationPriority
    created_at: datetime
    read: bool = False
    subject_id: str | None = None
    subject_name: str | None = None
    action_path: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


__all__ = ["Notification", "NotificationKind", "NotificationPriority"]
