"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from care_alerts.domain.entities import NotificationKind, NotificationPriority


class NotificationAckRequest(BaseModel):
    """Payload used to mark a batch of notifications as read."""

    ids: list[str] = Field(..., min_length=1, description="Notification identifiers")

    def unique_ids(self) -> list[str]:
        """Return the identifiers without duplicates, preserving order."""

        unique: list[str] = []
        seen: set[str] = set()
        for notification_id in self.ids:
            if notification_id in seen:
                continue
            seen.add(notification_id)
            unique.append(notification_id)
        return unique


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the dashboard."""

    id: str
    type: NotificationKind
    title: str
    message: str
    priority: NotificationPriority
    timestamp: datetime
    read: bool
    user_id: str | None = None
    user_name: str | None = None
    action_url: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class UnreadCountRead(BaseModel):
    unread_count: int


class NotificationActivationRead(BaseModel):
    id: str
    action_url: str | None = None


__all__ = [
    "NotificationAckRequest",
    "NotificationActivationRead",
    "NotificationRead",
    "UnreadCountRead",
]
