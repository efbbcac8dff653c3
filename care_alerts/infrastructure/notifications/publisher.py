"""Serialize notifications and push them to websocket subscribers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

from anyio import from_thread

from care_alerts.domain.entities import Notification, NotificationKind, NotificationPriority
from care_alerts.utils import parse_iso_datetime

from .manager import NotificationConnectionManager

logger = logging.getLogger(__name__)


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the JSON representation used for storage and websockets."""

    return {
        "id": notification.id,
        "type": notification.kind.value,
        "title": notification.title,
        "message": notification.message,
        "user_id": notification.subject_id,
        "user_name": notification.subject_name,
        "timestamp": notification.created_at.isoformat(),
        "read": notification.read,
        "priority": notification.priority.value,
        "action_url": notification.action_path,
        "data": dict(notification.data or {}),
    }


def deserialize_notification(record: Mapping[str, Any]) -> Notification:
    """Rebuild a :class:`Notification` from :func:`serialize_notification` output.

    Raises ``ValueError``, ``KeyError`` or ``TypeError`` when ``record`` is
    not a valid notification record.
    """

    if not isinstance(record, Mapping):
        raise TypeError("Notification record must be an object")

    identifier = record["id"]
    if not isinstance(identifier, str) or not identifier:
        raise ValueError("Notification id must be a non-empty string")
    timestamp = record["timestamp"]
    if not isinstance(timestamp, str):
        raise TypeError("Notification timestamp must be an ISO-8601 string")
    data = record.get("data") or {}
    if not isinstance(data, Mapping):
        raise TypeError("Notification data must be an object")

    return Notification(
        id=identifier,
        kind=NotificationKind(record["type"]),
        title=str(record.get("title") or ""),
        message=str(record.get("message") or ""),
        priority=NotificationPriority(record["priority"]),
        created_at=parse_iso_datetime(timestamp),
        read=bool(record.get("read", False)),
        subject_id=_optional_text(record.get("user_id")),
        subject_name=_optional_text(record.get("user_name")),
        action_path=_optional_text(record.get("action_url")),
        data=dict(data),
    )


def _optional_text(value: Any) -> str | None:
    return None if value is None else str(value)


class WebsocketNotificationPublisher:
    """Registry subscriber that forwards notifications to open websockets.

    Delivery is scheduled on the application event loop and never awaited,
    so publishing stays non-blocking whatever thread the change arrives on.
    """

    def __init__(
        self,
        manager: NotificationConnectionManager,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._manager = manager
        self._loop = loop

    def __call__(self, notification: Notification) -> None:
        message = {"type": "notification", "data": serialize_notification(notification)}
        self._schedule_delivery(message)

    def _schedule_delivery(self, message: dict[str, Any]) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is not None:
            running.create_task(self._manager.broadcast(message))
            return
        if self._loop is not None and not self._loop.is_closed():
            asyncio.run_coroutine_threadsafe(self._manager.broadcast(message), self._loop)
            return
        try:
            from_thread.run(self._manager.broadcast, message)
        except RuntimeError:
            logger.warning("No event loop available; websocket notification dropped")


__all__ = [
    "WebsocketNotificationPublisher",
    "deserialize_notification",
    "serialize_notification",
]
