"""Durable unread counter plus a capped, most-recent-first notification log."""

from __future__ import annotations

import copy
import json
import logging
import threading
from typing import Any

from care_alerts.domain.entities import Notification
from care_alerts.infrastructure.storage import KeyValueStorage, StorageError

from .publisher import deserialize_notification, serialize_notification

logger = logging.getLogger(__name__)

DEFAULT_LOG_CAP = 50
DEFAULT_UNREAD_COUNT_KEY = "notificationUnreadCount"
DEFAULT_NOTIFICATIONS_KEY = "notifications"


class UnreadLedger:
    """Own the canonical notification log and its unread counter.

    Every mutation is mirrored to ``storage`` before returning. Storage
    failures are logged and swallowed, leaving the in-memory state
    authoritative for the rest of the process lifetime.

    An unread entry that falls off the end of the log, or is deleted,
    decrements the counter, so ``unread_count`` always equals the number of
    unread entries in the log.

    A ledger that has not been loaded yet loads itself before its first
    mutation, so early writes never replace what is already persisted.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        cap: int = DEFAULT_LOG_CAP,
        unread_count_key: str = DEFAULT_UNREAD_COUNT_KEY,
        notifications_key: str = DEFAULT_NOTIFICATIONS_KEY,
    ) -> None:
        if cap <= 0:
            raise ValueError("cap must be a positive integer")
        self._storage = storage
        self._cap = cap
        self._unread_count_key = unread_count_key
        self._notifications_key = notifications_key
        self._entries: list[Notification] = []
        self._unread_count = 0
        self._loaded = False
        self._lock = threading.RLock()

    @property
    def cap(self) -> int:
        return self._cap

    @property
    def unread_count(self) -> int:
        return self._unread_count

    @property
    def loaded(self) -> bool:
        return self._loaded

    def __len__(self) -> int:
        return len(self._entries)

    def load(self) -> None:
        """Read the persisted counter and log back into memory.

        Missing or corrupt data yields an empty log and a zero counter; this
        method never raises.
        """

        with self._lock:
            self._loaded = True
            try:
                raw_count = self._storage.get_item(self._unread_count_key)
                raw_log = self._storage.get_item(self._notifications_key)
            except StorageError:
                logger.exception("Could not read the notification ledger; starting empty")
                self._entries = []
                self._unread_count = 0
                return

            self._entries = self._parse_log(raw_log)[: self._cap]
            unread = sum(1 for entry in self._entries if not entry.read)
            persisted = self._parse_count(raw_count)
            if persisted is not None and persisted != unread:
                logger.warning(
                    "Persisted unread count %d does not match %d unread entries; using the log",
                    persisted,
                    unread,
                )
            self._unread_count = unread

    def _parse_log(self, raw_log: str | None) -> list[Notification]:
        if not raw_log:
            return []
        try:
            records = json.loads(raw_log)
        except ValueError:
            logger.warning("Stored notification log is not valid JSON; discarding it")
            return []
        if not isinstance(records, list):
            logger.warning("Stored notification log is not a list; discarding it")
            return []

        entries: list[Notification] = []
        for record in records:
            try:
                entries.append(deserialize_notification(record))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable notification record: %s", exc)
        return entries

    @staticmethod
    def _parse_count(raw_count: str | None) -> int | None:
        if raw_count is None:
            return None
        try:
            return max(0, int(raw_count.strip()))
        except (AttributeError, ValueError):
            logger.warning("Stored unread count %r is not an integer", raw_count)
            return None

    def record(self, notification: Notification) -> list[Notification]:
        """Prepend ``notification`` and return the entries evicted by the cap."""

        with self._lock:
            self._ensure_loaded()
            self._entries.insert(0, copy.deepcopy(notification))
            if not notification.read:
                self._unread_count += 1
            evicted = self._entries[self._cap :]
            del self._entries[self._cap :]
            for entry in evicted:
                if not entry.read:
                    self._unread_count = max(0, self._unread_count - 1)
            if evicted:
                logger.debug("Evicted %d notification(s) past the log cap", len(evicted))
            self._persist()
            return evicted

    def snapshot(self) -> list[Notification]:
        """Return a copy of the log, most recent first."""

        with self._lock:
            return copy.deepcopy(self._entries)

    def get(self, notification_id: str) -> Notification | None:
        with self._lock:
            entry = self._find(notification_id)
            return None if entry is None else copy.deepcopy(entry)

    def mark_read(self, notification_id: str) -> bool:
        """Flip ``notification_id`` to read; unknown or read ids are no-ops."""

        with self._lock:
            self._ensure_loaded()
            entry = self._find(notification_id)
            if entry is None or entry.read:
                return False
            entry.read = True
            self._unread_count = max(0, self._unread_count - 1)
            self._persist()
            return True

    def mark_all_read(self) -> int:
        """Mark every entry read with a single persistence pass."""

        with self._lock:
            self._ensure_loaded()
            flipped = 0
            for entry in self._entries:
                if not entry.read:
                    entry.read = True
                    flipped += 1
            self._unread_count = 0
            self._persist()
            return flipped

    def delete_one(self, notification_id: str) -> bool:
        with self._lock:
            self._ensure_loaded()
            entry = self._find(notification_id)
            if entry is None:
                return False
            self._entries = [current for current in self._entries if current is not entry]
            if not entry.read:
                self._unread_count = max(0, self._unread_count - 1)
            self._persist()
            return True

    def clear_all(self) -> None:
        with self._lock:
            self._loaded = True
            self._entries = []
            self._unread_count = 0
            try:
                self._storage.remove_item(self._notifications_key)
                self._storage.set_item(self._unread_count_key, "0")
            except StorageError:
                logger.exception("Could not clear the persisted notification ledger")

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            logger.debug("Loading the notification ledger before its first change")
            self.load()

    def _find(self, notification_id: str) -> Notification | None:
        for entry in self._entries:
            if entry.id == notification_id:
                return entry
        return None

    def _persist(self) -> None:
        try:
            payload = json.dumps(
                [serialize_notification(entry) for entry in self._entries],
                default=_json_default,
            )
            self._storage.set_item(self._unread_count_key, str(self._unread_count))
            self._storage.set_item(self._notifications_key, payload)
        except (StorageError, TypeError, ValueError):
            logger.exception("Could not persist the notification ledger")


def _json_default(value: Any) -> str:
    isoformat = getattr(value, "isoformat", None)
    if callable(isoformat):
        return isoformat()
    return str(value)


__all__ = [
    "DEFAULT_LOG_CAP",
    "DEFAULT_NOTIFICATIONS_KEY",
    "DEFAULT_UNREAD_COUNT_KEY",
    "UnreadLedger",
]
