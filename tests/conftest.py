"""Shared fixtures for the notification tests."""

from __future__ import annotations

import os

import pytest

# Keep application imports away from the on-disk database.
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("APP_TIMEZONE", "UTC")

from care_alerts.application.use_cases.notifications import (  # noqa: E402
    NotificationIdGenerator,
    NotificationService,
)
from care_alerts.infrastructure.notifications import (  # noqa: E402
    InMemoryChangeFeed,
    SubscriberRegistry,
    UnreadLedger,
)
from care_alerts.infrastructure.storage import InMemoryKeyValueStorage  # noqa: E402


@pytest.fixture()
def storage() -> InMemoryKeyValueStorage:
    return InMemoryKeyValueStorage()


@pytest.fixture()
def ledger(storage: InMemoryKeyValueStorage) -> UnreadLedger:
    return UnreadLedger(storage)


@pytest.fixture()
def registry() -> SubscriberRegistry:
    return SubscriberRegistry()


@pytest.fixture()
def feed() -> InMemoryChangeFeed:
    return InMemoryChangeFeed()


@pytest.fixture()
def service(ledger: UnreadLedger, registry: SubscriberRegistry) -> NotificationService:
    return NotificationService(
        ledger, registry, NotificationIdGenerator(session_token="test"), watch_status_changes=True
    )
