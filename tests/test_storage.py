"""Tests for the SQLAlchemy backed key/value storage."""

from __future__ import annotations

import pytest
from sqlalchemy.orm import sessionmaker

from care_alerts.application.use_cases.notifications import build_notification_service
from care_alerts.config import Settings
from care_alerts.domain.entities import ChangeEvent
from care_alerts.infrastructure.database import build_engine, initialize_database
from care_alerts.infrastructure.notifications import UnreadLedger
from care_alerts.infrastructure.storage import (
    DatabaseKeyValueStorage,
    InMemoryKeyValueStorage,
    StorageError,
    build_storage,
)
from tests.factories import make_notification


@pytest.fixture()
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    initialize_database(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


def test_get_set_remove(session_factory) -> None:
    storage = DatabaseKeyValueStorage(session_factory)

    assert storage.get_item("notifications") is None
    storage.set_item("notifications", "[]")
    storage.set_item("notifications", '[{"id": 1}]')
    assert storage.get_item("notifications") == '[{"id": 1}]'

    storage.remove_item("notifications")
    storage.remove_item("notifications")
    assert storage.get_item("notifications") is None


def test_ledger_survives_restart_with_database_storage(session_factory) -> None:
    ledger = UnreadLedger(DatabaseKeyValueStorage(session_factory))
    ledger.record(make_notification(1))
    ledger.record(make_notification(2))
    ledger.mark_read(make_notification(1).id)

    restarted = UnreadLedger(DatabaseKeyValueStorage(session_factory))
    restarted.load()

    assert restarted.snapshot() == ledger.snapshot()
    assert restarted.unread_count == 1


def test_missing_table_raises_storage_error(tmp_path) -> None:
    engine = build_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    storage = DatabaseKeyValueStorage(sessionmaker(bind=engine))

    with pytest.raises(StorageError):
        storage.get_item("notifications")
    with pytest.raises(StorageError):
        storage.set_item("notifications", "[]")
    engine.dispose()


def test_ledger_fails_open_when_table_is_missing(tmp_path, caplog) -> None:
    engine = build_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    ledger = UnreadLedger(DatabaseKeyValueStorage(sessionmaker(bind=engine)))

    with caplog.at_level("ERROR"):
        ledger.load()
        ledger.record(make_notification(1))

    assert ledger.unread_count == 1
    assert "Could not persist the notification ledger" in caplog.text
    engine.dispose()


def test_build_storage_memory_backend() -> None:
    assert isinstance(build_storage("memory"), InMemoryKeyValueStorage)


def test_build_storage_database_backend_uses_given_url(tmp_path) -> None:
    target = tmp_path / "notifications.db"

    storage = build_storage("database", f"sqlite:///{target}")
    storage.set_item("notificationUnreadCount", "2")

    assert target.exists()
    assert storage.get_item("notificationUnreadCount") == "2"


def test_service_built_from_settings_writes_to_configured_database(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "data" / "mine.db"
    target.parent.mkdir()
    settings = Settings(
        _env_file=None,
        storage_backend="database",
        database_url=f"sqlite:///{target}",
    )

    service = build_notification_service(settings)
    service.init(None)
    service.handle_change(ChangeEvent(table="users", row={"full_name": "Meena"}))

    assert target.exists()
    assert not (tmp_path / "care_alerts.db").exists()

    restarted = build_notification_service(settings)
    restarted.init(None)
    assert [n.message for n in restarted.load_all()] == ["Meena just joined the platform"]
