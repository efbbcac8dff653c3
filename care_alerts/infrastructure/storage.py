"""Durable key/value storage used to persist the unread ledger."""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from care_alerts.config import get_settings
from care_alerts.infrastructure.models import KeyValueEntryModel

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when the storage backend cannot read or write a key."""


class KeyValueStorage(Protocol):
    """Minimal string key/value interface modelled on browser local storage."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class InMemoryKeyValueStorage:
    """Process-local storage, used by tests and the ``memory`` backend."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._items: dict[str, str] = dict(initial or {})
        self.write_count = 0

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value
        self.write_count += 1

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)
        self.write_count += 1


class DatabaseKeyValueStorage:
    """Store values in the ``key_value_entry`` table, one session per call."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get_item(self, key: str) -> str | None:
        session = self._session_factory()
        try:
            model = session.get(KeyValueEntryModel, key)
            return None if model is None else model.value
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not read key {key!r}") from exc
        finally:
            session.close()

    def set_item(self, key: str, value: str) -> None:
        session = self._session_factory()
        try:
            model = session.get(KeyValueEntryModel, key)
            if model is None:
                model = KeyValueEntryModel(key=key, value=value)
            else:
                model.value = value
            session.add(model)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(f"Could not write key {key!r}") from exc
        finally:
            session.close()

    def remove_item(self, key: str) -> None:
        session = self._session_factory()
        try:
            session.query(KeyValueEntryModel).filter(
                KeyValueEntryModel.key == key
            ).delete(synchronize_session=False)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(f"Could not remove key {key!r}") from exc
        finally:
            session.close()


def build_storage(backend: str, database_url: str | None = None) -> KeyValueStorage:
    """Return the storage adapter configured by ``backend``.

    The database backend writes to ``database_url``, falling back to the
    configured ``DATABASE_URL``.
    """

    if backend == "memory":
        logger.info("Using in-memory storage; notifications will not survive restarts")
        return InMemoryKeyValueStorage()

    from care_alerts.infrastructure.database import build_session_factory

    url = database_url or get_settings().database_url
    logger.info("Using database storage at %s", url)
    return DatabaseKeyValueStorage(build_session_factory(url))


__all__ = [
    "DatabaseKeyValueStorage",
    "InMemoryKeyValueStorage",
    "KeyValueStorage",
    "StorageError",
    "build_storage",
]
