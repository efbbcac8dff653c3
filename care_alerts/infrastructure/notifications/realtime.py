"""Change-feed adapters that turn database row changes into ``ChangeEvent``s."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Mapping, Protocol

from supabase import AsyncClient, acreate_client

from care_alerts.domain.entities import ChangeEvent, ChangeType

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[ChangeEvent], Any]


class ChangeFeed(Protocol):
    """Source of row-change events, one subscription per table and change type."""

    def subscribe(self, table: str, change_type: ChangeType, handler: ChangeHandler) -> None: ...

    async def start(self) -> None: ...

    async def close(self) -> None: ...


class InMemoryChangeFeed:
    """Feed driven by explicit :meth:`emit` calls, used for replays and tests."""

    def __init__(self) -> None:
        self._handlers: defaultdict[tuple[str, ChangeType], list[ChangeHandler]] = defaultdict(list)
        self.started = False

    def subscribe(self, table: str, change_type: ChangeType, handler: ChangeHandler) -> None:
        self._handlers[(table, ChangeType(change_type))].append(handler)

    def subscriptions(self) -> list[tuple[str, ChangeType]]:
        return [key for key, handlers in self._handlers.items() if handlers]

    def emit(
        self,
        table: str,
        row: Mapping[str, Any],
        change_type: ChangeType | str = ChangeType.INSERT,
        *,
        old_row: Mapping[str, Any] | None = None,
    ) -> int:
        """Deliver a row change to its handlers and return how many were called."""

        event = ChangeEvent(table=table, row=row, change_type=ChangeType(change_type), old_row=old_row)
        handlers = list(self._handlers.get((table, event.change_type), ()))
        for handler in handlers:
            handler(event)
        return len(handlers)

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.started = False
        self._handlers.clear()


class SupabaseChangeFeed:
    """Supabase realtime ``postgres_changes`` subscriptions.

    :meth:`subscribe` only records the wanted streams; channels are opened by
    :meth:`start`, which must run on the application event loop.
    """

    def __init__(
        self,
        url: str,
        key: str,
        *,
        schema: str = "public",
        client_factory: Callable[..., Any] = acreate_client,
    ) -> None:
        self._url = url
        self._key = key
        self._schema = schema
        self._client_factory = client_factory
        self._client: AsyncClient | None = None
        self._requested: list[tuple[str, ChangeType, ChangeHandler]] = []
        self._channels: list[Any] = []

    def subscribe(self, table: str, change_type: ChangeType, handler: ChangeHandler) -> None:
        self._requested.append((table, ChangeType(change_type), handler))

    async def start(self) -> None:
        if self._client is not None:
            return
        self._client = await self._client_factory(self._url, self._key)
        for table, change_type, handler in self._requested:
            name = channel_name(table, change_type)
            channel = self._client.channel(name)
            channel.on_postgres_changes(
                change_type.value,
                schema=self._schema,
                table=table,
                callback=self._make_callback(table, change_type, handler),
            )
            await channel.subscribe(self._make_status_logger(name))
            self._channels.append(channel)
        logger.info("Opened %d change-feed channel(s)", len(self._channels))

    async def close(self) -> None:
        if self._client is None:
            return
        for channel in self._channels:
            try:
                await self._client.remove_channel(channel)
            except Exception:
                logger.warning("Could not close change-feed channel cleanly", exc_info=True)
        self._channels = []
        self._client = None

    def _make_callback(
        self, table: str, change_type: ChangeType, handler: ChangeHandler
    ) -> Callable[[Mapping[str, Any]], None]:
        def callback(payload: Mapping[str, Any]) -> None:
            event = event_from_payload(table, change_type, payload)
            try:
                handler(event)
            except Exception:
                logger.exception("Change handler failed for %s %s event", change_type.value, table)

        return callback

    @staticmethod
    def _make_status_logger(name: str) -> Callable[..., None]:
        def on_status(status: Any, error: Exception | None = None) -> None:
            if error is not None:
                logger.error("Subscription %s status %s: %s", name, status, error)
            else:
                logger.info("Subscription %s status: %s", name, status)

        return on_status


def channel_name(table: str, change_type: ChangeType) -> str:
    if change_type is ChangeType.INSERT:
        return f"{table}-notifications"
    return f"{table}-{change_type.value.lower()}-notifications"


def event_from_payload(
    table: str, change_type: ChangeType, payload: Mapping[str, Any] | None
) -> ChangeEvent:
    """Extract the changed row from a realtime payload.

    Supports the nested ``{"data": {"record": ...}}`` shape as well as the
    flat ``{"new": ..., "old": ...}`` shape. Unknown shapes produce an empty
    row rather than an error.
    """

    payload = payload if isinstance(payload, Mapping) else {}
    data = payload.get("data")
    source = data if isinstance(data, Mapping) else payload

    row = _first_mapping(source, "record", "new")
    old_row = _first_mapping(source, "old_record", "old")
    if not row:
        logger.debug("Realtime payload for %s carried no row: %r", table, payload)
    return ChangeEvent(
        table=table,
        row=row or {},
        change_type=change_type,
        old_row=old_row or None,
    )


def _first_mapping(source: Mapping[str, Any], *keys: str) -> dict[str, Any] | None:
    for key in keys:
        value = source.get(key)
        if isinstance(value, Mapping):
            return dict(value)
    return None


def build_change_feed(url: str | None, key: str | None) -> ChangeFeed | None:
    """Return a Supabase feed when credentials are configured."""

    if not (url and key):
        logger.warning("Supabase credentials not configured; change feed disabled")
        return None
    return SupabaseChangeFeed(url, key)


__all__ = [
    "ChangeFeed",
    "ChangeHandler",
    "InMemoryChangeFeed",
    "SupabaseChangeFeed",
    "build_change_feed",
    "channel_name",
    "event_from_payload",
]
