"""Command line tool that prints notifications produced by the change feed."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from care_alerts.application.use_cases.notifications import build_notification_service
from care_alerts.config import get_settings
from care_alerts.domain.entities import Notification
from care_alerts.infrastructure.notifications import (
    InMemoryChangeFeed,
    SupabaseChangeFeed,
    serialize_notification,
)
from care_alerts.infrastructure.storage import InMemoryKeyValueStorage

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""

    parser = argparse.ArgumentParser(
        description="Watch the database change feed and print the resulting notifications.",
    )
    parser.add_argument(
        "--replay",
        type=Path,
        default=None,
        help="JSON lines file of {table, row, change_type} events to replay instead of Supabase",
    )
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Keep the ledger in memory instead of the configured storage backend",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print notifications as JSON records",
    )
    return parser.parse_args(argv)


def _format(notification: Notification, as_json: bool) -> str:
    if as_json:
        return json.dumps(serialize_notification(notification), default=str)
    return (
        f"[{notification.priority.value.upper():6}] {notification.title}: "
        f"{notification.message} ({notification.id})"
    )


def replay(path: Path, feed: InMemoryChangeFeed) -> int:
    """Emit every event stored in ``path`` and return how many were read."""

    count = 0
    with path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
                feed.emit(
                    record["table"],
                    record.get("row") or {},
                    record.get("change_type", "INSERT"),
                    old_row=record.get("old_row"),
                )
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping line %d of %s: %s", line_number, path, exc)
                continue
            count += 1
    return count


async def _watch(feed: SupabaseChangeFeed) -> None:
    await feed.start()
    try:
        await asyncio.Event().wait()
    finally:
        await feed.close()


def main(argv: list[str] | None = None) -> int:
    """Run the watcher using the provided command line arguments."""

    args = parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    storage = InMemoryKeyValueStorage() if args.memory else None
    service = build_notification_service(settings, storage=storage)
    service.subscribe(lambda notification: print(_format(notification, args.json), flush=True))

    if args.replay is not None:
        feed = InMemoryChangeFeed()
        service.init(feed, settings.watched_table_list)
        try:
            count = replay(args.replay, feed)
        except OSError as exc:
            raise SystemExit(f"Could not read {args.replay}: {exc}") from exc
        print(
            f"Replayed {count} event(s); {service.get_unread_count()} unread notification(s).",
            file=sys.stderr,
        )
        return 0

    if not settings.change_feed_enabled:
        raise SystemExit("SUPABASE_URL and SUPABASE_KEY must be set to watch the live feed.")

    feed = SupabaseChangeFeed(settings.supabase_url, settings.supabase_key)
    service.init(feed, settings.watched_table_list)
    try:
        asyncio.run(_watch(feed))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
