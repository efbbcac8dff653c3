"""Turn raw change events into :class:`Notification` records."""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping
from uuid import uuid4

from care_alerts.domain.entities import (
    ALERTS_TABLE,
    DELIVERIES_TABLE,
    INVENTORY_TABLE,
    USERS_TABLE,
    ChangeEvent,
    ChangeType,
    Notification,
    NotificationKind,
    NotificationPriority,
)
from care_alerts.utils import now_in_app_timezone

logger = logging.getLogger(__name__)

USERS_ACTION_PATH = "/admin/app-users"
ALERTS_ACTION_PATH = "/admin/alerts"
DELIVERIES_ACTION_PATH = "/admin/deliveries"
INVENTORY_ACTION_PATH = "/delivery/inventory"

_GENERIC_USER = "A new user"
_GENERIC_WOMAN = "Unknown patient"
_GENERIC_ALERT_TYPE = "Alert"
_GENERIC_ITEM = "An inventory item"


class NotificationIdGenerator:
    """Produce identifiers that never collide, whatever the clock resolution.

    Ids combine the notification kind, a per-generator session token and a
    monotonic sequence number. The token keeps ids unique against entries
    persisted by previous processes.
    """

    def __init__(self, session_token: str | None = None, *, start: int = 1) -> None:
        self._session_token = session_token or uuid4().hex[:8]
        self._sequence = itertools.count(start)
        self._lock = threading.Lock()

    def next_id(self, kind: NotificationKind) -> str:
        with self._lock:
            sequence = next(self._sequence)
        return f"{kind.value}-{self._session_token}-{sequence}"


@dataclass(frozen=True)
class NotificationDraft:
    """Fields derived from a change event before id and timestamp are stamped."""

    kind: NotificationKind
    title: str
    message: str
    priority: NotificationPriority
    subject_id: str | None = None
    subject_name: str | None = None
    action_path: str | None = None


Builder = Callable[[ChangeEvent], NotificationDraft]
Predicate = Callable[[ChangeEvent], bool]


def _always(event: ChangeEvent) -> bool:
    return True


@dataclass(frozen=True)
class _Mapping:
    build: Builder
    accepts: Predicate = _always


_MAPPINGS: dict[tuple[str, ChangeType], _Mapping] = {}


def register_mapping(
    table: str,
    change_type: ChangeType = ChangeType.INSERT,
    *,
    accepts: Predicate | None = None,
) -> Callable[[Builder], Builder]:
    """Register ``builder`` as the mapping for ``table``/``change_type`` events.

    ``accepts`` filters events that should not become notifications at all,
    for instance an inventory update that leaves stock above its threshold.
    """

    def decorator(builder: Builder) -> Builder:
        key = (table, ChangeType(change_type))
        _MAPPINGS[key] = _Mapping(build=builder, accepts=accepts or _always)
        return builder

    return decorator


def has_mapping(table: str, change_type: ChangeType = ChangeType.INSERT) -> bool:
    """Return whether a mapping is registered for ``table``/``change_type``."""

    return (table, ChangeType(change_type)) in _MAPPINGS


def accepts(event: ChangeEvent) -> bool:
    """Return whether ``event`` should produce a notification.

    Inserts on unmapped tables still become system notices; updates are only
    interesting where a status transition has been mapped.
    """

    mapping = _MAPPINGS.get((event.table, event.change_type))
    if mapping is None:
        return event.change_type is ChangeType.INSERT
    try:
        return bool(mapping.accepts(event))
    except Exception:  # pragma: no cover - predicates only read the row
        logger.exception("Predicate failed for %s %s event", event.change_type.value, event.table)
        return True


def normalize(
    event: ChangeEvent,
    *,
    id_generator: NotificationIdGenerator | None = None,
    now: datetime | None = None,
) -> Notification:
    """Build exactly one notification out of ``event``.

    Rows missing expected fields degrade to generic labels. Events without a
    registered mapping, or whose mapping fails, become ``SYSTEM_ALERT``
    notifications. This function never raises for malformed rows.
    """

    generator = id_generator or _default_id_generator
    mapping = _MAPPINGS.get((event.table, event.change_type))
    draft: NotificationDraft
    if mapping is None:
        draft = _system_notice(event)
    else:
        try:
            draft = mapping.build(event)
        except Exception:
            logger.exception(
                "Could not map %s event on %s; falling back to a system notice",
                event.change_type.value,
                event.table,
            )
            draft = _system_notice(event)

    return Notification(
        id=generator.next_id(draft.kind),
        kind=draft.kind,
        title=draft.title,
        message=draft.message,
        priority=draft.priority,
        created_at=now or now_in_app_timezone(),
        read=False,
        subject_id=draft.subject_id,
        subject_name=draft.subject_name,
        action_path=draft.action_path,
        data=_row_payload(event.row),
    )


def normalize_row(
    table: str,
    row: Mapping[str, Any],
    change_type: ChangeType | str = ChangeType.INSERT,
    *,
    id_generator: NotificationIdGenerator | None = None,
) -> Notification:
    """Shortcut for ``normalize(ChangeEvent(table, row, change_type))``."""

    event = ChangeEvent(table=table, row=row, change_type=ChangeType(change_type))
    return normalize(event, id_generator=id_generator)


def _row_payload(row: Mapping[str, Any] | None) -> dict[str, Any]:
    if not isinstance(row, Mapping):
        return {}
    return {str(key): value for key, value in row.items()}


def _fallback(event: ChangeEvent, key: str, default: str) -> str:
    value = event.text(key)
    if value is None:
        logger.debug("Field %r missing from %s row; using %r", key, event.table, default)
        return default
    return value


def _alert_priority(severity: str | None) -> NotificationPriority:
    normalized = (severity or "").strip().lower()
    if normalized == "high":
        return NotificationPriority.HIGH
    if normalized == "medium":
        return NotificationPriority.MEDIUM
    return NotificationPriority.LOW


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _format_quantity(value: float) -> str:
    return str(int(value)) if value.is_integer() else f"{value:g}"


def _is_status(expected: str) -> Predicate:
    def predicate(event: ChangeEvent) -> bool:
        status = (event.text("status") or "").lower()
        if status != expected:
            return False
        previous = event.old_row.get("status") if isinstance(event.old_row, Mapping) else None
        return str(previous or "").lower() != expected

    return predicate


def _is_low_stock(event: ChangeEvent) -> bool:
    quantity = _as_number(event.value("quantity"))
    threshold = _as_number(event.value("threshold"))
    if quantity is None or threshold is None:
        return False
    return quantity <= threshold


@register_mapping(USERS_TABLE)
def _user_registered(event: ChangeEvent) -> NotificationDraft:
    full_name = event.text("full_name")
    return NotificationDraft(
        kind=NotificationKind.USER_REGISTERED,
        title="New User Registered",
        message=f"{full_name or _GENERIC_USER} just joined the platform",
        priority=NotificationPriority.MEDIUM,
        subject_id=event.text("id"),
        subject_name=full_name,
        action_path=USERS_ACTION_PATH,
    )


@register_mapping(ALERTS_TABLE)
def _alert_created(event: ChangeEvent) -> NotificationDraft:
    woman_name = _fallback(event, "woman_name", _GENERIC_WOMAN)
    alert_type = _fallback(event, "type", _GENERIC_ALERT_TYPE)
    priority = _alert_priority(event.text("severity"))
    title = "High Priority Alert!" if priority is NotificationPriority.HIGH else "New Alert"
    return NotificationDraft(
        kind=NotificationKind.ALERT_CREATED,
        title=title,
        message=f"{woman_name}: {alert_type}",
        priority=priority,
        subject_id=event.text("id"),
        subject_name=event.text("woman_name"),
        action_path=ALERTS_ACTION_PATH,
    )


@register_mapping(DELIVERIES_TABLE)
def _delivery_assigned(event: ChangeEvent) -> NotificationDraft:
    woman_name = _fallback(event, "woman_name", _GENERIC_WOMAN)
    return NotificationDraft(
        kind=NotificationKind.DELIVERY_ASSIGNED,
        title="New Delivery Assigned",
        message=f"Delivery for {woman_name} has been created",
        priority=NotificationPriority.MEDIUM,
        subject_id=event.text("id"),
        subject_name=event.text("woman_name"),
        action_path=DELIVERIES_ACTION_PATH,
    )


@register_mapping(ALERTS_TABLE, ChangeType.UPDATE, accepts=_is_status("resolved"))
def _alert_resolved(event: ChangeEvent) -> NotificationDraft:
    woman_name = _fallback(event, "woman_name", _GENERIC_WOMAN)
    alert_type = _fallback(event, "type", _GENERIC_ALERT_TYPE)
    return NotificationDraft(
        kind=NotificationKind.ALERT_RESOLVED,
        title="Alert Resolved",
        message=f"{woman_name}: {alert_type} resolved",
        priority=NotificationPriority.LOW,
        subject_id=event.text("id"),
        subject_name=event.text("woman_name"),
        action_path=ALERTS_ACTION_PATH,
    )


@register_mapping(DELIVERIES_TABLE, ChangeType.UPDATE, accepts=_is_status("delivered"))
def _delivery_completed(event: ChangeEvent) -> NotificationDraft:
    woman_name = _fallback(event, "woman_name", _GENERIC_WOMAN)
    return NotificationDraft(
        kind=NotificationKind.DELIVERY_COMPLETED,
        title="Delivery Completed",
        message=f"Delivery for {woman_name} has been completed",
        priority=NotificationPriority.LOW,
        subject_id=event.text("id"),
        subject_name=event.text("woman_name"),
        action_path=DELIVERIES_ACTION_PATH,
    )


def _stock_low(event: ChangeEvent) -> NotificationDraft:
    name = _fallback(event, "name", _GENERIC_ITEM)
    quantity = _as_number(event.value("quantity"))
    unit = event.text("unit")
    remaining = _format_quantity(quantity) if quantity is not None else "?"
    if unit:
        remaining = f"{remaining} {unit}"
    return NotificationDraft(
        kind=NotificationKind.STOCK_LOW,
        title="Low Stock",
        message=f"{name} is running low ({remaining} left)",
        priority=NotificationPriority.HIGH,
        subject_id=event.text("id"),
        subject_name=event.text("name"),
        action_path=INVENTORY_ACTION_PATH,
    )


register_mapping(INVENTORY_TABLE, ChangeType.INSERT, accepts=_is_low_stock)(_stock_low)
register_mapping(INVENTORY_TABLE, ChangeType.UPDATE, accepts=_is_low_stock)(_stock_low)


def _system_notice(event: ChangeEvent) -> NotificationDraft:
    table = event.table or "unknown table"
    return NotificationDraft(
        kind=NotificationKind.SYSTEM_ALERT,
        title="System Notice",
        message=f"{event.change_type.value} on {table}",
        priority=NotificationPriority.LOW,
        subject_id=event.text("id"),
    )


_default_id_generator = NotificationIdGenerator()


__all__ = [
    "ALERTS_ACTION_PATH",
    "DELIVERIES_ACTION_PATH",
    "INVENTORY_ACTION_PATH",
    "USERS_ACTION_PATH",
    "NotificationDraft",
    "NotificationIdGenerator",
    "accepts",
    "has_mapping",
    "normalize",
    "normalize_row",
    "register_mapping",
]
