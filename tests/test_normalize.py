"""Tests for turning raw change events into notifications."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from care_alerts.application.use_cases.notifications import normalizer as normalize_module
from care_alerts.application.use_cases.notifications import (
    NotificationIdGenerator,
    accepts,
    has_mapping,
    normalize,
    normalize_row,
    register_mapping,
)
from care_alerts.application.use_cases.notifications.normalizer import NotificationDraft
from care_alerts.domain.entities import (
    ChangeEvent,
    ChangeType,
    NotificationKind,
    NotificationPriority,
)


@pytest.fixture()
def isolated_mappings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(normalize_module, "_MAPPINGS", dict(normalize_module._MAPPINGS))


def test_high_severity_alert_example() -> None:
    notification = normalize_row(
        "alerts", {"woman_name": "Radha Devi", "type": "Bleeding", "severity": "high"}
    )

    assert notification.kind is NotificationKind.ALERT_CREATED
    assert notification.priority is NotificationPriority.HIGH
    assert "High Priority" in notification.title
    assert notification.message == "Radha Devi: Bleeding"
    assert notification.action_path == "/admin/alerts"
    assert notification.read is False


@pytest.mark.parametrize(
    ("severity", "expected_priority"),
    [
        ("medium", NotificationPriority.MEDIUM),
        ("low", NotificationPriority.LOW),
        ("unexpected", NotificationPriority.LOW),
        (None, NotificationPriority.LOW),
    ],
)
def test_alert_priority_follows_severity(severity, expected_priority) -> None:
    notification = normalize_row(
        "alerts", {"woman_name": "Sita", "type": "Fever", "severity": severity}
    )

    assert notification.priority is expected_priority
    assert notification.title == "New Alert"


def test_user_registration_uses_full_name() -> None:
    notification = normalize_row("users", {"id": 42, "full_name": "Meena Kumari"})

    assert notification.kind is NotificationKind.USER_REGISTERED
    assert notification.title == "New User Registered"
    assert notification.message == "Meena Kumari just joined the platform"
    assert notification.priority is NotificationPriority.MEDIUM
    assert notification.subject_id == "42"
    assert notification.subject_name == "Meena Kumari"
    assert notification.action_path == "/admin/app-users"


def test_user_registration_without_name_falls_back() -> None:
    notification = normalize_row("users", {"id": "u-1", "full_name": "  "})

    assert notification.message == "A new user just joined the platform"
    assert notification.subject_name is None


def test_delivery_insert_creates_assignment() -> None:
    notification = normalize_row("deliveries", {"id": "d-9", "woman_name": "Lakshmi"})

    assert notification.kind is NotificationKind.DELIVERY_ASSIGNED
    assert notification.title == "New Delivery Assigned"
    assert notification.message == "Delivery for Lakshmi has been created"
    assert notification.priority is NotificationPriority.MEDIUM
    assert notification.action_path == "/admin/deliveries"


def test_malformed_rows_still_produce_a_notification() -> None:
    notification = normalize(ChangeEvent(table="alerts", row=None))  # type: ignore[arg-type]

    assert notification.kind is NotificationKind.ALERT_CREATED
    assert notification.message == "Unknown patient: Alert"
    assert notification.data == {}


def test_unknown_table_becomes_system_notice() -> None:
    notification = normalize_row("consultations", {"id": 7})

    assert notification.kind is NotificationKind.SYSTEM_ALERT
    assert notification.priority is NotificationPriority.LOW
    assert notification.message == "INSERT on consultations"
    assert notification.action_path is None


def test_updates_without_a_mapping_are_not_accepted() -> None:
    assert not has_mapping("users", ChangeType.UPDATE)
    assert has_mapping("alerts", ChangeType.UPDATE)
    assert not accepts(ChangeEvent(table="users", row={"id": 1}, change_type=ChangeType.UPDATE))
    assert accepts(ChangeEvent(table="consultations", row={"id": 7}))


def test_row_is_kept_as_notification_data() -> None:
    row = {"woman_name": "Radha Devi", "type": "Bleeding", "severity": "high"}

    notification = normalize_row("alerts", row)

    assert notification.data == row
    assert notification.data is not row


def test_ids_are_unique_under_bursts() -> None:
    generator = NotificationIdGenerator(session_token="burst")
    instant = datetime(2024, 1, 1, tzinfo=timezone.utc)
    event = ChangeEvent(table="alerts", row={"woman_name": "A", "type": "B"})

    ids = {normalize(event, id_generator=generator, now=instant).id for _ in range(1000)}

    assert len(ids) == 1000


def test_ids_embed_kind_and_differ_between_generators() -> None:
    first = NotificationIdGenerator(session_token="aaaa").next_id(NotificationKind.STOCK_LOW)
    second = NotificationIdGenerator(session_token="bbbb").next_id(NotificationKind.STOCK_LOW)

    assert first == "stock_low-aaaa-1"
    assert first != second


def test_resolved_alert_update() -> None:
    event = ChangeEvent(
        table="alerts",
        row={"id": 3, "woman_name": "Radha Devi", "type": "Bleeding", "status": "resolved"},
        change_type=ChangeType.UPDATE,
    )

    assert accepts(event)
    notification = normalize(event)
    assert notification.kind is NotificationKind.ALERT_RESOLVED
    assert notification.message == "Radha Devi: Bleeding resolved"
    assert notification.priority is NotificationPriority.LOW


@pytest.mark.parametrize(
    ("row", "old_row", "expected"),
    [
        ({"status": "active"}, None, False),
        ({"status": "resolved"}, {"status": "resolved"}, False),
        ({"status": "Resolved"}, {"status": "active"}, True),
    ],
)
def test_alert_update_filter(row, old_row, expected) -> None:
    event = ChangeEvent(table="alerts", row=row, change_type="UPDATE", old_row=old_row)

    assert accepts(event) is expected


def test_completed_delivery_update() -> None:
    event = ChangeEvent(
        table="deliveries",
        row={"woman_name": "Lakshmi", "status": "delivered"},
        change_type=ChangeType.UPDATE,
    )

    assert accepts(event)
    notification = normalize(event)
    assert notification.kind is NotificationKind.DELIVERY_COMPLETED
    assert notification.message == "Delivery for Lakshmi has been completed"


@pytest.mark.parametrize(
    ("row", "expected"),
    [
        ({"quantity": 3, "threshold": 10}, True),
        ({"quantity": 10, "threshold": 10}, True),
        ({"quantity": 11, "threshold": 10}, False),
        ({"quantity": 3, "threshold": None}, False),
        ({"quantity": "n/a", "threshold": 5}, False),
    ],
)
def test_low_stock_filter(row, expected) -> None:
    assert accepts(ChangeEvent(table="inventory", row=row)) is expected


def test_low_stock_message() -> None:
    notification = normalize_row(
        "inventory",
        {"id": "i-1", "name": "Iron tablets", "quantity": 3, "unit": "strips", "threshold": 10},
        "UPDATE",
    )

    assert notification.kind is NotificationKind.STOCK_LOW
    assert notification.priority is NotificationPriority.HIGH
    assert notification.message == "Iron tablets is running low (3 strips left)"
    assert notification.action_path == "/delivery/inventory"


def test_registered_mapping_handles_new_table(isolated_mappings) -> None:
    @register_mapping("consultations")
    def _consultation(event: ChangeEvent) -> NotificationDraft:
        return NotificationDraft(
            kind=NotificationKind.SYSTEM_ALERT,
            title="Consultation Booked",
            message=f"Consultation for {event.text('woman_name')}",
            priority=NotificationPriority.MEDIUM,
        )

    notification = normalize_row("consultations", {"woman_name": "Radha Devi"})

    assert notification.title == "Consultation Booked"
    assert notification.message == "Consultation for Radha Devi"


def test_failing_mapping_falls_back_to_system_notice(isolated_mappings, caplog) -> None:
    @register_mapping("users")
    def _broken(event: ChangeEvent) -> NotificationDraft:
        raise RuntimeError("boom")

    with caplog.at_level("ERROR"):
        notification = normalize_row("users", {"id": 1})

    assert notification.kind is NotificationKind.SYSTEM_ALERT
    assert "Could not map INSERT event on users" in caplog.text
