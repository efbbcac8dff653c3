"""Tests for the in-process subscriber registry."""

from __future__ import annotations

import threading

from care_alerts.infrastructure.notifications import SubscriberRegistry
from tests.factories import make_notification


def test_every_subscriber_receives_each_notification_once(registry) -> None:
    received: dict[str, list] = {"s1": [], "s2": [], "s3": []}
    for name, bucket in received.items():
        registry.subscribe(bucket.append)
    notification = make_notification(1)

    registry.publish(notification)

    for bucket in received.values():
        assert bucket == [notification]


def test_failing_subscriber_does_not_block_others(registry, caplog) -> None:
    delivered: list[str] = []

    def broken(notification) -> None:
        raise RuntimeError("render failed")

    registry.subscribe(broken)
    registry.subscribe(lambda n: delivered.append(f"s2:{n.id}"))
    registry.subscribe(lambda n: delivered.append(f"s3:{n.id}"))

    with caplog.at_level("ERROR"):
        registry.publish(make_notification(1))

    assert delivered == [f"s2:{make_notification(1).id}", f"s3:{make_notification(1).id}"]
    assert "Notification subscriber 0 failed" in caplog.text


def test_subscribers_are_called_in_registration_order(registry) -> None:
    calls: list[int] = []
    for index in range(5):
        registry.subscribe(lambda n, index=index: calls.append(index))

    registry.publish(make_notification(1))

    assert calls == [0, 1, 2, 3, 4]


def test_unsubscribe_removes_only_that_registration(registry) -> None:
    calls: list[str] = []

    def callback(notification) -> None:
        calls.append(notification.id)

    first = registry.subscribe(callback)
    registry.subscribe(callback)
    first()
    first()

    registry.publish(make_notification(1))

    assert calls == [make_notification(1).id]
    assert len(registry) == 1


def test_each_subscriber_gets_its_own_copy(registry) -> None:
    seen = []

    def mutating(notification) -> None:
        notification.read = True
        notification.data["touched"] = True

    registry.subscribe(mutating)
    registry.subscribe(seen.append)
    original = make_notification(1)

    registry.publish(original)

    assert seen[0].read is False
    assert "touched" not in seen[0].data
    assert original.read is False


def test_unsubscribing_during_publish_stops_later_deliveries(registry) -> None:
    calls: list[str] = []
    handles = {}

    def first(notification) -> None:
        calls.append("first")
        handles["second"]()

    registry.subscribe(first)
    handles["second"] = registry.subscribe(lambda n: calls.append("second"))

    registry.publish(make_notification(1))
    registry.publish(make_notification(2))

    assert calls.count("first") == 2
    assert calls.count("second") <= 1


def test_subscribing_during_publish_receives_next_notification(registry) -> None:
    late: list = []

    def joiner(notification) -> None:
        if not late and notification.id == make_notification(1).id:
            registry.subscribe(late.append)

    registry.subscribe(joiner)
    registry.publish(make_notification(1))
    registry.publish(make_notification(2))

    assert [n.id for n in late][-1] == make_notification(2).id
    assert len(registry) == 2


def test_publish_from_subscriber_is_queued(registry) -> None:
    calls: list[tuple[str, str]] = []
    follow_up = make_notification(2)

    def republisher(notification) -> None:
        calls.append(("a", notification.id))
        if notification.id == make_notification(1).id:
            registry.publish(follow_up)

    registry.subscribe(republisher)
    registry.subscribe(lambda n: calls.append(("b", n.id)))

    registry.publish(make_notification(1))

    first, second = make_notification(1).id, follow_up.id
    assert calls == [("a", first), ("b", first), ("a", second), ("b", second)]


def test_concurrent_publishes_do_not_interleave() -> None:
    registry = SubscriberRegistry()
    trace: list[tuple[str, str]] = []
    registry.subscribe(lambda n: trace.append(("a", n.id)))
    registry.subscribe(lambda n: trace.append(("b", n.id)))

    def worker(offset: int) -> None:
        for index in range(50):
            registry.publish(make_notification(offset * 1000 + index))

    threads = [threading.Thread(target=worker, args=(offset,)) for offset in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(trace) == 400
    for position in range(0, len(trace), 2):
        assert trace[position][0] == "a"
        assert trace[position + 1] == ("b", trace[position][1])
