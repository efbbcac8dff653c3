"""In-process fan-out of notifications to registered callbacks."""

from __future__ import annotations

import copy
import logging
import threading
from collections import deque
from typing import Callable

from care_alerts.domain.entities import Notification

logger = logging.getLogger(__name__)

Subscriber = Callable[[Notification], object]
Unsubscribe = Callable[[], None]


class _Subscription:
    __slots__ = ("callback", "active")

    def __init__(self, callback: Subscriber) -> None:
        self.callback = callback
        self.active = True


class SubscriberRegistry:
    """Deliver every published notification to all current subscribers.

    Subscribers are called synchronously in registration order, each with its
    own copy of the notification. A failing subscriber is logged and skipped.
    Publishes are serialized: a publish issued from inside a subscriber is
    queued and delivered once the current one has reached every subscriber.
    """

    def __init__(self) -> None:
        self._subscriptions: tuple[_Subscription, ...] = ()
        self._lock = threading.RLock()
        self._pending: deque[Notification] = deque()
        self._draining = False

    def __len__(self) -> int:
        return sum(1 for subscription in self._subscriptions if subscription.active)

    def subscribe(self, callback: Subscriber) -> Unsubscribe:
        """Register ``callback`` and return a handle that removes it again."""

        subscription = _Subscription(callback)
        with self._lock:
            self._subscriptions = self._subscriptions + (subscription,)

        def unsubscribe() -> None:
            self._remove(subscription)

        return unsubscribe

    def _remove(self, subscription: _Subscription) -> None:
        with self._lock:
            subscription.active = False
            self._subscriptions = tuple(
                current for current in self._subscriptions if current is not subscription
            )

    def publish(self, notification: Notification) -> None:
        with self._lock:
            self._pending.append(notification)
            if self._draining:
                return
            self._draining = True
            try:
                while self._pending:
                    self._deliver(self._pending.popleft())
            finally:
                self._draining = False

    def _deliver(self, notification: Notification) -> None:
        # copy-on-iterate: (un)subscribing from a callback does not disturb this loop
        for index, subscription in enumerate(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription.callback(copy.deepcopy(notification))
            except Exception:
                logger.exception(
                    "Notification subscriber %d failed while handling %s",
                    index,
                    notification.id,
                )


__all__ = ["Subscriber", "SubscriberRegistry", "Unsubscribe"]
