"""Observable value slots.

A ``Published`` holds the latest value of one piece of view-model state and
pushes every replacement to its subscribers. New subscribers receive the
current value first, so a consumer that only wants changes passes
``drop_first=True``.
"""

import threading
from typing import Callable, Generic, Optional, TypeVar

from loguru import logger

T = TypeVar("T")


class Subscription:
    """Handle returned by ``Published.subscribe``; cancel to stop deliveries."""

    def __init__(self, publisher: "Published", callback: Callable):
        self._publisher = publisher
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self._publisher._remove(self)


class Published(Generic[T]):
    """A value slot that notifies subscribers whenever it is replaced."""

    def __init__(self, initial: T, name: Optional[str] = None):
        self._value = initial
        self.name = name or "value"
        self._subscriptions: list[Subscription] = []
        self._lock = threading.RLock()

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        """Replace the value and notify subscribers in subscription order."""
        self.assign(value)
        self.notify()

    def assign(self, value: T) -> None:
        """Replace the value without notifying subscribers.

        Used to update several slots together before any subscriber runs;
        follow with ``notify()``.
        """
        with self._lock:
            self._value = value

    def notify(self) -> None:
        """Deliver the current value to every subscriber."""
        with self._lock:
            value = self._value
            subscriptions = list(self._subscriptions)

        for subscription in subscriptions:
            if subscription.active:
                self._deliver(subscription, value)

    def subscribe(self, callback: Callable[[T], None], drop_first: bool = False) -> Subscription:
        """Register a callback for value changes.

        Args:
            callback: Called with each new value
            drop_first: Skip the immediate delivery of the current value

        Returns:
            Subscription that stops deliveries when cancelled
        """
        subscription = Subscription(self, callback)
        with self._lock:
            self._subscriptions.append(subscription)
            current = self._value

        if not drop_first:
            self._deliver(subscription, current)
        return subscription

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _deliver(self, subscription: Subscription, value: T) -> None:
        try:
            subscription.callback(value)
        except Exception as e:
            logger.warning(f"Subscriber of '{self.name}' raised: {e}")
