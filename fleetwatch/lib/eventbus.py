"""In-process event bus used to fan out store updates and fleet snapshots.

A Channel is a typed publisher with a latest-value cache: new subscribers
immediately receive the current value, then every subsequent publish.
Delivery is synchronous, on the publisher's call stack, so state updated
inside a handler is visible as soon as publish() returns.
"""

from collections.abc import Callable
from typing import Self

from fleetwatch.logging import get_logger

logger = get_logger("lib.eventbus")

type Handler[T] = Callable[[T], None]


class Subscription:
    """Handle to a subscription; close() stops further delivery.

    Closing is idempotent and remains safe after the source is gone.
    """

    def __init__(self, cancel: Callable[[], None], name: str = "") -> None:
        self._cancel: Callable[[], None] | None = cancel
        self.name = name

    @property
    def closed(self) -> bool:
        return self._cancel is None

    def close(self) -> None:
        """Stop delivery to this subscription's handler."""
        cancel, self._cancel = self._cancel, None
        if cancel is not None:
            cancel()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<Subscription {self.name or id(self)} {state}>"


class SubscriptionGroup:
    """Owns several subscriptions and closes them together."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def add(self, subscription: Subscription) -> Subscription:
        """Track a subscription; closes it at once if the group is closed."""
        if self._closed:
            subscription.close()
            return subscription
        self._subscriptions = [s for s in self._subscriptions if not s.closed]
        self._subscriptions.append(subscription)
        return subscription

    def close(self) -> None:
        """Close every tracked subscription."""
        self._closed = True
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.close()

    def __len__(self) -> int:
        return sum(1 for s in self._subscriptions if not s.closed)


_MISSING = object()


class Channel[T]:
    """Publisher of values of type T with a latest-value cache."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: dict[int, Handler[T]] = {}
        self._next_id = 0
        self._latest: object = _MISSING

    @property
    def has_value(self) -> bool:
        return self._latest is not _MISSING

    @property
    def latest(self) -> T | None:
        """Most recently published value, or None before the first publish."""
        if self._latest is _MISSING:
            return None
        return self._latest  # type: ignore[return-value]

    def subscribe(self, handler: Handler[T], *, replay: bool = True) -> Subscription:
        """Register a handler; it receives the cached value first if replay."""
        handler_id = self._next_id
        self._next_id += 1
        self._handlers[handler_id] = handler
        logger.debug("Subscribed handler %d to %s", handler_id, self.name)

        subscription = Subscription(
            lambda: self._unsubscribe(handler_id), name=self.name
        )
        if replay and self._latest is not _MISSING:
            self._deliver(handler_id, handler, self._latest)  # type: ignore[arg-type]
        return subscription

    def _unsubscribe(self, handler_id: int) -> None:
        if self._handlers.pop(handler_id, None) is not None:
            logger.debug("Unsubscribed handler %d from %s", handler_id, self.name)

    def publish(self, value: T) -> None:
        """Cache the value and deliver it to every current handler."""
        self._latest = value
        for handler_id, handler in list(self._handlers.items()):
            # A handler may close another subscription mid-delivery
            if handler_id in self._handlers:
                self._deliver(handler_id, handler, value)

    def _deliver(self, handler_id: int, handler: Handler[T], value: T) -> None:
        try:
            handler(value)
        except Exception:
            logger.exception(
                "Handler %d on %s failed", handler_id, self.name
            )

    def clear(self) -> None:
        """Drop every handler and the cached value."""
        self._handlers.clear()
        self._latest = _MISSING

    def __len__(self) -> int:
        return len(self._handlers)
