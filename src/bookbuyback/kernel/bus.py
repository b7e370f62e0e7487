"""
In-process Event Bus

Synchronous publish/subscribe for domain events. Producers (the domain
services) publish after persistence succeeds; consumers (other bounded
contexts, the audit log, read models) subscribe by event type.

The bus is an ordinary object: construct one per process (or per test)
and pass it to whoever needs it. There is no module-level instance.

Failure policy: a subscriber that raises is logged, counted and reported
in the returned PublishReport, and the remaining subscribers still run.
The publishing service's entity transition is already persisted at this
point and is never rolled back (best-effort, at-least-once fan-out).
"""

import itertools
import threading
from collections import defaultdict
from typing import Callable

from bookbuyback.kernel.errors import EventCycleDetected
from bookbuyback.kernel.events import DomainEvent
from bookbuyback.kernel.logging import get_logger
from bookbuyback.kernel.metrics import (
    event_handler_failures_total,
    event_subscribers,
    events_published_total,
)

logger = get_logger(__name__)


EventHandler = Callable[[DomainEvent], None]

DEFAULT_MAX_PUBLISH_DEPTH = 8


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class Subscription:
    """
    Registration token returned by EventBus.subscribe

    Holding the token is the only way to remove that particular
    registration, which keeps duplicate subscriptions of the same
    handler independent of each other.
    """

    def __init__(
        self,
        bus: "EventBus",
        subscription_id: int,
        event_type: str,
        handler: EventHandler,
    ) -> None:
        self._bus = bus
        self.subscription_id = subscription_id
        self.event_type = event_type
        self.handler = handler

    def cancel(self) -> bool:
        """Unsubscribe; returns False if already cancelled"""
        return self._bus.unsubscribe(self)

    def __repr__(self) -> str:
        return (
            f"Subscription(id={self.subscription_id}, event_type={self.event_type!r}, "
            f"handler={_handler_name(self.handler)})"
        )


class HandlerFailure:
    """One subscriber error captured during publish"""

    def __init__(self, subscription: Subscription, error: Exception) -> None:
        self.subscription = subscription
        self.error = error

    @property
    def handler_name(self) -> str:
        return _handler_name(self.subscription.handler)

    def __repr__(self) -> str:
        return f"HandlerFailure(handler={self.handler_name}, error={self.error!r})"


class PublishReport:
    """Outcome of one publish call"""

    def __init__(self, event: DomainEvent) -> None:
        self.event = event
        self.delivered = 0
        self.failures: list[HandlerFailure] = []

    @property
    def ok(self) -> bool:
        """True when every subscriber ran without raising"""
        return not self.failures

    def __repr__(self) -> str:
        return (
            f"PublishReport(event_type={self.event.event_type!r}, "
            f"delivered={self.delivered}, failures={len(self.failures)})"
        )


class EventBus:
    """
    Synchronous in-process event bus

    Subscribers run on the publishing thread, in registration order. The
    subscriber list is guarded by a lock and each publish iterates over a
    snapshot, so subscribing or unsubscribing while a publish is in flight
    only affects later publishes.
    """

    def __init__(self, max_publish_depth: int = DEFAULT_MAX_PUBLISH_DEPTH) -> None:
        """
        Args:
            max_publish_depth: How deeply publish calls may nest when
                subscribers publish further events
        """
        self._handlers: defaultdict[str, list[Subscription]] = defaultdict(list)
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._local = threading.local()
        self.max_publish_depth = max_publish_depth
        logger.debug("EventBus initialized", max_publish_depth=max_publish_depth)

    def subscribe(self, event_type: str, handler: EventHandler) -> Subscription:
        """
        Register a handler for every future event of `event_type`

        The same handler may be registered more than once and will then be
        invoked once per registration. Past events are not replayed.

        Returns:
            Subscription token usable to unsubscribe
        """
        with self._lock:
            subscription = Subscription(self, next(self._ids), event_type, handler)
            self._handlers[event_type].append(subscription)
            count = len(self._handlers[event_type])
        event_subscribers.labels(event_type=event_type).set(count)
        logger.debug(
            "Event handler subscribed",
            event_type=event_type,
            handler=_handler_name(handler),
            total_handlers=count,
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """
        Remove one registration

        Returns:
            True if the registration was removed, False if it was not active
        """
        with self._lock:
            handlers = self._handlers.get(subscription.event_type, [])
            if subscription not in handlers:
                return False
            handlers.remove(subscription)
            count = len(handlers)
            if not handlers:
                del self._handlers[subscription.event_type]
        event_subscribers.labels(event_type=subscription.event_type).set(count)
        logger.debug(
            "Event handler unsubscribed",
            event_type=subscription.event_type,
            handler=_handler_name(subscription.handler),
        )
        return True

    def publish(self, event: DomainEvent) -> PublishReport:
        """
        Deliver `event` to every handler currently subscribed to its type

        Raises:
            EventCycleDetected: If this call is nested deeper than
                max_publish_depth inside other publishes on this thread
        """
        depth = getattr(self._local, "depth", 0)
        if depth >= self.max_publish_depth:
            logger.error(
                "Nested publish depth exceeded",
                event_type=event.event_type,
                event_id=event.event_id,
                depth=depth,
            )
            raise EventCycleDetected(event.event_type, self.max_publish_depth)

        with self._lock:
            handlers = list(self._handlers.get(event.event_type, []))

        report = PublishReport(event)
        events_published_total.labels(event_type=event.event_type).inc()

        if not handlers:
            logger.debug(
                "No handlers registered for event type",
                event_type=event.event_type,
                event_id=event.event_id,
            )
            return report

        logger.debug(
            "Publishing event",
            event_type=event.event_type,
            event_id=event.event_id,
            aggregate_id=event.aggregate_id,
            handler_count=len(handlers),
        )

        self._local.depth = depth + 1
        try:
            for subscription in handlers:
                try:
                    subscription.handler(event)
                    report.delivered += 1
                except Exception as e:
                    report.failures.append(HandlerFailure(subscription, e))
                    event_handler_failures_total.labels(event_type=event.event_type).inc()
                    logger.error(
                        "Event handler failed",
                        event_type=event.event_type,
                        event_id=event.event_id,
                        aggregate_id=event.aggregate_id,
                        handler=_handler_name(subscription.handler),
                        error=str(e),
                        exc_info=True,
                    )
        finally:
            self._local.depth = depth

        return report

    def publish_all(self, events: list[DomainEvent]) -> list[PublishReport]:
        """Publish several events in order"""
        return [self.publish(event) for event in events]

    def subscriber_count(self, event_type: str) -> int:
        """Number of active registrations for `event_type`"""
        with self._lock:
            return len(self._handlers.get(event_type, []))

    def get_event_types(self) -> list[str]:
        """Event types with at least one subscriber"""
        with self._lock:
            return list(self._handlers.keys())

    def clear(self) -> None:
        """Remove all registrations (teardown)"""
        with self._lock:
            event_types = list(self._handlers.keys())
            self._handlers.clear()
        for event_type in event_types:
            event_subscribers.labels(event_type=event_type).set(0)
        logger.debug("EventBus cleared", event_types_removed=len(event_types))
