"""
In-memory event log

An append-only record of every event published on a bus. It is the audit
trail of the process and lets a late subscriber (a new read model, a
test) be brought up to date by replaying history into it.
"""

from typing import Callable, Iterable

from bookbuyback.kernel.bus import EventBus, Subscription
from bookbuyback.kernel.events import DomainEvent
from bookbuyback.kernel.logging import get_logger

logger = get_logger(__name__)


class EventLog:
    """
    Append-only list of published events

    Attach it to a bus for the event types it should record; it never
    mutates events and never removes them.
    """

    def __init__(self) -> None:
        self._events: list[DomainEvent] = []
        self._subscriptions: list[Subscription] = []

    def attach(self, bus: EventBus, event_types: Iterable[str]) -> None:
        """Subscribe `record` to each event type"""
        for event_type in event_types:
            self._subscriptions.append(bus.subscribe(event_type, self.record))

    def detach(self) -> None:
        """Cancel every subscription made by attach"""
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()

    def record(self, event: DomainEvent) -> None:
        self._events.append(event)

    def events(
        self,
        event_type: str | None = None,
        aggregate_id: str | None = None,
    ) -> list[DomainEvent]:
        """Recorded events, optionally filtered, in publish order"""
        return [
            e
            for e in self._events
            if (event_type is None or e.event_type == event_type)
            and (aggregate_id is None or e.aggregate_id == aggregate_id)
        ]

    def replay(
        self,
        handler: Callable[[DomainEvent], None],
        event_types: Iterable[str] | None = None,
    ) -> int:
        """
        Feed recorded events to `handler` in their original order

        Returns:
            Number of events replayed
        """
        wanted = set(event_types) if event_types is not None else None
        count = 0
        for event in list(self._events):
            if wanted is None or event.event_type in wanted:
                handler(event)
                count += 1
        logger.debug("Event log replayed", events_replayed=count)
        return count

    def __len__(self) -> int:
        return len(self._events)
