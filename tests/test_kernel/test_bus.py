"""
Tests for the in-process EventBus

Verifies the delivery contract every bounded context relies on:
- Exactly-once delivery per registration, in registration order
- No cross-talk between event types
- A failing subscriber never stops the others or the publisher
- Nested publishing is bounded

Fun fact: The publish/subscribe pattern predates computers - newspaper
subscriptions worked the same way, minus the stack overflow protection.
"""

import threading
from datetime import datetime, timezone

import pytest

from bookbuyback.kernel.bus import EventBus
from bookbuyback.kernel.errors import EventCycleDetected
from bookbuyback.kernel.events import DomainEvent, create_event
from bookbuyback.kernel.metrics import event_handler_failures_total


def make_event(event_type: str = "test.happened", aggregate_id: str = "agg-1") -> DomainEvent:
    return create_event(
        event_type=event_type,
        aggregate_id=aggregate_id,
        aggregate_type="test",
        occurred_at=datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc),
        payload={"value": 1},
    )


# =============================================================================
# Delivery
# =============================================================================


def test_publish_delivers_once_to_each_subscriber(bus: EventBus) -> None:
    """Test each registration receives the event exactly once"""
    first: list[DomainEvent] = []
    second: list[DomainEvent] = []
    bus.subscribe("test.happened", first.append)
    bus.subscribe("test.happened", second.append)

    event = make_event()
    report = bus.publish(event)

    assert first == [event]
    assert second == [event]
    assert report.delivered == 2
    assert report.ok


def test_publish_never_delivers_other_event_types(bus: EventBus) -> None:
    """Test a subscriber only sees its own event type"""
    received: list[DomainEvent] = []
    bus.subscribe("test.other", received.append)

    bus.publish(make_event("test.happened"))

    assert received == []


def test_subscribers_run_in_registration_order(bus: EventBus) -> None:
    """Test delivery follows registration order"""
    calls: list[str] = []
    bus.subscribe("test.happened", lambda e: calls.append("a"))
    bus.subscribe("test.happened", lambda e: calls.append("b"))
    bus.subscribe("test.happened", lambda e: calls.append("c"))

    bus.publish(make_event())

    assert calls == ["a", "b", "c"]


def test_duplicate_registration_is_invoked_twice(bus: EventBus) -> None:
    """Test the same handler registered twice runs twice"""
    received: list[DomainEvent] = []
    bus.subscribe("test.happened", received.append)
    bus.subscribe("test.happened", received.append)

    bus.publish(make_event())

    assert len(received) == 2


def test_publish_without_subscribers_is_noop(bus: EventBus) -> None:
    """Test publishing an unsubscribed type succeeds with nothing delivered"""
    report = bus.publish(make_event("nobody.listens"))

    assert report.delivered == 0
    assert report.ok


def test_past_events_are_not_replayed_to_new_subscribers(bus: EventBus) -> None:
    """Test late subscribers only see future events"""
    bus.publish(make_event())
    received: list[DomainEvent] = []
    bus.subscribe("test.happened", received.append)

    assert received == []


def test_publish_all_preserves_order(bus: EventBus) -> None:
    """Test publish_all delivers each event in list order"""
    received: list[str] = []
    bus.subscribe("test.happened", lambda e: received.append(e.aggregate_id))

    reports = bus.publish_all([make_event(aggregate_id="x"), make_event(aggregate_id="y")])

    assert received == ["x", "y"]
    assert len(reports) == 2


# =============================================================================
# Failure isolation
# =============================================================================


def test_failing_subscriber_does_not_block_others(bus: EventBus) -> None:
    """Test a raising handler is reported and later handlers still run"""

    def broken(event: DomainEvent) -> None:
        raise RuntimeError("boom")

    received: list[DomainEvent] = []
    bus.subscribe("test.happened", broken)
    bus.subscribe("test.happened", received.append)

    report = bus.publish(make_event())

    assert len(received) == 1
    assert report.delivered == 1
    assert not report.ok
    assert len(report.failures) == 1
    assert isinstance(report.failures[0].error, RuntimeError)
    assert "broken" in report.failures[0].handler_name


def test_failing_subscriber_is_counted(bus: EventBus) -> None:
    """Test handler failures increment the failure counter"""
    counter = event_handler_failures_total.labels(event_type="test.counted")
    before = counter._value.get()

    def broken(event: DomainEvent) -> None:
        raise ValueError("nope")

    bus.subscribe("test.counted", broken)
    bus.publish(make_event("test.counted"))

    assert counter._value.get() == before + 1


# =============================================================================
# Subscription management
# =============================================================================


def test_cancel_stops_delivery(bus: EventBus) -> None:
    """Test a cancelled subscription receives nothing further"""
    received: list[DomainEvent] = []
    subscription = bus.subscribe("test.happened", received.append)

    assert subscription.cancel() is True
    bus.publish(make_event())

    assert received == []
    assert bus.subscriber_count("test.happened") == 0


def test_cancel_twice_returns_false(bus: EventBus) -> None:
    """Test unsubscribing an inactive registration reports False"""
    subscription = bus.subscribe("test.happened", lambda e: None)
    subscription.cancel()

    assert bus.unsubscribe(subscription) is False


def test_cancel_removes_only_that_registration(bus: EventBus) -> None:
    """Test duplicate registrations are cancelled independently"""
    received: list[DomainEvent] = []
    first = bus.subscribe("test.happened", received.append)
    bus.subscribe("test.happened", received.append)

    first.cancel()
    bus.publish(make_event())

    assert len(received) == 1


def test_subscribe_during_publish_affects_only_later_publishes(bus: EventBus) -> None:
    """Test the subscriber list is snapshotted per publish"""
    late: list[DomainEvent] = []

    def registers_another(event: DomainEvent) -> None:
        bus.subscribe("test.happened", late.append)

    bus.subscribe("test.happened", registers_another)

    bus.publish(make_event())
    assert late == []

    bus.publish(make_event())
    assert len(late) == 1


def test_subscribe_and_publish_from_different_threads(bus: EventBus) -> None:
    """Test concurrent registration never breaks a publish in flight"""
    subscriber_count = 200
    publish_count = 200
    received: list[list[DomainEvent]] = [[] for _ in range(subscriber_count)]
    reports = []
    errors: list[Exception] = []
    start = threading.Barrier(2)

    def subscriber() -> None:
        start.wait()
        for index in range(subscriber_count):
            bus.subscribe("test.happened", received[index].append)

    def publisher() -> None:
        start.wait()
        try:
            for _ in range(publish_count):
                reports.append(bus.publish(make_event()))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=subscriber), threading.Thread(target=publisher)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert errors == []
    assert len(reports) == publish_count
    assert all(report.ok and report.failures == [] for report in reports)
    counts = [len(events) for events in received]
    assert sum(counts) == sum(report.delivered for report in reports)
    # Every publish sees a prefix of the registrations made so far
    assert counts == sorted(counts, reverse=True)

    final = bus.publish(make_event())
    assert final.delivered == subscriber_count
    assert bus.subscriber_count("test.happened") == subscriber_count


def test_get_event_types_and_clear(bus: EventBus) -> None:
    """Test introspection and teardown"""
    bus.subscribe("a.happened", lambda e: None)
    bus.subscribe("b.happened", lambda e: None)

    assert set(bus.get_event_types()) == {"a.happened", "b.happened"}

    bus.clear()

    assert bus.get_event_types() == []
    assert bus.subscriber_count("a.happened") == 0


# =============================================================================
# Nested publishing
# =============================================================================


def test_nested_publish_of_other_type_is_delivered(bus: EventBus) -> None:
    """Test a subscriber may publish a follow-up event"""
    received: list[DomainEvent] = []
    bus.subscribe("test.happened", lambda e: bus.publish(make_event("test.followup")))
    bus.subscribe("test.followup", received.append)

    report = bus.publish(make_event())

    assert report.ok
    assert len(received) == 1


def test_self_republishing_subscriber_is_bounded() -> None:
    """Test a publish cycle stops at the depth limit instead of recursing forever"""
    bus = EventBus(max_publish_depth=3)
    calls: list[int] = []
    reports = []

    def echo(event: DomainEvent) -> None:
        calls.append(1)
        reports.append(bus.publish(event))

    bus.subscribe("test.happened", echo)

    top = bus.publish(make_event())

    assert len(calls) == 3
    # The innermost echo raised; its caller's publish captured the cycle
    assert any(
        isinstance(f.error, EventCycleDetected) for report in reports for f in report.failures
    )
    assert top.ok


def test_depth_resets_after_publish(bus: EventBus) -> None:
    """Test the nesting counter unwinds even when handlers fail"""

    def broken(event: DomainEvent) -> None:
        raise RuntimeError("boom")

    bus.subscribe("test.happened", broken)
    for _ in range(bus.max_publish_depth + 2):
        bus.publish(make_event())

    received: list[DomainEvent] = []
    bus.subscribe("test.other", received.append)
    bus.publish(make_event("test.other"))
    assert len(received) == 1


def test_cycle_error_names_event_type() -> None:
    """Test the cycle error message identifies the event type"""
    error = EventCycleDetected("test.happened", 3)

    assert "test.happened" in str(error)
    assert error.depth == 3


@pytest.mark.parametrize("depth", [1, 2, 5])
def test_depth_limit_is_configurable(depth: int) -> None:
    """Test the number of nested deliveries equals the configured depth"""
    bus = EventBus(max_publish_depth=depth)
    calls: list[int] = []

    def echo(event: DomainEvent) -> None:
        calls.append(1)
        bus.publish(event)

    bus.subscribe("test.happened", echo)
    bus.publish(make_event())

    assert len(calls) == depth
