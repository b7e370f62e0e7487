"""
Tests for the event log, domain events, ids and policy configuration
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from bookbuyback.kernel.bus import EventBus
from bookbuyback.kernel.errors import (
    AuthorizationDenied,
    InvalidTransition,
    NotFoundError,
    OrderNotFound,
)
from bookbuyback.kernel.event_log import EventLog
from bookbuyback.kernel.events import DomainEvent, create_event
from bookbuyback.kernel.ids import generate_id
from bookbuyback.kernel.settings import BuybackPolicy

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


class SamplePayload(BaseModel):
    order_id: str
    total: Decimal


def make_event(event_type: str, aggregate_id: str = "agg-1") -> DomainEvent:
    return create_event(
        event_type=event_type,
        aggregate_id=aggregate_id,
        aggregate_type="test",
        occurred_at=NOW,
    )


# =============================================================================
# Events and ids
# =============================================================================


def test_create_event_dumps_model_payload_as_json() -> None:
    """Test Decimal payload fields become strings"""
    event = create_event(
        event_type="OrderConfirmed",
        aggregate_id="ord-1",
        aggregate_type="order",
        occurred_at=NOW,
        payload=SamplePayload(order_id="ord-1", total=Decimal("28.20")),
        actor_id="buyer",
    )

    assert event.payload == {"order_id": "ord-1", "total": "28.20"}
    assert event.actor_id == "buyer"
    assert event.event_id


def test_events_are_immutable() -> None:
    """Test a published fact cannot be edited"""
    event = make_event("test.happened")
    with pytest.raises(PydanticValidationError):
        event.event_type = "other"  # type: ignore[misc]


def test_generate_id_prefix_and_uniqueness() -> None:
    """Test ids are prefixed and distinct"""
    ids = {generate_id("ord") for _ in range(100)}

    assert len(ids) == 100
    assert all(i.startswith("ord-") for i in ids)


def test_generate_id_is_time_ordered_uuid7() -> None:
    """Test later ids sort after earlier ones and parse as version 7"""
    earlier = generate_id("lst", timestamp_ms=1_700_000_000_000)
    later = generate_id("lst", timestamp_ms=1_700_000_000_001)

    assert earlier < later
    parsed = uuid.UUID(later.removeprefix("lst-"))
    assert parsed.version == 7
    assert parsed.variant == uuid.RFC_4122


# =============================================================================
# Event log
# =============================================================================


def test_event_log_records_attached_types() -> None:
    """Test the log records only the types it is attached to"""
    bus = EventBus()
    log = EventLog()
    log.attach(bus, ["a.happened", "b.happened"])

    bus.publish(make_event("a.happened", "x"))
    bus.publish(make_event("c.happened", "y"))
    bus.publish(make_event("b.happened", "x"))

    assert len(log) == 2
    assert [e.event_type for e in log.events()] == ["a.happened", "b.happened"]
    assert len(log.events(event_type="b.happened")) == 1
    assert len(log.events(aggregate_id="y")) == 0


def test_event_log_replay_feeds_history_in_order() -> None:
    """Test a late subscriber can be brought up to date"""
    bus = EventBus()
    log = EventLog()
    log.attach(bus, ["a.happened", "b.happened"])
    for aggregate_id in ("1", "2", "3"):
        bus.publish(make_event("a.happened", aggregate_id))
    bus.publish(make_event("b.happened", "4"))

    seen: list[str] = []
    count = log.replay(lambda e: seen.append(e.aggregate_id), ["a.happened"])

    assert count == 3
    assert seen == ["1", "2", "3"]


def test_event_log_detach_stops_recording() -> None:
    """Test detach cancels every subscription"""
    bus = EventBus()
    log = EventLog()
    log.attach(bus, ["a.happened"])
    log.detach()

    bus.publish(make_event("a.happened"))

    assert len(log) == 0
    assert bus.subscriber_count("a.happened") == 0


# =============================================================================
# Policy
# =============================================================================


def test_policy_defaults() -> None:
    """Test the default price book"""
    policy = BuybackPolicy()

    assert policy.appraisal_condition_multipliers["good"] == Decimal("0.6")
    assert policy.listing_markup_by_condition["excellent"] == Decimal("0.60")
    assert policy.listing_hold_minutes == 15
    assert policy.checkout_timeout_minutes == 15
    assert policy.max_publish_depth == 8


def test_policy_from_env_overrides_scalars() -> None:
    """Test BOOKBUYBACK_* variables override scalar fields"""
    policy = BuybackPolicy.from_env(
        {
            "BOOKBUYBACK_LISTING_HOLD_MINUTES": "30",
            "BOOKBUYBACK_STORE_CREDIT_BONUS": "0.2",
            "UNRELATED": "x",
        }
    )

    assert policy.listing_hold_minutes == 30
    assert policy.store_credit_bonus == Decimal("0.2")
    assert policy.checkout_timeout_minutes == 15


def test_policy_from_env_validates() -> None:
    """Test invalid overrides are rejected"""
    with pytest.raises(PydanticValidationError):
        BuybackPolicy.from_env({"BOOKBUYBACK_MAX_PUBLISH_DEPTH": "0"})


# =============================================================================
# Errors
# =============================================================================


def test_error_messages() -> None:
    """Test the typed errors render their standard messages"""
    assert str(InvalidTransition("shipment", "pack", "pending")) == (
        "Cannot pack: current status is pending"
    )
    assert str(OrderNotFound("ord-1")) == "Order ord-1 not found"
    assert isinstance(OrderNotFound("ord-1"), NotFoundError)
    assert str(AuthorizationDenied("u", ["orders:write"])) == (
        'Forbidden: missing permission "orders:write"'
    )
    assert str(AuthorizationDenied("u", ["a:b", "c:d"])) == "Forbidden: insufficient permissions"
