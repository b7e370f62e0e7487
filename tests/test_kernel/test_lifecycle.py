"""
Tests for TransitionTable

Every lifecycle entity in the system delegates its legality checks here,
so these tests pin the generic behaviour once.
"""

from enum import Enum

import pytest

from bookbuyback.kernel.errors import InvalidTransition, ValidationError
from bookbuyback.kernel.lifecycle import TransitionTable
from bookbuyback.kernel.metrics import transitions_total


class Light(str, Enum):
    RED = "red"
    GREEN = "green"
    YELLOW = "yellow"
    OFF = "off"


TABLE = TransitionTable(
    "traffic light",
    {
        Light.RED: {Light.GREEN, Light.OFF},
        Light.GREEN: {Light.YELLOW, Light.OFF},
        Light.YELLOW: {Light.RED, Light.OFF},
        Light.OFF: set(),
    },
)


def test_can_transition_follows_edges() -> None:
    """Test edge membership"""
    assert TABLE.can_transition(Light.RED, Light.GREEN)
    assert not TABLE.can_transition(Light.RED, Light.YELLOW)
    assert not TABLE.can_transition(Light.OFF, Light.RED)


def test_targets_and_terminal() -> None:
    """Test one-step targets and terminal detection"""
    assert TABLE.targets(Light.GREEN) == frozenset({Light.YELLOW, Light.OFF})
    assert TABLE.is_terminal(Light.OFF)
    assert not TABLE.is_terminal(Light.RED)


def test_require_rejects_non_edge_with_current_status() -> None:
    """Test the error names the action and the actual current status"""
    with pytest.raises(InvalidTransition) as exc_info:
        TABLE.require(Light.RED, Light.YELLOW, "slow down")

    assert str(exc_info.value) == "Cannot slow down: current status is red"
    assert exc_info.value.entity == "traffic light"
    assert exc_info.value.current_status == "red"


def test_require_one_of_accepts_listed_sources() -> None:
    """Test multi-source actions"""
    TABLE.require_one_of(Light.GREEN, {Light.RED, Light.GREEN}, "inspect")

    with pytest.raises(InvalidTransition, match="Cannot inspect: current status is off"):
        TABLE.require_one_of(Light.OFF, {Light.RED, Light.GREEN}, "inspect")


def test_require_records_metrics() -> None:
    """Test accepted and rejected attempts are counted separately"""
    accepted = transitions_total.labels(entity="traffic light", action="go", status="success")
    rejected = transitions_total.labels(entity="traffic light", action="go", status="rejected")
    accepted_before = accepted._value.get()
    rejected_before = rejected._value.get()

    TABLE.require(Light.RED, Light.GREEN, "go")
    with pytest.raises(InvalidTransition):
        TABLE.require(Light.OFF, Light.GREEN, "go")

    assert accepted._value.get() == accepted_before + 1
    assert rejected._value.get() == rejected_before + 1


def test_unknown_source_is_terminal() -> None:
    """Test a status missing from the table has no outgoing edges"""
    table = TransitionTable("partial", {Light.RED: {Light.GREEN}})

    assert table.is_terminal(Light.GREEN)
    assert not table.can_transition(Light.GREEN, Light.RED)


def test_transition_block_counts_success_only_when_it_completes() -> None:
    """Test a check failing inside the block is counted as rejected"""
    accepted = transitions_total.labels(entity="traffic light", action="repaint", status="success")
    rejected = transitions_total.labels(entity="traffic light", action="repaint", status="rejected")
    accepted_before = accepted._value.get()
    rejected_before = rejected._value.get()

    with pytest.raises(ValidationError, match="Colour is required"):
        with TABLE.transition(Light.RED, Light.GREEN, "repaint"):
            raise ValidationError("Colour is required")

    assert accepted._value.get() == accepted_before
    assert rejected._value.get() == rejected_before + 1

    with TABLE.transition(Light.RED, Light.GREEN, "repaint"):
        pass
    assert accepted._value.get() == accepted_before + 1


def test_transition_block_is_skipped_on_illegal_edge() -> None:
    """Test the block never runs from a status without the edge"""
    ran: list[bool] = []

    with pytest.raises(InvalidTransition):
        with TABLE.transition_from(Light.OFF, {Light.RED}, "inspect"):
            ran.append(True)

    assert ran == []
