"""
Kernel - shared infrastructure for every bounded context

Event bus, domain events, lifecycle transition tables, typed errors,
time/id providers, configuration, logging and metrics.
"""

from bookbuyback.kernel.bus import EventBus, PublishReport, Subscription
from bookbuyback.kernel.errors import (
    AuthorizationDenied,
    BuybackError,
    DomainError,
    EventCycleDetected,
    InvalidTransition,
    InvariantViolation,
    NotFoundError,
    ValidationError,
)
from bookbuyback.kernel.event_log import EventLog
from bookbuyback.kernel.events import DomainEvent, create_event
from bookbuyback.kernel.ids import generate_id
from bookbuyback.kernel.lifecycle import TransitionTable
from bookbuyback.kernel.settings import BuybackPolicy
from bookbuyback.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # Bus & events
    "EventBus",
    "Subscription",
    "PublishReport",
    "EventLog",
    "DomainEvent",
    "create_event",
    # Lifecycle
    "TransitionTable",
    # Config
    "BuybackPolicy",
    # IDs & time
    "generate_id",
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Errors
    "BuybackError",
    "ValidationError",
    "DomainError",
    "InvalidTransition",
    "InvariantViolation",
    "NotFoundError",
    "AuthorizationDenied",
    "EventCycleDetected",
]
