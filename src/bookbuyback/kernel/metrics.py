"""
Prometheus metrics collection for bookbuyback.

Provides observability into event fan-out, lifecycle transitions,
authorization decisions and command latency.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from bookbuyback.kernel.errors import BuybackError

# ============================================================================
# Event Bus Metrics
# ============================================================================

events_published_total = Counter(
    "bookbuyback_events_published_total",
    "Total number of domain events published on the event bus",
    ["event_type"],
)

event_handler_failures_total = Counter(
    "bookbuyback_event_handler_failures_total",
    "Total number of subscriber failures during publish",
    ["event_type"],
)

event_subscribers = Gauge(
    "bookbuyback_event_subscribers",
    "Number of registered subscribers per event type",
    ["event_type"],
)

# ============================================================================
# Lifecycle Metrics
# ============================================================================

transitions_total = Counter(
    "bookbuyback_transitions_total",
    "Total number of lifecycle transitions attempted",
    ["entity", "action", "status"],  # status: success, rejected
)

# ============================================================================
# Authorization Metrics
# ============================================================================

authorization_decisions_total = Counter(
    "bookbuyback_authorization_decisions_total",
    "Total number of authorization decisions",
    ["mode", "decision"],  # decision: allow, deny
)

# ============================================================================
# Command Processing Metrics
# ============================================================================

command_duration_seconds = Histogram(
    "bookbuyback_command_duration_seconds",
    "Duration of service command processing in seconds",
    ["command_type"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

commands_processed_total = Counter(
    "bookbuyback_commands_processed_total",
    "Total number of service commands processed",
    ["command_type", "status"],  # status: success, rejected, failure
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_command_duration(command_type: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Time a service command and count its outcome

    Outcomes are "success", "rejected" (a BuybackError such as an illegal
    transition or a denied permission) and "failure" (anything else).
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "failure"
            try:
                result = func(*args, **kwargs)
                status = "success"
                return result
            except BuybackError:
                status = "rejected"
                raise
            finally:
                command_duration_seconds.labels(command_type=command_type).observe(
                    time.perf_counter() - start
                )
                commands_processed_total.labels(command_type=command_type, status=status).inc()

        return wrapper

    return decorator


def record_transition(entity: str, action: str, success: bool) -> None:
    transitions_total.labels(
        entity=entity,
        action=action,
        status="success" if success else "rejected",
    ).inc()


def start_metrics_server(port: int = 9090) -> None:
    """Serve every bookbuyback metric at http://0.0.0.0:<port>/metrics"""
    start_http_server(port)
