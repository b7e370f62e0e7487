"""
Structured logging for bookbuyback.

Logs go through structlog. Two things are added to every entry:

- a correlation id, kept in structlog's context variables so it follows a
  command through every subscriber it triggers
- PII redaction: seller and buyer contact details and payment amounts are
  masked before rendering, whatever module logged them

Services wrap their heavier commands in LogOperation, which records the
outcome and duration of the command.
"""

import logging
import sys
import time
import uuid
from typing import Any

import structlog

from bookbuyback.kernel.errors import BuybackError

REDACTED = "***REDACTED***"

# Customer PII and payment data never reach the log verbatim
REDACTED_FIELDS = frozenset(
    {
        "customer_id",
        "email",
        "phone",
        "amount",
        "password",
        "token",
        "secret",
        "api_key",
    }
)


# Correlation ids


def get_correlation_id() -> str:
    """Current correlation id; one is minted and bound if none is set."""
    cid = structlog.contextvars.get_contextvars().get("correlation_id")
    if not cid:
        cid = uuid.uuid4().hex
        set_correlation_id(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


# Redaction


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """
    Mask sensitive keys in a log context.

    Example:
        >>> redact_context({"customer_id": "cust-1", "request_id": "pr-1"})
        {'customer_id': '***REDACTED***', 'request_id': 'pr-1'}
    """
    return {k: REDACTED if k in REDACTED_FIELDS else v for k, v in context.items()}


def _redact_processor(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    return redact_context(event_dict)


def _ensure_correlation_id(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    event_dict.setdefault("correlation_id", get_correlation_id())
    return event_dict


def configure_logging(
    *,
    json_output: bool = False,
    log_level: str = "INFO",
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        json_output: JSON lines (production) instead of console output
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
    """
    level = logging.getLevelName(log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level, force=True)

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _ensure_correlation_id,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _redact_processor,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class LogOperation:
    """
    Time a command and log how it ended.

    A BuybackError is an expected business outcome (an illegal transition,
    a missing entity) and is logged as a warning without a traceback. Any
    other exception is logged as an error with one. Exceptions always
    propagate.

    Example:
        with LogOperation(logger, "checkout_order", order_id=order_id):
            ...
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ) -> None:
        self.logger = logger.bind(operation=operation, **context)
        self.operation = operation
        self._started = 0.0

    def __enter__(self) -> "LogOperation":
        self._started = time.perf_counter()
        self.logger.debug(f"{self.operation} started")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        duration_ms = round((time.perf_counter() - self._started) * 1000, 2)

        if exc_type is None:
            self.logger.info(f"{self.operation} completed", duration_ms=duration_ms)
        elif issubclass(exc_type, BuybackError):
            self.logger.warning(
                f"{self.operation} rejected",
                duration_ms=duration_ms,
                error=str(exc_val),
                error_type=exc_type.__name__,
            )
        else:
            self.logger.error(
                f"{self.operation} failed",
                duration_ms=duration_ms,
                error_type=exc_type.__name__,
                exc_info=(exc_type, exc_val, exc_tb),
            )
