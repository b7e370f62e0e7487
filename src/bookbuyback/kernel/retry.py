"""
Retries for flaky collaborators

The carrier label API and the ISBN catalogue sit outside the process and
occasionally time out. Service methods that call them are wrapped in
`retry_on_transient_error`; entity methods and the event bus never retry.
"""

from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from bookbuyback.kernel.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class TransientCollaboratorError(Exception):
    """An adapter call failed in a way that may succeed if repeated"""


TRANSIENT_ERRORS = (TransientCollaboratorError, ConnectionError, TimeoutError)


def _log_retry(state: RetryCallState) -> None:
    error = state.outcome.exception() if state.outcome else None
    logger.warning(
        "Collaborator call failed, retrying",
        call=getattr(state.fn, "__qualname__", None),
        attempt=state.attempt_number,
        error=str(error),
    )


def retry_on_transient_error(
    max_attempts: int = 3,
    min_wait_ms: int = 100,
    max_wait_ms: int = 1000,
    exceptions: tuple[type[Exception], ...] = TRANSIENT_ERRORS,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Exponential backoff between attempts; the last error is re-raised
    unchanged once `max_attempts` is used up.

    Example:
        @retry_on_transient_error(max_attempts=5)
        def _generate_label(self, request):
            return self.carrier.generate_label(...)
    """
    return retry(
        retry=retry_if_exception_type(exceptions),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(min=min_wait_ms / 1000, max=max_wait_ms / 1000),
        before_sleep=_log_retry,
        reraise=True,
    )
