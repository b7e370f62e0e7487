"""
Lifecycle transition tables

Each lifecycle entity declares the edges of its status graph once, as a
TransitionTable, and every named transition method asks the table before
building the new state. There is no generic "set status" operation.
"""

from contextlib import contextmanager
from enum import Enum
from typing import ContextManager, Generic, Iterator, Mapping, TypeVar

from bookbuyback.kernel.errors import BuybackError, InvalidTransition
from bookbuyback.kernel.metrics import record_transition

S = TypeVar("S", bound=Enum)


class TransitionTable(Generic[S]):
    """
    Finite state machine edges for one entity type

    Example:
        >>> table = TransitionTable("shipment", {
        ...     ShipmentStatus.PENDING: {ShipmentStatus.PICKING},
        ...     ShipmentStatus.PICKING: {ShipmentStatus.PACKED},
        ... })
        >>> table.require(ShipmentStatus.PENDING, ShipmentStatus.PICKING, "start picking")
    """

    def __init__(self, entity: str, edges: Mapping[S, set[S] | frozenset[S]]) -> None:
        self.entity = entity
        self._edges: dict[S, frozenset[S]] = {
            source: frozenset(targets) for source, targets in edges.items()
        }

    def can_transition(self, current: S, target: S) -> bool:
        """True if `current -> target` is an edge of the table"""
        return target in self._edges.get(current, frozenset())

    def targets(self, current: S) -> frozenset[S]:
        """Statuses reachable in one step from `current`"""
        return self._edges.get(current, frozenset())

    def is_terminal(self, status: S) -> bool:
        """True if no transition leaves `status`"""
        return not self._edges.get(status)

    def require(self, current: S, target: S, action: str) -> None:
        """
        Validate one transition that needs no further checks

        Args:
            current: Status the entity is in now
            target: Status the transition would move it to
            action: Human name of the transition, used in the error message

        Raises:
            InvalidTransition: If the edge does not exist
        """
        with self.transition(current, target, action):
            pass

    def require_one_of(self, current: S, allowed: set[S], action: str) -> None:
        """
        Validate an action that keeps or changes status from a set of sources

        Used by operations such as "add book" that are legal in several
        statuses without always moving along an edge.
        """
        with self.transition_from(current, allowed, action):
            pass

    def transition(self, current: S, target: S, action: str) -> ContextManager[None]:
        """
        Validate a transition whose method has checks of its own

        The attempt is counted as accepted only when the block finishes;
        a BuybackError raised inside it counts as rejected.

        Example:
            >>> with SHIPMENT_TRANSITIONS.transition(self.status, DISPATCHED, "dispatch"):
            ...     if not tracking_number:
            ...         raise ValidationError("Tracking number is required")
            ...     return self.model_copy(...)
        """
        return self._attempt(current, self.can_transition(current, target), action)

    def transition_from(self, current: S, allowed: set[S], action: str) -> ContextManager[None]:
        """Like `transition`, for actions legal from any status in `allowed`"""
        return self._attempt(current, current in allowed, action)

    @contextmanager
    def _attempt(self, current: S, legal: bool, action: str) -> Iterator[None]:
        if not legal:
            record_transition(self.entity, action, success=False)
            raise InvalidTransition(self.entity, action, current.value)
        try:
            yield
        except BuybackError:
            record_transition(self.entity, action, success=False)
            raise
        record_transition(self.entity, action, success=True)
