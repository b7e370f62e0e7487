"""
Base DomainEvent model

Events are immutable facts about a transition that has already been
persisted. Services create them after a successful save and hand them to
the EventBus; once published they are never retracted.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from bookbuyback.kernel.ids import generate_id


class DomainEvent(BaseModel):
    """
    Base event class - every published fact is one of these

    `event_type` is the stable tag subscribers route on (for example
    "appraisal.completed" or "ShipmentDispatched"). `payload` is a flat,
    JSON-serializable record whose shape is fixed per event type.
    """

    event_id: str = Field(
        ...,
        description="Unique event identifier (UUIDv7 for time-ordering)",
    )

    event_type: str = Field(
        ...,
        min_length=1,
        description="Stable tag unique per event kind",
    )

    aggregate_id: str = Field(
        ...,
        description="Identifier of the entity whose transition produced the event",
    )

    aggregate_type: str = Field(
        ...,
        description="Kind of entity: 'appraisal', 'shipment', 'role', ...",
    )

    occurred_at: datetime = Field(
        ...,
        description="UTC timestamp when the transition was persisted",
    )

    actor_id: str | None = Field(
        default=None,
        description="Principal who issued the command (None for system events)",
    )

    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Event-specific data (must be JSON-serializable)",
    )

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "event_id": "01908e9a-3b87-7000-8000-123456789abc",
                    "event_type": "appraisal.completed",
                    "aggregate_id": "appr-01908e9a-3b87-7000-8000-123456789abc",
                    "aggregate_type": "appraisal",
                    "occurred_at": "2025-01-15T10:30:00Z",
                    "actor_id": "user-appraiser-1",
                    "payload": {
                        "appraisal_id": "appr-01908e9a-3b87-7000-8000-123456789abc",
                        "purchase_request_id": "pr-1",
                        "total_offer": "6.00",
                        "book_count": 1,
                    },
                }
            ]
        },
    }


def create_event(
    *,
    event_type: str,
    aggregate_id: str,
    aggregate_type: str,
    occurred_at: datetime,
    payload: BaseModel | dict[str, Any] | None = None,
    actor_id: str | None = None,
    event_id: str | None = None,
) -> DomainEvent:
    """
    Factory for events

    A pydantic payload model is dumped in JSON mode so Decimals and
    datetimes become strings and the payload stays serializable.
    """
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    return DomainEvent(
        event_id=event_id or generate_id(),
        event_type=event_type,
        aggregate_id=aggregate_id,
        aggregate_type=aggregate_type,
        occurred_at=occurred_at,
        actor_id=actor_id,
        payload=payload or {},
    )
