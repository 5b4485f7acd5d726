"""
Change Event definition.
Immutable value object published on the change feed.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
import json


class EventType(str, Enum):
    """Event type enumeration for type safety."""

    # Dining room
    TABLE_SEATED = "TABLE_SEATED"
    TABLE_RELEASED = "TABLE_RELEASED"

    # Order lifecycle
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_LINES_CHANGED = "ORDER_LINES_CHANGED"
    ORDER_SENT_TO_KITCHEN = "ORDER_SENT_TO_KITCHEN"
    ORDER_READY = "ORDER_READY"
    ORDER_SERVED = "ORDER_SERVED"
    ORDER_DELIVERED = "ORDER_DELIVERED"
    ORDER_VALIDATED = "ORDER_VALIDATED"
    ORDER_FINALIZED = "ORDER_FINALIZED"
    ORDER_CANCELED = "ORDER_CANCELED"

    # Inventory
    STOCK_CHANGED = "STOCK_CHANGED"

    # Badge counters changed (pending takeaway, low stock, ...)
    NOTIFICATIONS_CHANGED = "NOTIFICATIONS_CHANGED"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """
    Immutable change notification.

    Attributes:
        event_type: What happened (from EventType)
        entity_type: "order", "table" or "ingredient"
        entity_id: ID of the entity, None for aggregate notifications
        payload: Additional event data
        timestamp: When the event occurred
    """

    event_type: EventType
    entity_type: str
    entity_id: int | None = None
    payload: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "type": self.event_type.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChangeEvent":
        event_type = data.get("type") or data.get("event_type")
        if isinstance(event_type, str):
            event_type = EventType(event_type)

        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        elif timestamp is None:
            timestamp = datetime.now(timezone.utc)

        return cls(
            event_type=event_type,
            entity_type=data["entity_type"],
            entity_id=data.get("entity_id"),
            payload=data.get("payload"),
            timestamp=timestamp,
        )

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeEvent":
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def for_order(
        cls,
        event_type: EventType,
        order_id: int,
        **payload: Any,
    ) -> "ChangeEvent":
        return cls(
            event_type=event_type,
            entity_type="order",
            entity_id=order_id,
            payload=payload or None,
        )
