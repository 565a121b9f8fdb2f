"""Event system for claim transitions and uploads.

Transition outcomes, upload completions/failures, and claim create/update
results are published as ClaimEvent records through an EventEmitter. The
presentation layer subscribes to show notifications; tests subscribe to
observe outcomes without reaching into component state.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from claimflow.types import EventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimEvent:
    """A single notification.

    Attributes:
        event_id: Unique event identifier (e.g., "evt_3f2a...")
        type: Event type from EventType enum
        claim_id: Claim this event relates to, None for pre-creation uploads
        ts: UTC timestamp when the event occurred
        payload: Event-specific data (statuses, file id, error details)
    """
    event_id: str
    type: EventType
    claim_id: Optional[str]
    ts: datetime
    payload: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if isinstance(self.type, str):
            object.__setattr__(self, "type", EventType(self.type))

    @classmethod
    def create(
        cls,
        event_type: EventType,
        claim_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> "ClaimEvent":
        """Build an event with a fresh id and the current UTC time."""
        return cls(
            event_id=f"evt_{uuid.uuid4().hex[:16]}",
            type=event_type,
            claim_id=claim_id,
            ts=datetime.now(timezone.utc),
            payload=payload,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        result: Dict[str, Any] = {
            "eventId": self.event_id,
            "type": self.type.value,
            "claimId": self.claim_id,
            "ts": self.ts.isoformat(),
        }
        if self.payload is not None:
            result["payload"] = self.payload
        return result

    def to_jsonl(self) -> str:
        """Single-line JSON representation."""
        return json.dumps(self.to_dict(), separators=(',', ':'))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClaimEvent":
        """Create ClaimEvent from dictionary."""
        return cls(
            event_id=data["eventId"],
            type=EventType(data["type"]),
            claim_id=data.get("claimId"),
            ts=datetime.fromisoformat(data["ts"].replace('Z', '+00:00')),
            payload=data.get("payload"),
        )


EventListener = Callable[[ClaimEvent], None]


class EventEmitter:
    """Dispatches events to type-specific and wildcard listeners.

    Listeners are called synchronously in registration order. A listener
    that raises is logged and skipped; it never affects other listeners or
    the component that emitted the event.

    Examples:
        >>> emitter = EventEmitter()
        >>> seen = []
        >>> emitter.on(EventType.UPLOAD_FAILED, seen.append)
        >>> emitter.emit(ClaimEvent.create(EventType.UPLOAD_FAILED))
        >>> len(seen)
        1
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[EventListener]] = {}
        self._any_listeners: List[EventListener] = []

    def on(self, event_type: EventType, listener: EventListener) -> None:
        """Subscribe to a specific event type."""
        self._listeners.setdefault(event_type, []).append(listener)

    def on_any(self, listener: EventListener) -> None:
        """Subscribe to all event types."""
        self._any_listeners.append(listener)

    def off(self, event_type: EventType, listener: EventListener) -> None:
        """Unsubscribe from a specific event type. Unknown listeners are ignored."""
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def off_any(self, listener: EventListener) -> None:
        if listener in self._any_listeners:
            self._any_listeners.remove(listener)

    def emit(self, event: ClaimEvent) -> None:
        """Dispatch an event to type-specific listeners, then wildcard ones."""
        for listener in list(self._listeners.get(event.type, [])) + list(self._any_listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener failed while handling %s", event.type.value)

    def clear(self) -> None:
        self._listeners.clear()
        self._any_listeners.clear()

    def listener_count(self, event_type: Optional[EventType] = None) -> int:
        """Count listeners for one type, or all listeners including wildcards."""
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return len(self._any_listeners) + sum(len(ls) for ls in self._listeners.values())


__all__ = [
    "ClaimEvent",
    "EventListener",
    "EventEmitter",
]
