# mediavault/journal.py
"""
Append-only journal of committed registry calls.

Each successful mutation produces one RegistryEvent. Refused calls leave
no trace here.

Event types:
- ContentRegistered: new record, data holds the submitted metadata
- ContentModified: metadata replaced
- OwnershipTransferred: data holds previous and new owner
- ContentDeleted: record removed
- PermissionSet: data holds principal and allowed flag
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

CONTENT_REGISTERED = "ContentRegistered"
CONTENT_MODIFIED = "ContentModified"
OWNERSHIP_TRANSFERRED = "OwnershipTransferred"
CONTENT_DELETED = "ContentDeleted"
PERMISSION_SET = "PermissionSet"


@dataclass
class RegistryEvent:
    """
    A committed registry call.

    Attributes:
        sequence: Position in the journal, starting at 1
        event_type: One of the event type constants above
        content_id: Record the call acted on
        actor: Principal that made the call
        height: Logical clock height at commit
        data: Event-specific payload
    """
    sequence: int
    event_type: str
    content_id: int
    actor: str
    height: int
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "event_type": self.event_type,
            "content_id": self.content_id,
            "actor": self.actor,
            "height": self.height,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistryEvent":
        return cls(
            sequence=data["sequence"],
            event_type=data["event_type"],
            content_id=data["content_id"],
            actor=data["actor"],
            height=data["height"],
            data=data.get("data", {}),
        )


class EventLog:
    """In-memory event journal, serialized alongside the registry snapshot."""

    def __init__(self, events: Optional[List[RegistryEvent]] = None):
        self._events: List[RegistryEvent] = list(events or [])

    def append(
        self,
        event_type: str,
        content_id: int,
        actor: str,
        height: int,
        data: Dict[str, Any] = None,
    ) -> RegistryEvent:
        event = RegistryEvent(
            sequence=len(self._events) + 1,
            event_type=event_type,
            content_id=content_id,
            actor=actor,
            height=height,
            data=data or {},
        )
        self._events.append(event)
        return event

    def list(self) -> List[RegistryEvent]:
        return list(self._events)

    def find_by_content(self, content_id: int) -> List[RegistryEvent]:
        return [e for e in self._events if e.content_id == content_id]

    def find_by_actor(self, actor: str) -> List[RegistryEvent]:
        return [e for e in self._events if e.actor == actor]

    def to_list(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._events]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]]) -> "EventLog":
        return cls([RegistryEvent.from_dict(d) for d in data])

    def __len__(self) -> int:
        return len(self._events)
