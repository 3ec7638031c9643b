"""
In-Memory Audit Storage

Keeps the audit trail for the lifetime of the process. Bounded, so a
long-running client does not grow without limit; the oldest events
are dropped first.
"""

from collections import deque
from uuid import UUID

from expense_tracker.models.audit import AuditEvent
from expense_tracker.services.storage.interface import AuditStorageInterface


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only, bounded audit log held in memory."""

    def __init__(self, max_events: int = 1000):
        self._events: deque[AuditEvent] = deque(maxlen=max_events)

    def __len__(self) -> int:
        return len(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        if limit <= 0:
            return []
        events = list(self._events)[-limit:]
        events.reverse()
        return events
