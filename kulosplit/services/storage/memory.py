"""
In-Memory Storage Implementations

Used by tests and by sessions that should not touch the disk.
Documents are round-tripped through JSON so they behave exactly like
the file backend (no shared mutable objects, same serialization rules).
"""

import json
from collections import deque
from typing import Any, Optional

from kulosplit.models.audit import AuditEvent
from kulosplit.services.storage.interface import (
    AuditStorageInterface,
    HistoryBackendInterface,
    StorageError,
)


class InMemoryHistoryBackend(HistoryBackendInterface):
    """History backend that keeps the serialized document in memory."""

    def __init__(self, initial_document: Optional[Any] = None):
        self._text: Optional[str] = None
        if initial_document is not None:
            self._text = json.dumps(initial_document)

    def read_document(self) -> Optional[Any]:
        if self._text is None:
            return None
        return json.loads(self._text)

    def write_document(self, document: Any) -> None:
        try:
            self._text = json.dumps(document)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Document is not JSON-serializable: {e}") from e


class InMemoryAuditStorage(AuditStorageInterface):
    """Bounded, append-only audit trail kept in memory."""

    def __init__(self, max_events: int = 1000):
        self._events: deque[AuditEvent] = deque(maxlen=max_events)

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
