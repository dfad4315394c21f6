"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the JSON file for a real database later
2. Use in-memory storage for testing
3. Keep the history semantics (ordering, degrade-on-failure) in one place

The interface is intentionally simple. A backend only reads and writes
the whole history document; HistoryStore owns everything else.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from kulosplit.models.audit import AuditEvent


class HistoryBackendInterface(ABC):
    """
    Abstract interface for raw history persistence.

    The history is one JSON-serializable document stored under a fixed key.
    It is fully overwritten on every write, never patched.
    """

    @abstractmethod
    def read_document(self) -> Optional[Any]:
        """
        Read the stored document.

        Returns:
            The decoded JSON value, or None if nothing was ever stored

        Raises:
            StorageError: If the document cannot be read or decoded
        """
        pass

    @abstractmethod
    def write_document(self, document: Any) -> None:
        """
        Replace the stored document.

        Args:
            document: A JSON-serializable value

        Raises:
            StorageError: If the write fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptDocumentError(StorageError):
    """Stored document exists but cannot be decoded or migrated."""
    pass


class UnsupportedSchemaError(StorageError):
    """Stored document was written by a newer schema version."""
    pass
