"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Currently implements a JSON file as the backend, but designed to be swappable.
"""

from kulosplit.services.storage.interface import (
    AuditStorageInterface,
    CorruptDocumentError,
    HistoryBackendInterface,
    StorageError,
    UnsupportedSchemaError,
)
from kulosplit.services.storage.history import (
    HISTORY_SCHEMA_VERSION,
    HistoryDocument,
    HistoryStore,
    migrate_document,
)
from kulosplit.services.storage.json_file import JsonFileHistoryBackend
from kulosplit.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryHistoryBackend,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "HistoryBackendInterface",
    # Exceptions
    "CorruptDocumentError",
    "StorageError",
    "UnsupportedSchemaError",
    # History semantics
    "HISTORY_SCHEMA_VERSION",
    "HistoryDocument",
    "HistoryStore",
    "migrate_document",
    # Backends
    "InMemoryAuditStorage",
    "InMemoryHistoryBackend",
    "JsonFileHistoryBackend",
]
