"""Services package."""

from kulosplit.services.analyzer import (
    AnalyzerError,
    GeminiReceiptAnalyzer,
    ReceiptAnalyzerInterface,
    UnconfiguredReceiptAnalyzer,
)
from kulosplit.services.storage import (
    AuditStorageInterface,
    HistoryBackendInterface,
    HistoryStore,
    InMemoryAuditStorage,
    InMemoryHistoryBackend,
    JsonFileHistoryBackend,
    StorageError,
)

__all__ = [
    # Analyzer services
    "AnalyzerError",
    "GeminiReceiptAnalyzer",
    "ReceiptAnalyzerInterface",
    "UnconfiguredReceiptAnalyzer",
    # Storage services
    "AuditStorageInterface",
    "HistoryBackendInterface",
    "HistoryStore",
    "InMemoryAuditStorage",
    "InMemoryHistoryBackend",
    "JsonFileHistoryBackend",
    "StorageError",
]
