"""
Bill History Store

Owns the semantics of the saved-bill history on top of a raw backend:
- most recent bill first (new bills are prepended)
- a versioned document format with migration of older layouts
- storage faults are logged and degrade to an empty/unchanged result,
  so a broken disk never crashes the session
"""

from typing import Any, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field, ValidationError

from kulosplit.models.bill import StoredBill
from kulosplit.services.storage.interface import (
    CorruptDocumentError,
    HistoryBackendInterface,
    StorageError,
    UnsupportedSchemaError,
)


logger = structlog.get_logger(__name__)

HISTORY_SCHEMA_VERSION = 1


class HistoryDocument(BaseModel):
    """The persisted shape of the history."""

    schema_version: int = HISTORY_SCHEMA_VERSION
    bills: list[StoredBill] = Field(default_factory=list)


def migrate_document(raw: Optional[Any]) -> dict:
    """
    Bring a stored document up to the current schema version.

    Version 0 was a bare JSON list of bills with no envelope.
    """
    if raw is None:
        return {"schema_version": HISTORY_SCHEMA_VERSION, "bills": []}

    if isinstance(raw, list):
        return {"schema_version": HISTORY_SCHEMA_VERSION, "bills": raw}

    if not isinstance(raw, dict):
        raise CorruptDocumentError(
            f"History document has unexpected type {type(raw).__name__}"
        )

    version = raw.get("schema_version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise CorruptDocumentError("History document has no schema_version")
    if version > HISTORY_SCHEMA_VERSION:
        raise UnsupportedSchemaError(
            f"History schema version {version} is newer than supported "
            f"version {HISTORY_SCHEMA_VERSION}"
        )

    return raw


class HistoryStore:
    """
    Persists, retrieves and deletes finalized bills.

    Every operation returns the resulting history list, mirroring what
    the caller should display afterwards.
    """

    def __init__(self, backend: HistoryBackendInterface):
        self._backend = backend

    def _read(self) -> list[StoredBill]:
        raw = self._backend.read_document()
        document = migrate_document(raw)
        try:
            return HistoryDocument.model_validate(document).bills
        except ValidationError as e:
            raise CorruptDocumentError(f"History document failed validation: {e}") from e

    def _write(self, bills: list[StoredBill]) -> None:
        document = HistoryDocument(bills=bills)
        self._backend.write_document(document.model_dump(mode="json"))

    def load(self) -> list[StoredBill]:
        """All stored bills, most recent first. Empty on read failure."""
        try:
            return self._read()
        except StorageError as e:
            logger.error("history_load_failed", error=str(e))
            return []

    def get(self, bill_id: UUID) -> Optional[StoredBill]:
        return next((bill for bill in self.load() if bill.id == bill_id), None)

    def add(self, bill: StoredBill) -> list[StoredBill]:
        """
        Prepend a bill to the history.

        If the existing history cannot be read, nothing is written (so an
        unreadable history is never overwritten) and an empty list is
        returned. If the write fails, the unchanged history is returned.
        Callers can check membership of `bill` to detect either case.
        """
        try:
            bills = self._read()
        except StorageError as e:
            logger.error("history_add_failed", stage="read", bill_id=str(bill.id), error=str(e))
            return []

        updated = [bill] + [b for b in bills if b.id != bill.id]
        try:
            self._write(updated)
        except StorageError as e:
            logger.error("history_add_failed", stage="write", bill_id=str(bill.id), error=str(e))
            return bills

        logger.info("history_bill_added", bill_id=str(bill.id), history_size=len(updated))
        return updated

    def delete(self, bill_id: UUID) -> list[StoredBill]:
        """Remove a bill by id. Unknown ids leave the history unchanged."""
        try:
            bills = self._read()
        except StorageError as e:
            logger.error("history_delete_failed", stage="read", bill_id=str(bill_id), error=str(e))
            return []

        updated = [b for b in bills if b.id != bill_id]
        if len(updated) == len(bills):
            return bills

        try:
            self._write(updated)
        except StorageError as e:
            logger.error("history_delete_failed", stage="write", bill_id=str(bill_id), error=str(e))
            return bills

        logger.info("history_bill_deleted", bill_id=str(bill_id), history_size=len(updated))
        return updated

    def clear(self) -> list[StoredBill]:
        """Remove every stored bill."""
        try:
            self._write([])
        except StorageError as e:
            logger.error("history_clear_failed", error=str(e))
            return self.load()

        logger.info("history_cleared")
        return []
