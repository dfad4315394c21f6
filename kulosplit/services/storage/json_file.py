"""
JSON File Storage Implementation

DESIGN DECISION: Bill history lives in a single JSON file because:
1. Personal bill splitting produces small amounts of data
2. No database setup required
3. The file is human-readable and easy to back up

The file is a JSON object mapping storage keys to documents, so several
stores can share one file. Our document sits under a fixed storage key
and is fully rewritten on every save.

TRADEOFFS:
- No concurrent writers (single-user app)
- Whole-file rewrite (fine for a few hundred bills)
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from kulosplit.config import StorageSettings, get_settings
from kulosplit.services.storage.interface import (
    CorruptDocumentError,
    HistoryBackendInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

# Transient filesystem errors (locked file, flaky network mount) are retried
_io_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, max=1),
    retry=retry_if_exception_type(OSError),
    reraise=True,
)


class JsonFileHistoryBackend(HistoryBackendInterface):
    """
    Stores the history document in a JSON file on disk.

    Writes go to a temporary file that atomically replaces the target,
    so a crash mid-write never leaves a truncated history.
    """

    def __init__(self, settings: Optional[StorageSettings] = None):
        self._settings = settings or get_settings().storage
        self._path = Path(self._settings.file_path)
        self._key = self._settings.storage_key

    @property
    def path(self) -> Path:
        return self._path

    @_io_retry
    def _read_text(self) -> Optional[str]:
        if not self._path.exists():
            return None
        return self._path.read_text(encoding="utf-8")

    @_io_retry
    def _write_text(self, text: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(tmp_name, self._path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _read_file(self) -> dict:
        """Read the whole file as a key -> document mapping."""
        try:
            text = self._read_text()
        except UnicodeDecodeError as e:
            raise CorruptDocumentError(
                f"History file {self._path} is not valid UTF-8: {e}"
            ) from e
        except OSError as e:
            raise StorageError(f"Could not read history file {self._path}: {e}") from e

        if text is None or not text.strip():
            return {}

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptDocumentError(
                f"History file {self._path} is not valid JSON: {e}"
            ) from e

        if not isinstance(data, dict):
            raise CorruptDocumentError(
                f"History file {self._path} must contain a JSON object"
            )
        return data

    def read_document(self) -> Optional[Any]:
        return self._read_file().get(self._key)

    def write_document(self, document: Any) -> None:
        try:
            data = self._read_file()
        except CorruptDocumentError:
            # Unreadable content under other keys cannot be preserved
            logger.warning("history_file_reset", path=str(self._path))
            data = {}

        data[self._key] = document

        try:
            self._write_text(json.dumps(data, ensure_ascii=False, indent=2))
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Could not write history file {self._path}: {e}") from e

        logger.debug("history_file_written", path=str(self._path), key=self._key)
