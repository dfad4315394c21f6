"""
Tests for the audit logger and in-memory audit storage.
"""

import pytest
from uuid import uuid4

from kulosplit.audit import AuditLogger
from kulosplit.models.audit import AuditEvent, AuditEventType, AuditSeverity
from kulosplit.services.storage import AuditStorageInterface, InMemoryAuditStorage


class ExplodingAuditStorage(AuditStorageInterface):
    def append_event(self, event):
        raise RuntimeError("audit sink down")

    def get_recent_events(self, limit=100):
        return []


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_local_only_logging(self):
        """Test logging without storage succeeds."""
        logger = AuditLogger()
        event = AuditEvent(event_type=AuditEventType.BILL_EDITED, description="edit")
        assert logger.log(event) is True

    def test_events_reach_storage(self):
        """Test events are appended to storage with their context."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        session_id = uuid4()
        bill_id = uuid4()

        logger.log_receipt_uploaded(bill_id, "image/jpeg", 2048, session_id)
        logger.log_analysis_failed(bill_id, "Gemini API Error: 503", session_id)

        failed, uploaded = storage.get_recent_events()
        assert uploaded.event_type == AuditEventType.RECEIPT_UPLOADED
        assert uploaded.details["file_size_bytes"] == 2048
        assert failed.severity == AuditSeverity.ERROR
        assert failed.error_message == "Gemini API Error: 503"
        assert {uploaded.correlation_id, failed.correlation_id} == {session_id}

    def test_storage_failure_does_not_raise(self):
        """Test a broken audit sink never breaks the app."""
        logger = AuditLogger(ExplodingAuditStorage())

        assert logger.log(AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description="boom",
        )) is False

    def test_edit_details_recorded(self):
        """Test edit events carry the operation name."""
        storage = InMemoryAuditStorage()
        AuditLogger(storage).log_bill_edited(
            bill_id=uuid4(),
            operation="assign_item",
            correlation_id=uuid4(),
            details={"item_id": "x"},
        )

        (event,) = storage.get_recent_events()
        assert event.details == {"operation": "assign_item", "item_id": "x"}
        assert event.severity == AuditSeverity.DEBUG


class TestInMemoryAuditStorage:
    """Tests for the bounded in-memory trail."""

    def test_bounded(self):
        """Test the oldest events are dropped past max_events."""
        storage = InMemoryAuditStorage(max_events=2)
        for i in range(3):
            storage.append_event(AuditEvent(
                event_type=AuditEventType.BILL_EDITED,
                description=f"edit {i}",
            ))

        assert [e.description for e in storage.get_recent_events()] == ["edit 2", "edit 1"]

    def test_limit(self):
        """Test get_recent_events honours its limit."""
        storage = InMemoryAuditStorage()
        for i in range(5):
            storage.append_event(AuditEvent(
                event_type=AuditEventType.BILL_EDITED,
                description=f"edit {i}",
            ))

        assert len(storage.get_recent_events(limit=3)) == 3


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
