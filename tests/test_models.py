"""
Tests for KuloSplit

Test strategy:
1. Unit tests for individual components (models, validators, allocation)
2. Integration tests for flows (with fake analyzers and in-memory storage)
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from kulosplit.models.bill import (
    UNASSIGNED,
    AnalyzedItem,
    AssignedTo,
    Bill,
    Participant,
    ParticipantShare,
    ReceiptAnalysis,
    ReceiptImage,
    ReceiptItem,
    StoredBill,
    ValidationIssue,
    ValidationResult,
    default_description,
)
from kulosplit.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from kulosplit.models.session import AppStep, SplitSession


class TestBillModels:
    """Tests for bill-related Pydantic models."""

    def test_receipt_item_creation(self):
        """Test ReceiptItem model creation."""
        item = ReceiptItem(
            name="Nasi Goreng Ayam",
            quantity=Decimal("2"),
            price=Decimal("50000"),
        )
        assert item.name == "Nasi Goreng Ayam"
        assert item.price == Decimal("50000")
        assert item.id is not None

    def test_receipt_item_strips_whitespace(self):
        """Test that whitespace is stripped from item names."""
        item = ReceiptItem(name="  Es Teh  ")
        assert item.name == "Es Teh"

    def test_receipt_item_rejects_negative_price(self):
        """Test that negative prices are rejected."""
        with pytest.raises(ValueError):
            ReceiptItem(name="Test", price=Decimal("-100"))

    def test_receipt_item_rejects_zero_quantity(self):
        """Test that quantity must be positive."""
        with pytest.raises(ValueError):
            ReceiptItem(name="Test", quantity=Decimal("0"))

    def test_receipt_item_is_frozen(self):
        """Test that items cannot be modified in place."""
        item = ReceiptItem(name="Test")
        with pytest.raises(ValidationError):
            item.name = "Changed"

    def test_receipt_image_rejects_non_image(self):
        """Test that only image MIME types are accepted."""
        with pytest.raises(ValueError, match="Unsupported receipt type"):
            ReceiptImage(data_url="data:application/pdf;base64,AAAA", mime_type="application/pdf")

    def test_bill_defaults(self):
        """Test an empty bill."""
        bill = Bill()
        assert bill.items == []
        assert bill.participants == []
        assert bill.assignments == {}
        assert bill.tax_amount == Decimal("0")
        assert bill.service_fee_amount == Decimal("0")
        assert bill.created_at.tzinfo is not None

    def test_bill_rejects_duplicate_participant_names(self):
        """Test participant names are unique ignoring case."""
        with pytest.raises(ValueError, match="Participant names must be unique"):
            Bill(participants=[Participant(name="Budi"), Participant(name="budi")])

    def test_bill_rejects_duplicate_item_ids(self):
        """Test item ids are unique."""
        item = ReceiptItem(name="Sate")
        with pytest.raises(ValueError, match="Item ids must be unique"):
            Bill(items=[item, item])

    def test_bill_rejects_assignment_to_unknown_item(self):
        """Test that assignment keys must be items of the bill."""
        with pytest.raises(ValueError, match="unknown item"):
            Bill(assignments={uuid4(): UNASSIGNED})

    def test_bill_rejects_assignment_to_unknown_participant(self):
        """Test that assignments must point at participants of the bill."""
        item = ReceiptItem(name="Sate")
        with pytest.raises(ValueError, match="unknown participant"):
            Bill(items=[item], assignments={item.id: AssignedTo(participant_id=uuid4())})

    def test_bill_unassigned_items(self):
        """Test items without an assignment count as unassigned."""
        budi = Participant(name="Budi")
        sate = ReceiptItem(name="Sate")
        soto = ReceiptItem(name="Soto")
        tea = ReceiptItem(name="Es Teh")
        bill = Bill(
            items=[sate, soto, tea],
            participants=[budi],
            assignments={
                sate.id: AssignedTo(participant_id=budi.id),
                soto.id: UNASSIGNED,
            },
        )
        assert bill.unassigned_items == [soto, tea]
        assert bill.assigned_participant_id(sate.id) == budi.id
        assert bill.assigned_participant_id(tea.id) is None

    def test_default_description_format(self):
        """Test unnamed bills are described by their date."""
        assert default_description(datetime(2024, 12, 15, tzinfo=timezone.utc)) == "Bill from 15/12/2024"

    def test_assignment_round_trips_through_json(self):
        """Test the tagged assignment survives serialization."""
        budi = Participant(name="Budi")
        sate = ReceiptItem(name="Sate")
        soto = ReceiptItem(name="Soto")
        bill = Bill(
            items=[sate, soto],
            participants=[budi],
            assignments={
                sate.id: AssignedTo(participant_id=budi.id),
                soto.id: UNASSIGNED,
            },
        )
        restored = Bill.model_validate_json(bill.model_dump_json())
        assert restored == bill
        assert isinstance(restored.assignments[sate.id], AssignedTo)
        assert restored.assignments[soto.id].kind == "unassigned"

    def test_stored_bill_grand_total(self):
        """Test StoredBill sums its frozen shares."""
        stored = StoredBill(
            calculated_shares=[
                ParticipantShare(
                    participant_id=uuid4(),
                    participant_name="A",
                    total_owed=Decimal("22000"),
                ),
                ParticipantShare(
                    participant_id=uuid4(),
                    participant_name="B",
                    total_owed=Decimal("33000"),
                ),
            ],
        )
        assert stored.grand_total == Decimal("55000")

    def test_receipt_analysis_empty(self):
        """Test the empty extraction used after a failed analysis."""
        analysis = ReceiptAnalysis.empty()
        assert analysis.items == []
        assert analysis.tax == Decimal("0")
        assert analysis.service_fee == Decimal("0")
        assert analysis.subtotal is None

    def test_analyzed_item_defaults(self):
        """Test analyzer item defaults."""
        item = AnalyzedItem()
        assert item.name == "Unknown Item"
        assert item.quantity == Decimal("1")
        assert item.price == Decimal("0")


class TestSessionModels:
    """Tests for the explicit session context."""

    def test_new_session_starts_at_upload(self):
        """Test session defaults."""
        session = SplitSession()
        assert session.step == AppStep.UPLOAD_RECEIPT
        assert session.current_bill is None
        assert session.is_loading is False
        assert session.analysis_generation == 0

    def test_sessions_are_independent(self):
        """Test two sessions do not share state."""
        first = SplitSession()
        second = SplitSession()
        first.current_bill = Bill()
        assert second.current_bill is None
        assert first.session_id != second.session_id

    def test_fail_sets_message_and_returns_false(self):
        """Test the fail helper."""
        session = SplitSession(success_message="done")
        assert session.fail("Broken") is False
        assert session.error_message == "Broken"
        session.clear_messages()
        assert session.error_message is None
        assert session.success_message is None


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            description="Test receipt uploaded",
        )
        assert event.event_type == AuditEventType.RECEIPT_UPLOADED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.BILL_SAVED,
            description="Bill saved successfully",
            details={"participant_count": 2, "grand_total": "55000"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "bill_saved"
        assert log_dict["details"]["grand_total"] == "55000"

    def test_audit_event_builder_receipt_uploaded(self):
        """Test AuditEventBuilder.receipt_uploaded."""
        correlation_id = uuid4()
        bill_id = uuid4()

        event = AuditEventBuilder.receipt_uploaded(
            bill_id=bill_id,
            mime_type="image/jpeg",
            file_size=1024,
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.RECEIPT_UPLOADED
        assert event.entity_id == bill_id
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_audit_event_builder_analysis_discarded(self):
        """Test AuditEventBuilder.analysis_discarded."""
        event = AuditEventBuilder.analysis_discarded(
            bill_id=uuid4(),
            generation=1,
            current_generation=2,
            correlation_id=uuid4(),
        )

        assert event.event_type == AuditEventType.ANALYSIS_DISCARDED
        assert event.severity == AuditSeverity.WARNING
        assert event.details == {"generation": 1, "current_generation": 2}

    def test_audit_event_builder_bill_saved(self):
        """Test AuditEventBuilder.bill_saved stores the total as text."""
        event = AuditEventBuilder.bill_saved(
            bill_id=uuid4(),
            participant_count=2,
            grand_total=Decimal("55000"),
            correlation_id=uuid4(),
        )

        assert event.event_type == AuditEventType.BILL_SAVED
        assert event.details["grand_total"] == "55000"


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            bill_id=uuid4(),
            issues=[
                ValidationIssue(
                    field="participants",
                    issue_type="no_participants",
                    message="Please add participants before viewing summary.",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.is_valid is False
        assert result.error_count == 1
        assert result.first_error.issue_type == "no_participants"

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            issues=[
                ValidationIssue(
                    field="items",
                    issue_type="zero_price",
                    message="Item has no price",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0
        assert result.first_error is None

    def test_validation_issue_rejects_unknown_severity(self):
        """Test severity pattern."""
        with pytest.raises(ValueError):
            ValidationIssue(field="x", issue_type="y", message="z", severity="fatal")


class TestAppSteps:
    """Tests for the lifecycle step enum."""

    def test_all_steps_exist(self):
        """Test that expected steps exist."""
        expected = [
            "UPLOAD_RECEIPT", "EDIT_BILL_DETAILS", "VIEW_SUMMARY", "VIEW_HISTORY",
        ]
        for step in expected:
            assert AppStep(step) is not None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
