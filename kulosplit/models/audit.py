"""
Audit Models for KuloSplit

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability of how a split was produced
2. Debugging information when the analyzer or storage misbehaves
3. Ability to reconstruct the history of a session

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from kulosplit.models.bill import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of the bill lifecycle has its own event type.
    """
    # Receipt upload and analysis
    RECEIPT_UPLOADED = "receipt_uploaded"
    RECEIPT_REJECTED = "receipt_rejected"
    ANALYSIS_STARTED = "analysis_started"
    ANALYSIS_COMPLETED = "analysis_completed"
    ANALYSIS_FAILED = "analysis_failed"
    ANALYSIS_DISCARDED = "analysis_discarded"

    # Editing
    BILL_EDITED = "bill_edited"
    EDIT_REJECTED = "edit_rejected"

    # Lifecycle
    SUMMARY_VIEWED = "summary_viewed"
    SUMMARY_BLOCKED = "summary_blocked"

    # Persistence
    BILL_SAVED = "bill_saved"
    BILL_DELETED = "bill_deleted"
    HISTORY_CLEARED = "history_cleared"
    STORAGE_ERROR = "storage_error"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'bill', 'receipt', 'history')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one session)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.receipt_uploaded(bill_id, "image/jpeg", 1024, session_id)
        event = AuditEventBuilder.bill_saved(bill_id, 3, total, session_id)
    """

    @staticmethod
    def receipt_uploaded(
        bill_id: UUID,
        mime_type: str,
        file_size: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_UPLOADED,
            entity_type="receipt",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Receipt uploaded ({mime_type})",
            details={
                "mime_type": mime_type,
                "file_size_bytes": file_size,
            },
            is_user_action=True,
        )

    @staticmethod
    def receipt_rejected(
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            correlation_id=correlation_id,
            description="Receipt upload rejected",
            details={"reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def analysis_started(
        bill_id: UUID,
        generation: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_STARTED,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Receipt analysis started",
            details={"generation": generation},
        )

    @staticmethod
    def analysis_completed(
        bill_id: UUID,
        item_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_COMPLETED,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Receipt analysis extracted {item_count} items",
            details={"item_count": item_count},
        )

    @staticmethod
    def analysis_failed(
        bill_id: UUID,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Receipt analysis failed",
            error_message=error_message,
            details={"service": "gemini"},
        )

    @staticmethod
    def analysis_discarded(
        bill_id: UUID,
        generation: int,
        current_generation: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_DISCARDED,
            severity=AuditSeverity.WARNING,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Stale receipt analysis discarded after a newer upload",
            details={
                "generation": generation,
                "current_generation": current_generation,
            },
        )

    @staticmethod
    def bill_edited(
        bill_id: UUID,
        operation: str,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_EDITED,
            severity=AuditSeverity.DEBUG,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Bill edited: {operation}",
            details={"operation": operation, **(details or {})},
            is_user_action=True,
        )

    @staticmethod
    def edit_rejected(
        operation: str,
        reason: str,
        correlation_id: UUID,
        bill_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EDIT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Edit rejected: {operation}",
            details={"operation": operation, "reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def summary_viewed(
        bill_id: UUID,
        from_history: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_VIEWED,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Summary viewed",
            details={"from_history": from_history},
            is_user_action=True,
        )

    @staticmethod
    def summary_blocked(
        reason: str,
        message: str,
        correlation_id: UUID,
        bill_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUMMARY_BLOCKED,
            severity=AuditSeverity.WARNING,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Summary blocked: {reason}",
            details={"reason": reason, "message": message},
            is_user_action=True,
        )

    @staticmethod
    def bill_saved(
        bill_id: UUID,
        participant_count: int,
        grand_total: Decimal,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_SAVED,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description=f"Bill saved for {participant_count} participants",
            details={
                "participant_count": participant_count,
                "grand_total": str(grand_total),
            },
        )

    @staticmethod
    def bill_deleted(
        bill_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_DELETED,
            entity_type="bill",
            entity_id=bill_id,
            correlation_id=correlation_id,
            description="Bill deleted from history",
            is_user_action=True,
        )

    @staticmethod
    def history_cleared(
        removed_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HISTORY_CLEARED,
            severity=AuditSeverity.WARNING,
            entity_type="history",
            correlation_id=correlation_id,
            description=f"History cleared ({removed_count} bills)",
            details={"removed_count": removed_count},
            is_user_action=True,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            entity_type="history",
            correlation_id=correlation_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
