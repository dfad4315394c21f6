"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability of how a split was produced
2. Debugging capability for analyzer and storage faults
3. A per-session trail via correlation IDs

The audit logger:
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from kulosplit.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from kulosplit.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend, if one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("kulosplit.audit")

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_receipt_uploaded(
        self,
        bill_id: UUID,
        mime_type: str,
        file_size: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.receipt_uploaded(
            bill_id=bill_id,
            mime_type=mime_type,
            file_size=file_size,
            correlation_id=correlation_id,
        ))

    def log_receipt_rejected(self, reason: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.receipt_rejected(
            reason=reason,
            correlation_id=correlation_id,
        ))

    def log_analysis_started(
        self,
        bill_id: UUID,
        generation: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.analysis_started(
            bill_id=bill_id,
            generation=generation,
            correlation_id=correlation_id,
        ))

    def log_analysis_completed(
        self,
        bill_id: UUID,
        item_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.analysis_completed(
            bill_id=bill_id,
            item_count=item_count,
            correlation_id=correlation_id,
        ))

    def log_analysis_failed(
        self,
        bill_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.analysis_failed(
            bill_id=bill_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_analysis_discarded(
        self,
        bill_id: UUID,
        generation: int,
        current_generation: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.analysis_discarded(
            bill_id=bill_id,
            generation=generation,
            current_generation=current_generation,
            correlation_id=correlation_id,
        ))

    def log_bill_edited(
        self,
        bill_id: UUID,
        operation: str,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        self.log(AuditEventBuilder.bill_edited(
            bill_id=bill_id,
            operation=operation,
            correlation_id=correlation_id,
            details=details,
        ))

    def log_edit_rejected(
        self,
        operation: str,
        reason: str,
        correlation_id: UUID,
        bill_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.edit_rejected(
            operation=operation,
            reason=reason,
            correlation_id=correlation_id,
            bill_id=bill_id,
        ))

    def log_summary_viewed(
        self,
        bill_id: UUID,
        from_history: bool,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.summary_viewed(
            bill_id=bill_id,
            from_history=from_history,
            correlation_id=correlation_id,
        ))

    def log_summary_blocked(
        self,
        reason: str,
        message: str,
        correlation_id: UUID,
        bill_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.summary_blocked(
            reason=reason,
            message=message,
            correlation_id=correlation_id,
            bill_id=bill_id,
        ))

    def log_bill_saved(
        self,
        bill_id: UUID,
        participant_count: int,
        grand_total: Decimal,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.bill_saved(
            bill_id=bill_id,
            participant_count=participant_count,
            grand_total=grand_total,
            correlation_id=correlation_id,
        ))

    def log_bill_deleted(self, bill_id: UUID, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.bill_deleted(
            bill_id=bill_id,
            correlation_id=correlation_id,
        ))

    def log_history_cleared(self, removed_count: int, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.history_cleared(
            removed_count=removed_count,
            correlation_id=correlation_id,
        ))

    def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

