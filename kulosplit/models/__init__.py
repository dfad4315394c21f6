"""
Data Models Package

This package contains all Pydantic models used in KuloSplit.
All data flowing through the system must conform to these schemas.
"""

from kulosplit.models.bill import (
    UNASSIGNED,
    AnalyzedItem,
    AssignedTo,
    Assignment,
    Bill,
    Participant,
    ParticipantShare,
    ReceiptAnalysis,
    ReceiptImage,
    ReceiptItem,
    StoredBill,
    Unassigned,
    ValidationIssue,
    ValidationResult,
)
from kulosplit.models.session import AppStep, SplitSession
from kulosplit.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Bill models
    "UNASSIGNED",
    "AnalyzedItem",
    "AssignedTo",
    "Assignment",
    "Bill",
    "Participant",
    "ParticipantShare",
    "ReceiptAnalysis",
    "ReceiptImage",
    "ReceiptItem",
    "StoredBill",
    "Unassigned",
    "ValidationIssue",
    "ValidationResult",
    # Session models
    "AppStep",
    "SplitSession",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
