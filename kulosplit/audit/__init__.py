"""Audit logging package."""

from kulosplit.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
