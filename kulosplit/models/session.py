"""
Session Models for KuloSplit

DESIGN DECISION: There is no module-level "current bill".
All state for one user's editing session lives in a SplitSession that is
passed explicitly to every operation, so several sessions (tabs, users)
can run side by side.
"""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from kulosplit.models.bill import Bill, StoredBill


class AppStep(str, Enum):
    """The steps of the bill lifecycle."""
    UPLOAD_RECEIPT = "UPLOAD_RECEIPT"
    EDIT_BILL_DETAILS = "EDIT_BILL_DETAILS"
    VIEW_SUMMARY = "VIEW_SUMMARY"
    VIEW_HISTORY = "VIEW_HISTORY"


class SplitSession(BaseModel):
    """
    Mutable state of one editing session.

    current_bill and viewing_bill are immutable values; edits swap them out.
    """

    session_id: UUID = Field(default_factory=uuid4)
    step: AppStep = AppStep.UPLOAD_RECEIPT

    # The in-progress bill (at most one per session)
    current_bill: Optional[Bill] = None
    # A stored bill opened read-only from history
    viewing_bill: Optional[StoredBill] = None

    # Receipt analysis in flight
    is_loading: bool = False
    analysis_generation: int = Field(
        default=0,
        ge=0,
        description="Bumped on every upload; stale analysis results are dropped"
    )

    # Dismissible user-facing messages
    error_message: Optional[str] = None
    success_message: Optional[str] = None

    def clear_messages(self) -> None:
        self.error_message = None
        self.success_message = None

    def fail(self, message: str) -> bool:
        """Record a user-facing error. Returns False for use in `return session.fail(...)`."""
        self.error_message = message
        return False
