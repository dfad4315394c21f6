"""
Core Data Models for KuloSplit

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Keep the bill invariants in one place

DESIGN DECISION: Bill-shaped models are frozen. Every edit produces a new
Bill value, so a half-applied edit is never observable.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    """Timezone-aware current time used for all timestamps."""
    return datetime.now(timezone.utc)


def default_description(created_at: datetime) -> str:
    """Description given to bills the user has not named."""
    return f"Bill from {created_at.strftime('%d/%m/%Y')}"


ZERO = Decimal("0")


# =============================================================================
# BILL CONTENTS
# =============================================================================

class ReceiptItem(BaseModel):
    """
    One receipt line.

    `price` is the TOTAL price of the line for its quantity, not a unit price.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique item ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Item description as printed on the receipt"
    )
    quantity: Decimal = Field(
        default=Decimal("1"),
        gt=0,
        description="Quantity on the line"
    )
    price: Decimal = Field(
        default=ZERO,
        ge=0,
        description="Total price for the line"
    )


class Participant(BaseModel):
    """Someone sharing the bill."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique participant ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name, unique per bill (case-insensitive)"
    )


class Unassigned(BaseModel):
    """Item is not yet the responsibility of anyone."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["unassigned"] = "unassigned"


class AssignedTo(BaseModel):
    """Item is paid for by a single participant."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["assigned"] = "assigned"
    participant_id: UUID


Assignment = Annotated[Union[Unassigned, AssignedTo], Field(discriminator="kind")]

UNASSIGNED = Unassigned()


class ReceiptImage(BaseModel):
    """The uploaded receipt photo, kept as a base64 data URL."""
    model_config = ConfigDict(frozen=True)

    data_url: str
    mime_type: str

    @field_validator('mime_type')
    @classmethod
    def validate_mime_type(cls, v: str) -> str:
        """Only image types are accepted."""
        if not v.lower().startswith("image/"):
            raise ValueError(f"Unsupported receipt type: {v}")
        return v.lower()


# =============================================================================
# CORE BILL MODEL
# =============================================================================

class Bill(BaseModel):
    """
    One receipt-splitting session while it is being edited.

    Invariants (checked on every construction):
    - item ids are unique
    - participant names are unique, ignoring case
    - every assignment key is an item of this bill
    - every AssignedTo points at a participant of this bill
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique bill ID"
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the receipt was captured"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=500,
        description="User description, defaults to 'Bill from <date>'"
    )
    receipt_image: Optional[ReceiptImage] = None

    items: list[ReceiptItem] = Field(default_factory=list)
    participants: list[Participant] = Field(default_factory=list)
    assignments: dict[UUID, Assignment] = Field(default_factory=dict)

    tax_amount: Decimal = Field(
        default=ZERO,
        ge=0,
        description="Total tax printed on the receipt"
    )
    service_fee_amount: Decimal = Field(
        default=ZERO,
        ge=0,
        description="Total service charge printed on the receipt"
    )

    @model_validator(mode='after')
    def validate_references(self) -> 'Bill':
        """Keep items, participants and assignments consistent."""
        item_ids = {item.id for item in self.items}
        if len(item_ids) != len(self.items):
            raise ValueError("Item ids must be unique")

        names = [p.name.casefold() for p in self.participants]
        if len(set(names)) != len(names):
            raise ValueError("Participant names must be unique")

        participant_ids = {p.id for p in self.participants}
        for item_id, assignment in self.assignments.items():
            if item_id not in item_ids:
                raise ValueError(f"Assignment references unknown item {item_id}")
            if (
                isinstance(assignment, AssignedTo)
                and assignment.participant_id not in participant_ids
            ):
                raise ValueError(
                    f"Assignment references unknown participant {assignment.participant_id}"
                )

        return self

    def assignment_for(self, item_id: UUID) -> Assignment:
        """Assignment of an item; items without an entry are unassigned."""
        return self.assignments.get(item_id, UNASSIGNED)

    def assigned_participant_id(self, item_id: UUID) -> Optional[UUID]:
        assignment = self.assignment_for(item_id)
        if isinstance(assignment, AssignedTo):
            return assignment.participant_id
        return None

    def get_item(self, item_id: UUID) -> Optional[ReceiptItem]:
        return next((item for item in self.items if item.id == item_id), None)

    def get_participant(self, participant_id: UUID) -> Optional[Participant]:
        return next((p for p in self.participants if p.id == participant_id), None)

    @property
    def unassigned_items(self) -> list[ReceiptItem]:
        """Items nobody has been made responsible for, in bill order."""
        return [
            item for item in self.items
            if self.assigned_participant_id(item.id) is None
        ]


# =============================================================================
# COMPUTED SHARES
# =============================================================================

class ParticipantShare(BaseModel):
    """
    A participant's computed portion of the bill.

    Derived purely from a Bill. Only persisted as part of a StoredBill.
    """
    model_config = ConfigDict(frozen=True)

    participant_id: UUID
    participant_name: str
    items: list[ReceiptItem] = Field(default_factory=list)
    subtotal: Decimal = ZERO
    tax_share: Decimal = ZERO
    service_fee_share: Decimal = ZERO
    total_owed: Decimal = ZERO


class StoredBill(Bill):
    """
    A bill that has been saved to history.

    CRITICAL: calculated_shares is a snapshot taken at save time.
    It is NEVER recomputed, so history shows what the user saw when saving.
    """

    saved_at: datetime = Field(
        default_factory=utc_now,
        description="When the bill was saved to history"
    )
    calculated_shares: list[ParticipantShare] = Field(
        default_factory=list,
        description="Allocation result frozen at save time"
    )

    @property
    def grand_total(self) -> Decimal:
        return sum((share.total_owed for share in self.calculated_shares), ZERO)


# =============================================================================
# ANALYZER OUTPUT
# =============================================================================

class AnalyzedItem(BaseModel):
    """A line item as returned by the receipt analyzer (no id yet)."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(default="Unknown Item", min_length=1, max_length=200)
    quantity: Decimal = Field(default=Decimal("1"), gt=0)
    price: Decimal = Field(default=ZERO, ge=0)


class ReceiptAnalysis(BaseModel):
    """
    Structured extraction of a receipt.

    CRITICAL: subtotal and total are informational only.
    Allocation never uses them.
    """

    items: list[AnalyzedItem] = Field(default_factory=list)
    subtotal: Optional[Decimal] = None
    tax: Decimal = Field(default=ZERO, ge=0)
    service_fee: Decimal = Field(default=ZERO, ge=0)
    total: Optional[Decimal] = None

    @classmethod
    def empty(cls) -> 'ReceiptAnalysis':
        """Extraction used when analysis failed and the user continues manually."""
        return cls()


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Part of the bill with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Machine-readable issue code (e.g., 'no_participants')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    count: Optional[int] = Field(
        default=None,
        ge=0,
        description="Number of offending entries, where that is meaningful"
    )


class ValidationResult(BaseModel):
    """
    Result of checking a bill before it may be summarized.

    Issues are ordered: the first error is the one shown to the user.
    """

    bill_id: Optional[UUID] = None
    validated_at: datetime = Field(default_factory=utc_now)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def first_error(self) -> Optional[ValidationIssue]:
        return next((i for i in self.issues if i.severity == "error"), None)
