"""
Bill Edit Operations

Every operation takes a Bill and returns a NEW Bill. The input is never
modified, so callers can keep the previous value if an operation fails.

Invalid requests raise a BillEditError whose message is safe to show
to the user as-is.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Union
from uuid import UUID

from pydantic import ValidationError

from kulosplit.allocation import bill_item_total
from kulosplit.models.bill import (
    UNASSIGNED,
    ZERO,
    AssignedTo,
    Bill,
    Participant,
    ReceiptAnalysis,
    ReceiptImage,
    ReceiptItem,
    default_description,
    utc_now,
)


Amount = Union[Decimal, int, float, str]


class BillEditError(Exception):
    """Base exception for rejected edits. The message is user-facing."""
    pass


class InvalidInputError(BillEditError):
    """Input value is missing or out of range."""
    pass


class DuplicateParticipantError(BillEditError):
    """A participant with the same name (ignoring case) already exists."""
    pass


class UnknownEntityError(BillEditError):
    """Referenced item or participant is not part of the bill."""
    pass


def to_amount(value: Amount) -> Decimal:
    """Convert user or analyzer input to a finite Decimal."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidInputError(f"'{value}' is not a valid number.")
    if not amount.is_finite():
        raise InvalidInputError(f"'{value}' is not a valid number.")
    return amount


def _non_negative(value: Amount) -> Decimal:
    return max(ZERO, to_amount(value))


def _first_error(e: ValidationError) -> str:
    errors = e.errors()
    if not errors:
        return "Invalid bill data."
    return str(errors[0].get("msg", "Invalid bill data."))


def _replace(bill: Bill, **changes) -> Bill:
    """Build a new Bill with `changes`, re-checking every invariant."""
    try:
        return Bill(**{**dict(bill), **changes})
    except ValidationError as e:
        raise InvalidInputError(_first_error(e)) from e


def _require_item(bill: Bill, item_id: UUID) -> ReceiptItem:
    item = bill.get_item(item_id)
    if item is None:
        raise UnknownEntityError("Item not found on this bill.")
    return item


def _require_participant(bill: Bill, participant_id: UUID) -> Participant:
    participant = bill.get_participant(participant_id)
    if participant is None:
        raise UnknownEntityError("Participant not found on this bill.")
    return participant


def create_bill(
    receipt_image: Optional[ReceiptImage] = None,
    description: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Bill:
    """Start an empty bill, optionally with the uploaded receipt."""
    created_at = created_at or utc_now()
    return Bill(
        created_at=created_at,
        receipt_image=receipt_image,
        description=description or default_description(created_at),
    )


def apply_analysis(bill: Bill, analysis: ReceiptAnalysis) -> Bill:
    """
    Replace the bill's items and fees with an analyzer extraction.

    Every extracted item gets a fresh id; existing assignments are dropped
    because they referred to the old items.
    """
    items = [
        ReceiptItem(name=item.name, quantity=item.quantity, price=item.price)
        for item in analysis.items
    ]
    return _replace(
        bill,
        items=items,
        assignments={},
        tax_amount=analysis.tax,
        service_fee_amount=analysis.service_fee,
    )


def set_description(bill: Bill, description: Optional[str]) -> Bill:
    text = (description or "").strip()
    return _replace(bill, description=text or None)


# =============================================================================
# PARTICIPANTS
# =============================================================================

def add_participant(bill: Bill, name: str) -> Bill:
    name = (name or "").strip()
    if not name:
        raise InvalidInputError("Please enter a participant name.")

    if any(p.name.casefold() == name.casefold() for p in bill.participants):
        raise DuplicateParticipantError("Participant with this name already exists.")

    try:
        participant = Participant(name=name)
    except ValidationError as e:
        raise InvalidInputError(_first_error(e)) from e

    return _replace(bill, participants=[*bill.participants, participant])


def remove_participant(bill: Bill, participant_id: UUID) -> Bill:
    """
    Remove a participant.

    Items they were assigned to become unassigned. The items stay on the bill.
    """
    _require_participant(bill, participant_id)

    assignments = {
        item_id: assignment
        for item_id, assignment in bill.assignments.items()
        if not (
            isinstance(assignment, AssignedTo)
            and assignment.participant_id == participant_id
        )
    }
    return _replace(
        bill,
        participants=[p for p in bill.participants if p.id != participant_id],
        assignments=assignments,
    )


# =============================================================================
# ITEMS
# =============================================================================

def add_item(
    bill: Bill,
    name: str = "New Item",
    quantity: Amount = 1,
    price: Amount = 0,
) -> Bill:
    quantity = to_amount(quantity)
    if quantity <= 0:
        raise InvalidInputError("Quantity must be greater than zero.")

    try:
        item = ReceiptItem(name=name, quantity=quantity, price=_non_negative(price))
    except ValidationError as e:
        raise InvalidInputError(_first_error(e)) from e

    return _replace(bill, items=[*bill.items, item])


def update_item(
    bill: Bill,
    item_id: UUID,
    name: Optional[str] = None,
    quantity: Optional[Amount] = None,
    price: Optional[Amount] = None,
) -> Bill:
    """Edit an item in place (same id, same position). Price clamps to zero."""
    item = _require_item(bill, item_id)

    new_quantity = item.quantity if quantity is None else to_amount(quantity)
    if new_quantity <= 0:
        raise InvalidInputError("Quantity must be greater than zero.")

    try:
        updated = ReceiptItem(
            id=item.id,
            name=item.name if name is None else name,
            quantity=new_quantity,
            price=item.price if price is None else _non_negative(price),
        )
    except ValidationError as e:
        raise InvalidInputError(_first_error(e)) from e

    return _replace(
        bill,
        items=[updated if i.id == item_id else i for i in bill.items],
    )


def remove_item(bill: Bill, item_id: UUID) -> Bill:
    """Remove an item together with its assignment."""
    _require_item(bill, item_id)

    return _replace(
        bill,
        items=[i for i in bill.items if i.id != item_id],
        assignments={k: v for k, v in bill.assignments.items() if k != item_id},
    )


def assign_item(bill: Bill, item_id: UUID, participant_id: Optional[UUID]) -> Bill:
    """Make a participant responsible for an item, or unassign it with None."""
    _require_item(bill, item_id)

    if participant_id is None:
        assignment = UNASSIGNED
    else:
        _require_participant(bill, participant_id)
        assignment = AssignedTo(participant_id=participant_id)

    return _replace(bill, assignments={**bill.assignments, item_id: assignment})


# =============================================================================
# FEES
# =============================================================================

def set_tax_amount(bill: Bill, amount: Amount) -> Bill:
    """Set the receipt's total tax. Negative values clamp to zero."""
    return _replace(bill, tax_amount=_non_negative(amount))


def set_service_fee_amount(bill: Bill, amount: Amount) -> Bill:
    """Set the receipt's total service fee. Negative values clamp to zero."""
    return _replace(bill, service_fee_amount=_non_negative(amount))


def apply_default_service_fee(bill: Bill, percentage: Amount) -> Bill:
    """Set the service fee to `percentage` of the summed item prices."""
    item_total = bill_item_total(bill)
    if item_total <= 0:
        raise InvalidInputError(
            "Cannot calculate default service fee without items or non-zero prices."
        )
    return set_service_fee_amount(bill, item_total * to_amount(percentage))
