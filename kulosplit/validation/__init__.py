"""Validation package."""

from kulosplit.validation.validator import (
    NO_BILL,
    NO_ITEMS,
    NO_PARTICIPANTS,
    UNASSIGNED_ITEMS,
    BillValidator,
)

__all__ = [
    "NO_BILL",
    "NO_ITEMS",
    "NO_PARTICIPANTS",
    "UNASSIGNED_ITEMS",
    "BillValidator",
]
