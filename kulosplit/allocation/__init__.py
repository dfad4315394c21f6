"""Allocation engine package."""

from kulosplit.allocation.calculator import (
    bill_item_total,
    calculate_shares,
    shares_grand_total,
)

__all__ = ["bill_item_total", "calculate_shares", "shares_grand_total"]
