"""
Proportional Allocation Engine

DESIGN DECISION: Allocation is a PURE function of a Bill.
It has no side effects and never reads clocks, settings or storage,
so the same Bill always yields the same shares and a summary can be
recomputed whenever it is rendered.

Algorithm:
1. Walk items in bill order, summing every price into the bill subtotal
   and adding assigned items to their participant's share.
2. Distribute tax and service fee:
   - proportionally to each share's subtotal when the bill subtotal > 0
   - equally across participants when nothing is priced but fees exist
   - not at all when both are zero
3. total_owed = subtotal + tax_share + service_fee_share

Unassigned items count toward the bill subtotal but toward no share,
so their proportion of the fees is left unallocated.
"""

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from kulosplit.models.bill import (
    ZERO,
    Bill,
    ParticipantShare,
    ReceiptItem,
)


def bill_item_total(bill: Bill) -> Decimal:
    """Sum of every item price on the bill, assigned or not."""
    return sum((item.price for item in bill.items), ZERO)


def shares_grand_total(shares: Iterable[ParticipantShare]) -> Decimal:
    """Sum of total_owed across shares."""
    return sum((share.total_owed for share in shares), ZERO)


def calculate_shares(bill: Bill) -> list[ParticipantShare]:
    """
    Compute one ParticipantShare per participant, in participant order.

    Returns an empty list when the bill has no participants.
    """
    if not bill.participants:
        return []

    share_items: dict[UUID, list[ReceiptItem]] = {p.id: [] for p in bill.participants}
    subtotals: dict[UUID, Decimal] = {p.id: ZERO for p in bill.participants}

    total_bill_subtotal = ZERO
    for item in bill.items:
        total_bill_subtotal += item.price
        participant_id = bill.assigned_participant_id(item.id)
        if participant_id is not None and participant_id in subtotals:
            share_items[participant_id].append(item)
            subtotals[participant_id] += item.price

    tax_shares: dict[UUID, Decimal] = {p.id: ZERO for p in bill.participants}
    fee_shares: dict[UUID, Decimal] = {p.id: ZERO for p in bill.participants}

    has_fees = bill.tax_amount > 0 or bill.service_fee_amount > 0
    if total_bill_subtotal == 0 and has_fees:
        # Nothing to proportion against: split fees equally
        count = Decimal(len(bill.participants))
        for participant in bill.participants:
            tax_shares[participant.id] = bill.tax_amount / count
            fee_shares[participant.id] = bill.service_fee_amount / count
    elif total_bill_subtotal > 0:
        for participant in bill.participants:
            proportion = subtotals[participant.id] / total_bill_subtotal
            tax_shares[participant.id] = bill.tax_amount * proportion
            fee_shares[participant.id] = bill.service_fee_amount * proportion

    return [
        ParticipantShare(
            participant_id=participant.id,
            participant_name=participant.name,
            items=share_items[participant.id],
            subtotal=subtotals[participant.id],
            tax_share=tax_shares[participant.id],
            service_fee_share=fee_shares[participant.id],
            total_owed=(
                subtotals[participant.id]
                + tax_shares[participant.id]
                + fee_shares[participant.id]
            ),
        )
        for participant in bill.participants
    ]
