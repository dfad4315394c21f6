"""
Bill Lifecycle State Machine

The four steps of the app are an explicit enum (AppStep) and every move
between them goes through `transition`, which returns a TransitionResult:
either the new step, or the unchanged step plus a structured reason.

Rules:
- UPLOAD_RECEIPT and VIEW_HISTORY are always reachable
- EDIT_BILL_DETAILS needs an in-progress bill
- VIEW_SUMMARY needs no analysis in flight and a bill that passes
  every summary gate (see BillValidator)

A rejected transition changes nothing, so the caller can simply retry
after the user fixes the problem.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from kulosplit.models.bill import Bill
from kulosplit.models.session import AppStep
from kulosplit.validation import BillValidator


class TransitionFailureReason(str, Enum):
    """Why a transition was refused."""
    ANALYSIS_IN_PROGRESS = "analysis_in_progress"
    NO_BILL = "no_bill"
    NO_PARTICIPANTS = "no_participants"
    NO_ITEMS = "no_items"
    UNASSIGNED_ITEMS = "unassigned_items"


class TransitionFailure(BaseModel):
    reason: TransitionFailureReason
    message: str
    unassigned_count: Optional[int] = None


class TransitionResult(BaseModel):
    """Outcome of a requested step change."""

    allowed: bool
    step: AppStep
    failure: Optional[TransitionFailure] = None

    @classmethod
    def allow(cls, step: AppStep) -> 'TransitionResult':
        return cls(allowed=True, step=step)

    @classmethod
    def reject(cls, current: AppStep, failure: TransitionFailure) -> 'TransitionResult':
        return cls(allowed=False, step=current, failure=failure)


_validator = BillValidator()


def check_summary_gates(
    bill: Optional[Bill],
    is_loading: bool = False,
) -> Optional[TransitionFailure]:
    """First unmet precondition for showing a live bill's summary, if any."""
    if is_loading:
        return TransitionFailure(
            reason=TransitionFailureReason.ANALYSIS_IN_PROGRESS,
            message="Please wait until the receipt analysis has finished.",
        )

    result = _validator.validate_for_summary(bill)
    issue = result.first_error
    if issue is None:
        return None

    return TransitionFailure(
        reason=TransitionFailureReason(issue.issue_type),
        message=issue.message,
        unassigned_count=issue.count,
    )


def transition(
    current: AppStep,
    target: AppStep,
    bill: Optional[Bill],
    is_loading: bool = False,
) -> TransitionResult:
    """
    Decide whether the lifecycle may move from `current` to `target`.

    Pure: the caller applies the returned step.
    """
    if target in (AppStep.UPLOAD_RECEIPT, AppStep.VIEW_HISTORY):
        return TransitionResult.allow(target)

    if target == AppStep.EDIT_BILL_DETAILS:
        if bill is None:
            return TransitionResult.reject(current, TransitionFailure(
                reason=TransitionFailureReason.NO_BILL,
                message="No bill data available.",
            ))
        return TransitionResult.allow(target)

    failure = check_summary_gates(bill, is_loading)
    if failure is not None:
        return TransitionResult.reject(current, failure)
    return TransitionResult.allow(target)
