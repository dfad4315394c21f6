"""Bill lifecycle package: state machine, edit operations and controller."""

from kulosplit.lifecycle.operations import (
    BillEditError,
    DuplicateParticipantError,
    InvalidInputError,
    UnknownEntityError,
)
from kulosplit.lifecycle.state_machine import (
    TransitionFailure,
    TransitionFailureReason,
    TransitionResult,
    check_summary_gates,
    transition,
)
from kulosplit.lifecycle.controller import BillLifecycleController

__all__ = [
    "BillEditError",
    "BillLifecycleController",
    "DuplicateParticipantError",
    "InvalidInputError",
    "TransitionFailure",
    "TransitionFailureReason",
    "TransitionResult",
    "UnknownEntityError",
    "check_summary_gates",
    "transition",
]
