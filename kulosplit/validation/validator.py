"""
Summary Gate Validation

Before a bill may leave EDIT_BILL_DETAILS for VIEW_SUMMARY it must:
1. exist
2. have at least one participant
3. have at least one item
4. have every item assigned to someone

Each check produces its own ValidationIssue with a distinct user-facing
message, in the order above. The lifecycle reports the first one.

IMPORTANT: Validation NEVER fixes the bill. It only reports.
"""

from typing import Optional

from kulosplit.models.bill import Bill, ValidationIssue, ValidationResult


NO_BILL = "no_bill"
NO_PARTICIPANTS = "no_participants"
NO_ITEMS = "no_items"
UNASSIGNED_ITEMS = "unassigned_items"


class BillValidator:
    """Checks whether a bill is complete enough to be summarized and saved."""

    def check_bill_exists(self, bill: Optional[Bill]) -> Optional[ValidationIssue]:
        if bill is None:
            return ValidationIssue(
                field="bill",
                issue_type=NO_BILL,
                message="No bill data available.",
                severity="error",
            )
        return None

    def check_participants(self, bill: Bill) -> Optional[ValidationIssue]:
        if not bill.participants:
            return ValidationIssue(
                field="participants",
                issue_type=NO_PARTICIPANTS,
                message="Please add participants before viewing summary.",
                severity="error",
            )
        return None

    def check_items(self, bill: Bill) -> Optional[ValidationIssue]:
        if not bill.items:
            return ValidationIssue(
                field="items",
                issue_type=NO_ITEMS,
                message="Please add items to the bill.",
                severity="error",
            )
        return None

    def check_assignments(self, bill: Bill) -> Optional[ValidationIssue]:
        unassigned = len(bill.unassigned_items)
        if unassigned:
            return ValidationIssue(
                field="assignments",
                issue_type=UNASSIGNED_ITEMS,
                message=f"Please assign all items. {unassigned} item(s) are unassigned.",
                severity="error",
                count=unassigned,
            )
        return None

    def validate_for_summary(self, bill: Optional[Bill]) -> ValidationResult:
        """
        Run every summary gate.

        Returns a ValidationResult whose issues are in gate order.
        When the bill is missing, no further gates run.
        """
        missing = self.check_bill_exists(bill)
        if missing:
            return ValidationResult(issues=[missing])

        checks = (
            self.check_participants(bill),
            self.check_items(bill),
            self.check_assignments(bill),
        )
        return ValidationResult(
            bill_id=bill.id,
            issues=[issue for issue in checks if issue is not None],
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """The single message to show for a validation result."""
        first = result.first_error
        if first is None:
            return "Bill is ready for the summary."
        return first.message
