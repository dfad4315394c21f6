"""
Bill Lifecycle Controller

Owns the rules for moving a SplitSession through the app:

    UPLOAD_RECEIPT -> EDIT_BILL_DETAILS -> VIEW_SUMMARY -> (save) -> UPLOAD_RECEIPT
                     VIEW_HISTORY is reachable from anywhere

DESIGN DECISION: The controller is stateless. The session is passed in
to every call, and the controller only reads/writes that session and the
shared history store.

Every action clears the session's messages first. A rejected action sets
session.error_message, returns a falsy value and leaves the bill, step
and history exactly as they were.
"""

from typing import Callable, Optional
from uuid import UUID

from kulosplit.allocation import calculate_shares, shares_grand_total
from kulosplit.audit import AuditLogger
from kulosplit.config import AppSettings, get_settings
from kulosplit.lifecycle import operations
from kulosplit.lifecycle.operations import Amount, BillEditError
from kulosplit.lifecycle.state_machine import check_summary_gates, transition
from kulosplit.models.bill import Bill, ParticipantShare, StoredBill, utc_now
from kulosplit.models.session import AppStep, SplitSession
from kulosplit.services.storage import HistoryStore
from kulosplit.sharing import build_whatsapp_url, generate_share_message


ANALYSIS_IN_PROGRESS_MESSAGE = "Please wait until the receipt analysis has finished."
NO_BILL_MESSAGE = "No bill in progress. Upload a receipt to start a new bill."


class BillLifecycleController:
    """
    Applies user actions to a session.

    Edits go through kulosplit.lifecycle.operations (pure Bill -> Bill
    functions); step changes go through the state machine.
    """

    def __init__(
        self,
        history_store: HistoryStore,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._history = history_store
        self._settings = settings or get_settings().app
        self._audit = audit_logger or AuditLogger()

    # =========================================================================
    # EDITING
    # =========================================================================

    def _edit(
        self,
        session: SplitSession,
        operation: str,
        apply: Callable[[Bill], Bill],
        details: Optional[dict] = None,
    ) -> bool:
        """Run one edit operation against the session's in-progress bill."""
        session.clear_messages()

        reason = None
        if session.is_loading:
            reason = ANALYSIS_IN_PROGRESS_MESSAGE
        elif session.current_bill is None:
            reason = NO_BILL_MESSAGE

        if reason is None:
            try:
                updated = apply(session.current_bill)
            except BillEditError as e:
                reason = str(e)

        if reason is not None:
            self._audit.log_edit_rejected(
                operation=operation,
                reason=reason,
                correlation_id=session.session_id,
                bill_id=session.current_bill.id if session.current_bill else None,
            )
            return session.fail(reason)

        session.current_bill = updated
        self._audit.log_bill_edited(
            bill_id=updated.id,
            operation=operation,
            correlation_id=session.session_id,
            details=details,
        )
        return True

    def add_participant(self, session: SplitSession, name: str) -> bool:
        return self._edit(
            session, "add_participant",
            lambda bill: operations.add_participant(bill, name),
        )

    def remove_participant(self, session: SplitSession, participant_id: UUID) -> bool:
        return self._edit(
            session, "remove_participant",
            lambda bill: operations.remove_participant(bill, participant_id),
            {"participant_id": str(participant_id)},
        )

    def add_item(
        self,
        session: SplitSession,
        name: str = "New Item",
        quantity: Amount = 1,
        price: Amount = 0,
    ) -> bool:
        return self._edit(
            session, "add_item",
            lambda bill: operations.add_item(bill, name, quantity, price),
        )

    def update_item(
        self,
        session: SplitSession,
        item_id: UUID,
        name: Optional[str] = None,
        quantity: Optional[Amount] = None,
        price: Optional[Amount] = None,
    ) -> bool:
        return self._edit(
            session, "update_item",
            lambda bill: operations.update_item(bill, item_id, name, quantity, price),
            {"item_id": str(item_id)},
        )

    def remove_item(self, session: SplitSession, item_id: UUID) -> bool:
        return self._edit(
            session, "remove_item",
            lambda bill: operations.remove_item(bill, item_id),
            {"item_id": str(item_id)},
        )

    def assign_item(
        self,
        session: SplitSession,
        item_id: UUID,
        participant_id: Optional[UUID],
    ) -> bool:
        return self._edit(
            session, "assign_item",
            lambda bill: operations.assign_item(bill, item_id, participant_id),
            {
                "item_id": str(item_id),
                "participant_id": str(participant_id) if participant_id else None,
            },
        )

    def set_tax_amount(self, session: SplitSession, amount: Amount) -> bool:
        return self._edit(
            session, "set_tax_amount",
            lambda bill: operations.set_tax_amount(bill, amount),
        )

    def set_service_fee_amount(self, session: SplitSession, amount: Amount) -> bool:
        return self._edit(
            session, "set_service_fee_amount",
            lambda bill: operations.set_service_fee_amount(bill, amount),
        )

    def apply_default_service_fee(self, session: SplitSession) -> bool:
        percentage = self._settings.default_service_fee_percentage
        return self._edit(
            session, "apply_default_service_fee",
            lambda bill: operations.apply_default_service_fee(bill, percentage),
            {"percentage": str(percentage)},
        )

    def set_description(self, session: SplitSession, description: Optional[str]) -> bool:
        return self._edit(
            session, "set_description",
            lambda bill: operations.set_description(bill, description),
        )

    # =========================================================================
    # STEPS
    # =========================================================================

    def view_summary(self, session: SplitSession) -> bool:
        """Leave editing for the live summary, if every gate passes."""
        session.clear_messages()
        result = transition(
            session.step,
            AppStep.VIEW_SUMMARY,
            session.current_bill,
            session.is_loading,
        )
        if not result.allowed:
            self._audit.log_summary_blocked(
                reason=result.failure.reason.value,
                message=result.failure.message,
                correlation_id=session.session_id,
                bill_id=session.current_bill.id if session.current_bill else None,
            )
            return session.fail(result.failure.message)

        session.viewing_bill = None
        session.step = result.step
        self._audit.log_summary_viewed(
            bill_id=session.current_bill.id,
            from_history=False,
            correlation_id=session.session_id,
        )
        return True

    def back_to_edit(self, session: SplitSession) -> bool:
        """Return from the summary to editing the in-progress bill."""
        session.clear_messages()
        result = transition(session.step, AppStep.EDIT_BILL_DETAILS, session.current_bill)
        if not result.allowed:
            return session.fail(result.failure.message)

        session.viewing_bill = None
        session.step = result.step
        return True

    def start_new_bill(self, session: SplitSession) -> None:
        """Discard the in-progress and viewed bills and go back to upload."""
        session.clear_messages()
        if session.is_loading:
            # Whatever the in-flight analysis returns now belongs to nobody
            session.analysis_generation += 1
            session.is_loading = False
        session.current_bill = None
        session.viewing_bill = None
        session.step = AppStep.UPLOAD_RECEIPT

    def view_history(self, session: SplitSession) -> list[StoredBill]:
        """Open the history list. Always allowed; keeps the in-progress bill."""
        session.clear_messages()
        session.viewing_bill = None
        session.step = transition(session.step, AppStep.VIEW_HISTORY, session.current_bill).step
        return self._history.load()

    def view_stored_bill(self, session: SplitSession, bill_id: UUID) -> bool:
        """Show a saved bill read-only, using the shares frozen at save time."""
        session.clear_messages()
        stored = self._history.get(bill_id)
        if stored is None:
            return session.fail("Bill not found in history.")

        session.viewing_bill = stored
        session.step = AppStep.VIEW_SUMMARY
        self._audit.log_summary_viewed(
            bill_id=stored.id,
            from_history=True,
            correlation_id=session.session_id,
        )
        return True

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def save_bill(self, session: SplitSession) -> Optional[StoredBill]:
        """
        Freeze the live bill's shares and append it to history.

        The allocation is computed exactly once, here. On success the
        in-progress bill is discarded and the session returns to upload.
        """
        session.clear_messages()

        if session.viewing_bill is not None or session.step != AppStep.VIEW_SUMMARY:
            session.fail("Open the bill summary before saving.")
            return None

        bill = session.current_bill
        failure = check_summary_gates(bill, session.is_loading)
        if failure is not None:
            session.fail(failure.message)
            return None

        shares = calculate_shares(bill)
        stored = StoredBill(
            **dict(bill),
            saved_at=utc_now(),
            calculated_shares=shares,
        )

        history = self._history.add(stored)
        if not any(b.id == stored.id for b in history):
            self._audit.log_storage_error(
                operation="save_bill",
                error_message="History store did not persist the bill",
                correlation_id=session.session_id,
            )
            session.fail("The bill could not be saved. Please try again.")
            return None

        self._audit.log_bill_saved(
            bill_id=stored.id,
            participant_count=len(shares),
            grand_total=shares_grand_total(shares),
            correlation_id=session.session_id,
        )
        session.current_bill = None
        session.viewing_bill = None
        session.step = AppStep.UPLOAD_RECEIPT
        session.success_message = "Bill saved successfully!"
        return stored

    def history(self) -> list[StoredBill]:
        """Saved bills, most recent first."""
        return self._history.load()

    def delete_stored_bill(self, session: SplitSession, bill_id: UUID) -> list[StoredBill]:
        session.clear_messages()

        if self._history.get(bill_id) is None:
            session.fail("Bill not found in history.")
            return self._history.load()

        history = self._history.delete(bill_id)
        if any(b.id == bill_id for b in history):
            self._audit.log_storage_error(
                operation="delete_bill",
                error_message="History store did not delete the bill",
                correlation_id=session.session_id,
            )
            session.fail("The bill could not be deleted. Please try again.")
            return history

        self._audit.log_bill_deleted(bill_id=bill_id, correlation_id=session.session_id)
        session.success_message = "Bill deleted."
        if session.viewing_bill is not None and session.viewing_bill.id == bill_id:
            session.viewing_bill = None
            session.step = AppStep.VIEW_HISTORY
        return history

    def clear_history(self, session: SplitSession) -> list[StoredBill]:
        """Delete every saved bill and reset the session to upload."""
        session.clear_messages()
        removed = len(self._history.load())

        history = self._history.clear()
        if history:
            self._audit.log_storage_error(
                operation="clear_history",
                error_message="History store did not clear",
                correlation_id=session.session_id,
            )
            session.fail("History could not be cleared. Please try again.")
            return history

        self._audit.log_history_cleared(removed_count=removed, correlation_id=session.session_id)
        self.start_new_bill(session)
        session.success_message = "All bill history cleared."
        return history

    # =========================================================================
    # READ-ONLY VIEWS
    # =========================================================================

    def displayed_bill(self, session: SplitSession) -> Optional[Bill]:
        """The bill a summary would show: a viewed stored bill wins."""
        return session.viewing_bill or session.current_bill

    def current_shares(self, session: SplitSession) -> list[ParticipantShare]:
        """
        Shares for the displayed bill.

        Stored bills return their frozen snapshot; live bills are recomputed.
        """
        if session.viewing_bill is not None:
            return list(session.viewing_bill.calculated_shares)
        if session.current_bill is not None:
            return calculate_shares(session.current_bill)
        return []

    def share_summary(self, session: SplitSession) -> Optional[tuple[str, str]]:
        """
        Build the shareable text and WhatsApp link for the displayed bill.

        Returns (message, url), or None with session.error_message set.
        """
        session.clear_messages()
        bill = self.displayed_bill(session)
        if bill is None:
            session.fail("No bill data to share.")
            return None

        shares = self.current_shares(session)
        if not shares:
            session.fail("No participant shares to display for sharing.")
            return None

        message = generate_share_message(bill, shares, self._settings)
        session.success_message = (
            "Bill details prepared for WhatsApp. "
            "If it didn't open, ensure WhatsApp is accessible."
        )
        return message, build_whatsapp_url(message)
