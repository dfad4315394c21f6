"""
Main Orchestrator for KuloSplit

This module ties together all the components and defines the
end-to-end receipt upload flow:

    image -> new bill -> analyze (async) -> apply extraction -> edit

DESIGN DECISION: A new upload cancels any analysis still in flight for
the same session. Each upload bumps session.analysis_generation; a result
that comes back for an older generation is logged and discarded, so it
can never overwrite the bill the user is now looking at.

Analyzer failures are not fatal. The session still moves to editing with
an empty bill and an error message, so the user can enter items manually.
"""

import asyncio
import base64
from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from kulosplit.audit import AuditLogger
from kulosplit.config import AppSettings, get_settings, validate_all_settings
from kulosplit.lifecycle import BillLifecycleController, transition
from kulosplit.lifecycle.operations import apply_analysis, create_bill
from kulosplit.models.bill import Bill, ReceiptAnalysis, ReceiptImage
from kulosplit.models.session import AppStep, SplitSession
from kulosplit.services.analyzer import (
    AnalyzerError,
    GeminiReceiptAnalyzer,
    ReceiptAnalyzerInterface,
    UnconfiguredReceiptAnalyzer,
)
from kulosplit.services.storage import (
    AuditStorageInterface,
    HistoryBackendInterface,
    HistoryStore,
    InMemoryHistoryBackend,
    JsonFileHistoryBackend,
)


logger = structlog.get_logger(__name__)

INVALID_IMAGE_MESSAGE = "Please upload a valid image file."
ANALYSIS_FAILED_MESSAGE = "Failed to analyze receipt."
ANALYSIS_SUCCESS_MESSAGE = "Receipt analyzed successfully!"


class ReceiptUploadFlow:
    """
    Orchestrates the receipt upload flow.

    Flow:
    1. Check the upload (image MIME type, non-empty, size limit)
    2. Cancel any in-flight analysis for the session
    3. Create a new bill holding the receipt image
    4. Analyze the image (the only asynchronous step)
    5. Apply the extraction and move to EDIT_BILL_DETAILS
    """

    def __init__(
        self,
        analyzer: ReceiptAnalyzerInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._analyzer = analyzer
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().app
        self._in_flight: dict[UUID, asyncio.Task] = {}

    def _check_upload(self, image_bytes: bytes, mime_type: str) -> Optional[str]:
        """User-facing reason the upload is unacceptable, if any."""
        if not mime_type.startswith("image/"):
            return INVALID_IMAGE_MESSAGE
        if not image_bytes:
            return "The uploaded file is empty."
        if len(image_bytes) > self._settings.max_upload_size_bytes:
            return (
                f"The image is too large. "
                f"Maximum size is {self._settings.max_upload_size_mb} MB."
            )
        return None

    def _cancel_in_flight(self, session: SplitSession) -> None:
        task = self._in_flight.pop(session.session_id, None)
        if task is not None and not task.done():
            task.cancel()

    def _is_stale(self, session: SplitSession, generation: int) -> bool:
        return session.analysis_generation != generation

    def _discard(self, session: SplitSession, bill: Bill, generation: int) -> bool:
        self._audit_logger.log_analysis_discarded(
            bill_id=bill.id,
            generation=generation,
            current_generation=session.analysis_generation,
            correlation_id=session.session_id,
        )
        return False

    def _finish(self, session: SplitSession, bill: Bill, analysis: ReceiptAnalysis) -> None:
        session.current_bill = apply_analysis(bill, analysis)
        session.is_loading = False
        session.step = transition(
            session.step, AppStep.EDIT_BILL_DETAILS, session.current_bill
        ).step

    async def upload_receipt(
        self,
        session: SplitSession,
        image_bytes: bytes,
        mime_type: str,
    ) -> bool:
        """
        Start a new bill from an uploaded receipt and analyze it.

        Returns True when the analysis was applied. Returns False when the
        upload was rejected, the analysis failed (the bill is still created
        and editable) or the result was superseded by a newer upload.
        """
        session.clear_messages()
        mime_type = (mime_type or "").strip().lower()

        reason = self._check_upload(image_bytes, mime_type)
        if reason is not None:
            self._audit_logger.log_receipt_rejected(
                reason=reason,
                correlation_id=session.session_id,
            )
            return session.fail(reason)

        self._cancel_in_flight(session)
        session.analysis_generation += 1
        generation = session.analysis_generation

        image_base64 = base64.b64encode(image_bytes).decode("ascii")
        bill = create_bill(receipt_image=ReceiptImage(
            data_url=f"data:{mime_type};base64,{image_base64}",
            mime_type=mime_type,
        ))
        session.current_bill = bill
        session.viewing_bill = None
        session.is_loading = True

        self._audit_logger.log_receipt_uploaded(
            bill_id=bill.id,
            mime_type=mime_type,
            file_size=len(image_bytes),
            correlation_id=session.session_id,
        )
        self._audit_logger.log_analysis_started(
            bill_id=bill.id,
            generation=generation,
            correlation_id=session.session_id,
        )

        task = asyncio.ensure_future(self._analyzer.analyze(image_base64, mime_type))
        self._in_flight[session.session_id] = task
        try:
            analysis = await task
        except asyncio.CancelledError:
            if self._is_stale(session, generation):
                return self._discard(session, bill, generation)
            session.is_loading = False
            raise
        except AnalyzerError as e:
            if self._is_stale(session, generation):
                return self._discard(session, bill, generation)
            self._audit_logger.log_analysis_failed(
                bill_id=bill.id,
                error_message=str(e),
                correlation_id=session.session_id,
            )
            self._finish(session, bill, ReceiptAnalysis.empty())
            return session.fail(str(e) or ANALYSIS_FAILED_MESSAGE)
        except Exception as e:
            if self._is_stale(session, generation):
                return self._discard(session, bill, generation)
            self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"bill_id": str(bill.id)},
                correlation_id=session.session_id,
            )
            self._finish(session, bill, ReceiptAnalysis.empty())
            return session.fail(ANALYSIS_FAILED_MESSAGE)
        finally:
            if self._in_flight.get(session.session_id) is task:
                del self._in_flight[session.session_id]

        if self._is_stale(session, generation):
            return self._discard(session, bill, generation)

        self._finish(session, bill, analysis)
        session.success_message = ANALYSIS_SUCCESS_MESSAGE
        self._audit_logger.log_analysis_completed(
            bill_id=bill.id,
            item_count=len(analysis.items),
            correlation_id=session.session_id,
        )
        return True


def create_analyzer() -> ReceiptAnalyzerInterface:
    """
    Build the Gemini analyzer, or a stand-in when it is not configured.

    A missing API key must not stop the app: bills can still be entered
    manually.
    """
    try:
        return GeminiReceiptAnalyzer()
    except ValidationError as e:
        logger.warning("analyzer_not_configured", error=str(e))
        return UnconfiguredReceiptAnalyzer()


def create_app_components(
    use_storage: bool = True,
    analyzer: Optional[ReceiptAnalyzerInterface] = None,
    history_backend: Optional[HistoryBackendInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> tuple[BillLifecycleController, ReceiptUploadFlow, HistoryStore]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to persist history to the JSON file.
                    Set to False for an in-memory history.
        analyzer: Receipt analyzer; defaults to Gemini (see create_analyzer)
        history_backend: Overrides the backend chosen by use_storage
        audit_storage: Optional persistent audit trail

    Returns:
        (controller, upload_flow, history_store)
    """
    checks = validate_all_settings()
    for name in ("gemini", "storage", "app"):
        if not checks[name]:
            logger.warning("settings_invalid", group=name, error=checks.get(f"{name}_error"))

    settings = get_settings()
    app_settings = settings.app
    audit_logger = AuditLogger(audit_storage)

    if history_backend is None:
        if use_storage:
            history_backend = JsonFileHistoryBackend(settings.storage)
        else:
            history_backend = InMemoryHistoryBackend()
    history_store = HistoryStore(history_backend)

    controller = BillLifecycleController(
        history_store,
        settings=app_settings,
        audit_logger=audit_logger,
    )
    upload_flow = ReceiptUploadFlow(
        analyzer or create_analyzer(),
        audit_logger=audit_logger,
        settings=app_settings,
    )

    return controller, upload_flow, history_store
