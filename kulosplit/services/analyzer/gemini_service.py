"""
Receipt Analysis using Gemini

DESIGN DECISION: We use Gemini's vision model because:
1. It reads photographed receipts without a separate OCR step
2. It can be asked for JSON directly (response_mime_type)
3. It copes with local receipt formats (IDR amounts, mixed languages)

This service handles:
1. Sending the receipt image and extraction prompt to Gemini
2. Cleaning the response (markdown fences) and parsing the JSON
3. Coercing every field into a safe ReceiptAnalysis

CRITICAL: The extraction is only a starting point. Subtotal and total are
informational; the user edits items and fees before anything is split.
"""

import asyncio
import base64
import binascii
import json
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import google.generativeai as genai
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from kulosplit.config import GeminiSettings, get_settings
from kulosplit.models.bill import ZERO, AnalyzedItem, ReceiptAnalysis
from kulosplit.services.analyzer.interface import (
    AnalyzerConfigurationError,
    AnalyzerError,
    AnalyzerServiceError,
    AnalyzerTimeoutError,
    EmptyResponseError,
    MalformedResponseError,
    ReceiptAnalyzerInterface,
)


logger = structlog.get_logger(__name__)


RECEIPT_PROMPT = """You are extracting data from a photo of a shop or restaurant receipt.

Respond with exactly one JSON object and nothing else (no markdown, no comments).
Use only these keys:

{
  "items": [
    {"name": "string", "quantity": number, "price": number}
  ],
  "subtotal": number or null,
  "tax": number or null,
  "serviceFee": number or null,
  "total": number or null
}

Rules:
- "name": short description of the line item.
- "quantity": how many were bought. Use 1 when the receipt does not say.
- "price": the TOTAL price of the line (quantity times unit price), not the unit price.
- "subtotal": amount before tax and service charge, or null if not printed.
- "tax": total tax, or null if not printed.
- "serviceFee": total service charge, or null if not printed.
- "total": grand total, or null if not printed.
- Every amount is a plain number: no currency symbols, no thousands separators
  (write 25000, not "Rp 25.000").
- Separate every array element and every property with a comma.

Example line item for an Indonesian receipt:
{"name": "Nasi Goreng Ayam", "quantity": 1, "price": 25000}

If the image is not a receipt or cannot be read, return:
{"items": [], "subtotal": null, "tax": null, "serviceFee": null, "total": null}
"""

_FENCE_RE = re.compile(r"^```(\w*)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)

MALFORMED_MESSAGE = (
    "The AI couldn't understand the receipt's structure as expected. "
    "Please try with a clearer image or a different receipt."
)
EMPTY_MESSAGE = (
    "Received an empty response from the AI. The receipt might be unreadable."
)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if the model added one."""
    text = text.strip()
    match = _FENCE_RE.match(text)
    if match:
        return (match.group(2) or "").strip()
    return text


def coerce_number(value: Any) -> Optional[Decimal]:
    """Best-effort conversion of a JSON value to a finite Decimal."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def _coerce_item(raw: dict) -> AnalyzedItem:
    name = str(raw.get("name") or "").strip()[:200] or "Unknown Item"

    quantity = coerce_number(raw.get("quantity"))
    if quantity is None or quantity <= 0:
        quantity = Decimal("1")

    price = coerce_number(raw.get("price"))
    if price is None or price < 0:
        price = ZERO

    return AnalyzedItem(name=name, quantity=quantity, price=price)


def _fee(value: Any) -> Decimal:
    number = coerce_number(value)
    if number is None or number < 0:
        return ZERO
    return number


def parse_analysis_response(text: Optional[str]) -> ReceiptAnalysis:
    """
    Turn the model's raw text into a ReceiptAnalysis.

    Missing or invalid values fall back to safe defaults:
    quantity -> 1, price -> 0, tax -> 0, serviceFee -> 0,
    subtotal/total -> None.

    Raises:
        EmptyResponseError: Nothing left after stripping fences
        MalformedResponseError: Not JSON, or not the expected shape
    """
    cleaned = strip_code_fences(text or "")
    if not cleaned:
        raise EmptyResponseError(EMPTY_MESSAGE)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning("analysis_json_invalid", error=str(e), response=cleaned[:500])
        raise MalformedResponseError(MALFORMED_MESSAGE) from e

    if not isinstance(data, dict):
        raise MalformedResponseError(MALFORMED_MESSAGE)

    raw_items = data.get("items") or []
    if not isinstance(raw_items, list):
        raise MalformedResponseError(MALFORMED_MESSAGE)

    items = []
    for raw in raw_items:
        if isinstance(raw, dict):
            items.append(_coerce_item(raw))
        else:
            logger.warning("analysis_item_skipped", item=repr(raw)[:200])

    return ReceiptAnalysis(
        items=items,
        subtotal=coerce_number(data.get("subtotal")),
        tax=_fee(data.get("tax")),
        service_fee=_fee(data.get("serviceFee")),
        total=coerce_number(data.get("total")),
    )


class GeminiReceiptAnalyzer(ReceiptAnalyzerInterface):
    """
    Receipt analyzer backed by the Gemini API.

    IMPORTANT BOUNDARIES:
    1. Every call is bounded by request_timeout_seconds
    2. Only service failures are retried; bad answers are not
    3. Every failure surfaces as an AnalyzerError with a user-facing message
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._model = model or self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        return genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            }
        )

    async def _call_model(self, image_bytes: bytes, mime_type: str) -> str:
        timeout = self._settings.request_timeout_seconds
        try:
            response = await asyncio.wait_for(
                self._model.generate_content_async([
                    {"mime_type": mime_type, "data": image_bytes},
                    RECEIPT_PROMPT,
                ]),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise AnalyzerTimeoutError(
                f"The receipt analysis did not finish within {timeout:.0f} seconds. "
                "Please try again."
            ) from e
        except Exception as e:
            raise AnalyzerServiceError(f"Gemini API Error: {e}") from e

        try:
            # .text raises ValueError when the response was blocked or has no parts
            return response.text or ""
        except (ValueError, AttributeError) as e:
            raise EmptyResponseError(EMPTY_MESSAGE) from e

    async def analyze(self, image_base64: str, mime_type: str) -> ReceiptAnalysis:
        try:
            image_bytes = base64.b64decode(image_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise AnalyzerError("The receipt image could not be read.") from e

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.max_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
            retry=retry_if_exception_type(AnalyzerServiceError),
            reraise=True,
        )

        text = ""
        async for attempt in retrying:
            with attempt:
                text = await self._call_model(image_bytes, mime_type)

        analysis = parse_analysis_response(text)
        logger.info(
            "receipt_analyzed",
            model=self._settings.model_name,
            item_count=len(analysis.items),
        )
        return analysis


class UnconfiguredReceiptAnalyzer(ReceiptAnalyzerInterface):
    """
    Stand-in used when Gemini settings are missing.

    Uploads still work: the analysis fails with a clear message and the
    user continues by entering items manually.
    """

    def __init__(self, reason: str = "Gemini API Key is not configured."):
        self._reason = reason

    async def analyze(self, image_base64: str, mime_type: str) -> ReceiptAnalysis:
        raise AnalyzerConfigurationError(self._reason)
