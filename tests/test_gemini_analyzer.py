"""
Tests for Gemini response parsing and the analyzer's error handling.

The Gemini model is replaced by a fake with generate_content_async,
so no network calls are made.
"""

import asyncio
import base64

import pytest
from decimal import Decimal

from kulosplit.config import GeminiSettings
from kulosplit.services.analyzer import (
    AnalyzerError,
    AnalyzerServiceError,
    AnalyzerTimeoutError,
    EmptyResponseError,
    GeminiReceiptAnalyzer,
    MalformedResponseError,
    parse_analysis_response,
    strip_code_fences,
)


IMAGE_B64 = base64.b64encode(b"\xff\xd8\xff\xe0fake-jpeg").decode("ascii")

GOOD_RESPONSE = """{
  "items": [
    {"name": "Nasi Goreng Ayam", "quantity": 1, "price": 25000},
    {"name": "Es Teh Manis", "quantity": 2, "price": 10000}
  ],
  "subtotal": 35000,
  "tax": 3500,
  "serviceFee": 1750,
  "total": 40250
}"""


class FakeResponse:
    def __init__(self, text):
        self._text = text

    @property
    def text(self):
        if isinstance(self._text, Exception):
            raise self._text
        return self._text


class FakeModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(self, *outcomes, delay=0):
        self._outcomes = list(outcomes)
        self._delay = delay
        self.calls = []

    async def generate_content_async(self, contents):
        self.calls.append(contents)
        if self._delay:
            await asyncio.sleep(self._delay)
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, FakeResponse):
            return outcome
        if isinstance(outcome, BaseException):
            raise outcome
        return FakeResponse(outcome)


def make_analyzer(model, **overrides):
    settings = GeminiSettings(api_key="test-key", **overrides)
    return GeminiReceiptAnalyzer(settings=settings, model=model)


class TestStripCodeFences:
    """Tests for markdown fence removal."""

    def test_json_fence(self):
        """Test ```json fences are removed."""
        assert strip_code_fences('```json\n{"items": []}\n```') == '{"items": []}'

    def test_bare_fence(self):
        """Test fences without a language tag."""
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence(self):
        """Test plain JSON is only trimmed."""
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


class TestParseAnalysisResponse:
    """Tests for coercing the model's JSON."""

    def test_well_formed(self):
        """Test a complete extraction."""
        analysis = parse_analysis_response(GOOD_RESPONSE)

        assert [i.name for i in analysis.items] == ["Nasi Goreng Ayam", "Es Teh Manis"]
        assert analysis.items[1].quantity == Decimal("2")
        assert analysis.items[1].price == Decimal("10000")
        assert analysis.tax == Decimal("3500")
        assert analysis.service_fee == Decimal("1750")
        assert analysis.subtotal == Decimal("35000")
        assert analysis.total == Decimal("40250")

    def test_fenced(self):
        """Test fenced JSON is accepted."""
        analysis = parse_analysis_response(f"```json\n{GOOD_RESPONSE}\n```")
        assert len(analysis.items) == 2

    def test_missing_fields_get_defaults(self):
        """Test quantity -> 1, price -> 0, fees -> 0, totals -> None."""
        analysis = parse_analysis_response('{"items": [{"name": "Kerupuk"}, {}]}')

        first, second = analysis.items
        assert first.quantity == Decimal("1")
        assert first.price == Decimal("0")
        assert second.name == "Unknown Item"
        assert analysis.tax == Decimal("0")
        assert analysis.service_fee == Decimal("0")
        assert analysis.subtotal is None
        assert analysis.total is None

    def test_invalid_numbers_coerced(self):
        """Test junk, negative and non-positive values are made safe."""
        analysis = parse_analysis_response(
            '{"items": [{"name": "Sate", "quantity": 0, "price": -5}, '
            '{"name": "Soto", "quantity": "dua", "price": "abc"}], '
            '"tax": "n/a", "serviceFee": -100, "total": "Rp 1"}'
        )

        sate, soto = analysis.items
        assert sate.quantity == Decimal("1")
        assert sate.price == Decimal("0")
        assert soto.quantity == Decimal("1")
        assert soto.price == Decimal("0")
        assert analysis.tax == Decimal("0")
        assert analysis.service_fee == Decimal("0")
        assert analysis.total is None

    def test_numeric_strings_accepted(self):
        """Test numbers sent as strings are parsed."""
        analysis = parse_analysis_response('{"items": [{"name": "Bakso", "price": "15000"}]}')
        assert analysis.items[0].price == Decimal("15000")

    def test_non_object_items_skipped(self):
        """Test stray values in the items list are ignored."""
        analysis = parse_analysis_response('{"items": ["Bakso", {"name": "Soto"}]}')
        assert [i.name for i in analysis.items] == ["Soto"]

    def test_not_json(self):
        """Test unparseable text is malformed."""
        with pytest.raises(MalformedResponseError):
            parse_analysis_response("Sorry, I cannot read this receipt.")

    def test_wrong_shape(self):
        """Test a JSON array is malformed."""
        with pytest.raises(MalformedResponseError):
            parse_analysis_response("[1, 2, 3]")

    def test_items_not_a_list(self):
        """Test items must be a list."""
        with pytest.raises(MalformedResponseError):
            parse_analysis_response('{"items": "none"}')

    @pytest.mark.parametrize("text", [None, "", "   ", "```json\n```"])
    def test_empty(self, text):
        """Test empty answers are reported as empty."""
        with pytest.raises(EmptyResponseError):
            parse_analysis_response(text)


class TestGeminiReceiptAnalyzer:
    """Tests for the analyzer with a fake model."""

    def test_analyze_sends_image_and_prompt(self):
        """Test the request carries the decoded image bytes."""
        model = FakeModel(GOOD_RESPONSE)
        analyzer = make_analyzer(model)

        analysis = asyncio.run(analyzer.analyze(IMAGE_B64, "image/jpeg"))

        assert len(analysis.items) == 2
        image_part, prompt = model.calls[0]
        assert image_part == {"mime_type": "image/jpeg", "data": b"\xff\xd8\xff\xe0fake-jpeg"}
        assert "JSON" in prompt

    def test_service_errors_are_retried(self):
        """Test a transient failure is retried."""
        model = FakeModel(ConnectionError("reset"), GOOD_RESPONSE)
        analyzer = make_analyzer(model, max_attempts=2)

        analysis = asyncio.run(analyzer.analyze(IMAGE_B64, "image/jpeg"))

        assert len(analysis.items) == 2
        assert len(model.calls) == 2

    def test_service_error_after_retries(self):
        """Test the last service error is raised."""
        model = FakeModel(ConnectionError("reset"))
        analyzer = make_analyzer(model, max_attempts=1)

        with pytest.raises(AnalyzerServiceError, match="Gemini API Error"):
            asyncio.run(analyzer.analyze(IMAGE_B64, "image/jpeg"))

    def test_malformed_not_retried(self):
        """Test a bad answer fails immediately."""
        model = FakeModel("not json", GOOD_RESPONSE)
        analyzer = make_analyzer(model, max_attempts=3)

        with pytest.raises(MalformedResponseError):
            asyncio.run(analyzer.analyze(IMAGE_B64, "image/jpeg"))
        assert len(model.calls) == 1

    def test_blocked_response_is_empty(self):
        """Test a response without text is reported as empty."""
        model = FakeModel(FakeResponse(ValueError("no parts")))
        analyzer = make_analyzer(model)

        with pytest.raises(EmptyResponseError):
            asyncio.run(analyzer.analyze(IMAGE_B64, "image/jpeg"))

    def test_timeout(self):
        """Test a slow service is cut off."""
        model = FakeModel(GOOD_RESPONSE, delay=1)
        analyzer = make_analyzer(model, request_timeout_seconds=0.01, max_attempts=1)

        with pytest.raises(AnalyzerTimeoutError):
            asyncio.run(analyzer.analyze(IMAGE_B64, "image/jpeg"))

    def test_bad_base64(self):
        """Test an undecodable image is an analyzer error."""
        analyzer = make_analyzer(FakeModel())

        with pytest.raises(AnalyzerError, match="could not be read"):
            asyncio.run(analyzer.analyze("not base64!!", "image/jpeg"))


class TestGeminiSettings:
    """Tests for analyzer configuration."""

    def test_blank_api_key_rejected(self):
        """Test a blank key fails at startup."""
        with pytest.raises(ValueError):
            GeminiSettings(api_key="   ")

    def test_defaults(self):
        """Test default model settings."""
        settings = GeminiSettings(api_key="k")
        assert settings.max_attempts == 3
        assert settings.request_timeout_seconds == 60.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
