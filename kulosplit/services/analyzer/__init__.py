"""Receipt analyzer services package."""

from kulosplit.services.analyzer.interface import (
    AnalyzerConfigurationError,
    AnalyzerError,
    AnalyzerServiceError,
    AnalyzerTimeoutError,
    EmptyResponseError,
    MalformedResponseError,
    ReceiptAnalyzerInterface,
)
from kulosplit.services.analyzer.gemini_service import (
    GeminiReceiptAnalyzer,
    UnconfiguredReceiptAnalyzer,
    parse_analysis_response,
    strip_code_fences,
)

__all__ = [
    "AnalyzerConfigurationError",
    "AnalyzerError",
    "AnalyzerServiceError",
    "AnalyzerTimeoutError",
    "EmptyResponseError",
    "GeminiReceiptAnalyzer",
    "MalformedResponseError",
    "ReceiptAnalyzerInterface",
    "UnconfiguredReceiptAnalyzer",
    "parse_analysis_response",
    "strip_code_fences",
]
