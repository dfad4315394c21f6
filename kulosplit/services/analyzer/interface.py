"""
Receipt Analyzer Interface

The analyzer turns a receipt photo into a ReceiptAnalysis. It is the only
asynchronous collaborator of the app. Anything implementing this interface
(Gemini, a test fake, a future OCR engine) can be plugged into the upload flow.
"""

from abc import ABC, abstractmethod

from kulosplit.models.bill import ReceiptAnalysis


class AnalyzerError(Exception):
    """Base exception for receipt analysis. The message is user-facing."""
    pass


class AnalyzerConfigurationError(AnalyzerError):
    """The analyzer cannot run (e.g., no API key)."""
    pass


class AnalyzerServiceError(AnalyzerError):
    """Network or service failure. Worth retrying."""
    pass


class AnalyzerTimeoutError(AnalyzerError):
    """The service did not answer in time."""
    pass


class MalformedResponseError(AnalyzerError):
    """The service answered with something that is not a receipt extraction."""
    pass


class EmptyResponseError(AnalyzerError):
    """The service answered with nothing usable."""
    pass


class ReceiptAnalyzerInterface(ABC):
    """Abstract receipt analyzer."""

    @abstractmethod
    async def analyze(self, image_base64: str, mime_type: str) -> ReceiptAnalysis:
        """
        Extract items and totals from a receipt image.

        Args:
            image_base64: Raw image bytes, base64 encoded
            mime_type: Image MIME type (e.g., image/jpeg)

        Returns:
            ReceiptAnalysis with coerced, non-negative amounts

        Raises:
            AnalyzerError: Any failure, with a user-facing message
        """
        pass
