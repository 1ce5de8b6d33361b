"""Custom exceptions for the crypto analysis pipeline.

Gateways and engines raise these; the orchestrator decides which of them
are fatal to a request and the HTTP layer maps them to status codes.
"""
from typing import Any, Optional


class AnalysisError(Exception):
    """Base exception for all analysis pipeline errors."""


class UpstreamUnavailable(AnalysisError):
    """Raised when an upstream service cannot be reached or answers with a non-2xx status."""

    def __init__(self, message: str, status: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status = status
        self.payload = payload


class MalformedUpstreamPayload(AnalysisError):
    """Raised when an upstream response does not have the expected shape."""


class ModelOutputUnparseable(AnalysisError):
    """Raised when no valid JSON can be extracted from language-model output."""


class InsufficientHistory(AnalysisError):
    """Raised when a candle series is too short to derive anything at all (empty input)."""


class InvalidRequest(AnalysisError):
    """Raised when an inbound request cannot be served because its input is bad."""


class UnknownSymbol(InvalidRequest):
    """Raised when the exchange does not list the requested base asset."""
