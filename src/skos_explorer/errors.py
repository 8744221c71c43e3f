"""
Error types shared by the transport client, the probes and the orchestrator.

Transport failures are classified once, in the transport client, and then
forwarded untouched: callers never re-map an error code.
"""
from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Classification of a failed query round-trip."""

    NETWORK = "NETWORK"
    CORS_BLOCKED = "CORS_BLOCKED"
    HTTP_ERROR = "HTTP_ERROR"
    TIMEOUT = "TIMEOUT"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"


# Only these are worth another attempt with the same query
RETRYABLE_CODES = frozenset({ErrorCode.NETWORK, ErrorCode.TIMEOUT})


class TransportError(Exception):
    """A query could not be executed or its response could not be read.

    Attributes:
        code: Classified failure kind.
        message: Human-readable message suitable for the UI.
        status: HTTP status code, only set for ``ErrorCode.HTTP_ERROR``.
        details: Optional low-level detail (exception text, content type).
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status: int | None = None,
        details: str | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status
        self.details = details

    @property
    def retryable(self) -> bool:
        return self.code in RETRYABLE_CODES

    def to_dict(self) -> dict:
        result = {"code": self.code.value, "message": self.message}
        if self.status is not None:
            result["status"] = self.status
        if self.details:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        if self.status is not None:
            return f"TransportError({self.code.value}, {self.status}, {self.message!r})"
        return f"TransportError({self.code.value}, {self.message!r})"


class CapabilityAmbiguous(Exception):
    """An endpoint answered, but the answer fits no detection strategy.

    Raised and handled inside graph detection; the outcome is an unknown
    capability, not a failed analysis.
    """


class AnalysisAborted(Exception):
    """An analysis step failed; the run produced no snapshot.

    Attributes:
        run: The failed ``AnalysisRun`` (its log shows the failing step).
        state: The step that failed.
        error: The originating ``TransportError``.
    """

    def __init__(self, run, state, error: TransportError):
        super().__init__(error.message)
        self.run = run
        self.state = state
        self.error = error
