"""Application exception hierarchy.

All custom exceptions inherit from RAGPlatformError.
Each exception carries an error code, and the code alone decides the
HTTP status the API answers with.
"""

import traceback
from enum import Enum
from typing import Any

NETWORK_ERROR_MESSAGE = "Network error connecting to RAG Engine. Please try again."


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "RAG-1000"
    CONFIGURATION_ERROR = "RAG-1001"
    VALIDATION_ERROR = "RAG-1002"
    CORS_ORIGIN_DENIED = "RAG-1003"
    AUTHENTICATION_ERROR = "RAG-1004"

    # Upstream errors (4xxx)
    UPSTREAM_UNAVAILABLE = "RAG-4000"
    UPSTREAM_PERMISSION_DENIED = "RAG-4001"
    UPSTREAM_NOT_FOUND = "RAG-4002"

    # LLM errors (5xxx)
    LLM_SERVICE_ERROR = "RAG-5000"
    LLM_TIMEOUT = "RAG-5001"
    LLM_RATE_LIMIT = "RAG-5002"
    LLM_EMPTY_RESPONSE = "RAG-5003"

    # Retrieval errors (6xxx)
    RETRIEVAL_ERROR = "RAG-6000"


STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.CORS_ORIGIN_DENIED: 403,
    ErrorCode.UPSTREAM_PERMISSION_DENIED: 403,
    ErrorCode.UPSTREAM_NOT_FOUND: 404,
    ErrorCode.UPSTREAM_UNAVAILABLE: 503,
    ErrorCode.LLM_TIMEOUT: 503,
}


class RAGPlatformError(Exception):
    """Base exception for all RAG platform errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context (logged, not returned).
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        """HTTP status for this error."""
        return STATUS_CODES.get(self.code, 500)

    @property
    def public_message(self) -> str:
        """Message shown to API clients."""
        return self.message

    def to_dict(self, include_trace: bool = False) -> dict[str, Any]:
        """Convert exception to dictionary for API responses.

        Args:
            include_trace: Attach the formatted traceback under ``details``.
        """
        body: dict[str, Any] = {
            "error": self.public_message,
            "code": self.code.value,
        }
        if include_trace:
            body["details"] = "".join(traceback.format_exception(self))
        return body


class ConfigurationError(RAGPlatformError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)

    @property
    def public_message(self) -> str:
        return f"Configuration error: {self.message}"


class ValidationError(RAGPlatformError):
    """Input validation error.

    ``received`` echoes the offending payload back to the client.
    """

    _MISSING = object()

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        received: Any = _MISSING,
    ) -> None:
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)
        self.received = received

    def to_dict(self, include_trace: bool = False) -> dict[str, Any]:
        body = super().to_dict(include_trace=include_trace)
        if self.received is not self._MISSING:
            body["received"] = self.received
        return body


class CORSPolicyError(RAGPlatformError):
    """Request origin rejected by the CORS policy."""

    def __init__(self, origin: str) -> None:
        super().__init__(
            "Origin not allowed by CORS policy",
            ErrorCode.CORS_ORIGIN_DENIED,
            {"origin": origin},
        )


class AuthenticationError(RAGPlatformError):
    """Failure obtaining Google Cloud credentials or tokens."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.AUTHENTICATION_ERROR, details)


class UpstreamError(RAGPlatformError):
    """Managed service answered with a classified failure."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UPSTREAM_UNAVAILABLE,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)

    @property
    def public_message(self) -> str:
        if self.code == ErrorCode.UPSTREAM_UNAVAILABLE:
            return NETWORK_ERROR_MESSAGE
        return self.message


class LLMError(RAGPlatformError):
    """LLM service error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.LLM_SERVICE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class RetrievalError(RAGPlatformError):
    """Retrieval operation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.RETRIEVAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)
