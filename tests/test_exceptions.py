"""Tests for application exceptions."""

from istock_rag.exceptions import (
    NETWORK_ERROR_MESSAGE,
    AuthenticationError,
    ConfigurationError,
    CORSPolicyError,
    ErrorCode,
    LLMError,
    RAGPlatformError,
    RetrievalError,
    UpstreamError,
    ValidationError,
)


class TestErrorCode:
    """Tests for error codes."""

    def test_error_code_format(self) -> None:
        """Error codes follow RAG-XXXX format."""
        for code in ErrorCode:
            assert code.value.startswith("RAG-")
            assert len(code.value) == 8  # RAG-XXXX

    def test_error_code_uniqueness(self) -> None:
        """All error codes are unique."""
        codes = [code.value for code in ErrorCode]
        assert len(codes) == len(set(codes))


class TestRAGPlatformError:
    """Tests for base exception."""

    def test_basic_exception(self) -> None:
        """Base exception stores message and code."""
        error = RAGPlatformError("Something went wrong")
        assert error.message == "Something went wrong"
        assert error.code == ErrorCode.INTERNAL_ERROR
        assert error.details == {}
        assert error.status_code == 500

    def test_to_dict(self) -> None:
        """Exception converts to API response dict; details stay internal."""
        error = RAGPlatformError(
            "Something went wrong",
            details={"trace_id": "abc123"},
        )
        assert error.to_dict() == {"error": "Something went wrong", "code": "RAG-1000"}

    def test_to_dict_with_trace(self) -> None:
        """The traceback is attached on request."""
        try:
            raise RAGPlatformError("Boom")
        except RAGPlatformError as e:
            body = e.to_dict(include_trace=True)

        assert "RAGPlatformError: Boom" in body["details"]
        assert "Traceback" in body["details"]

    def test_str_representation(self) -> None:
        """Exception string is the message."""
        assert str(RAGPlatformError("Test error")) == "Test error"


class TestStatusCodes:
    """HTTP status is derived from the error code."""

    def test_validation_is_400(self) -> None:
        assert ValidationError("Prompt is required and must be a string").status_code == 400

    def test_cors_is_403(self) -> None:
        assert CORSPolicyError("https://evil.example").status_code == 403

    def test_permission_denied_is_403(self) -> None:
        error = UpstreamError("denied", code=ErrorCode.UPSTREAM_PERMISSION_DENIED)
        assert error.status_code == 403

    def test_not_found_is_404(self) -> None:
        error = UpstreamError("missing", code=ErrorCode.UPSTREAM_NOT_FOUND)
        assert error.status_code == 404

    def test_unavailable_is_503(self) -> None:
        assert UpstreamError("timed out").status_code == 503

    def test_configuration_is_500(self) -> None:
        assert ConfigurationError("RAG_ENGINE_ID environment variable is not set").status_code == 500

    def test_message_text_does_not_decide_status(self) -> None:
        """Words like 'permission' in a message do not change the status."""
        error = RetrievalError("RAG Engine API error (500): permission cache miss")
        assert error.status_code == 500

    def test_other_errors_are_500(self) -> None:
        assert LLMError("Gemini API error: 500").status_code == 500
        assert AuthenticationError("Failed to obtain access token").status_code == 500


class TestPublicMessages:
    """Tests for client-facing messages."""

    def test_configuration_prefix(self) -> None:
        error = ConfigurationError("RAG_ENGINE_ID environment variable is not set")
        assert error.to_dict()["error"] == (
            "Configuration error: RAG_ENGINE_ID environment variable is not set"
        )

    def test_network_message(self) -> None:
        """Unavailable upstreams get a generic retry message."""
        error = UpstreamError("Network error: failed to reach RAG Engine: connection reset")
        assert error.to_dict()["error"] == NETWORK_ERROR_MESSAGE

    def test_permission_message_kept(self) -> None:
        error = UpstreamError(
            "Permission denied. Check service account permissions.",
            code=ErrorCode.UPSTREAM_PERMISSION_DENIED,
        )
        assert error.to_dict()["error"] == "Permission denied. Check service account permissions."

    def test_cors_message(self) -> None:
        error = CORSPolicyError("https://evil.example")
        assert error.to_dict() == {
            "error": "Origin not allowed by CORS policy",
            "code": "RAG-1003",
        }
        assert error.details == {"origin": "https://evil.example"}


class TestValidationError:
    """Tests for validation exception."""

    def test_received_echoed(self) -> None:
        """The offending body is echoed when given."""
        error = ValidationError("Invalid request format", received={"question": "hi"})
        assert error.to_dict()["received"] == {"question": "hi"}

    def test_received_absent_by_default(self) -> None:
        assert "received" not in ValidationError("Request body is required").to_dict()

    def test_received_none_is_echoed(self) -> None:
        """An explicit None is still echoed."""
        assert ValidationError("Invalid", received=None).to_dict()["received"] is None

    def test_inherits_from_base(self) -> None:
        assert isinstance(ValidationError("bad"), RAGPlatformError)
