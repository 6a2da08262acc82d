"""Tests for observability module."""

import pytest

from istock_rag.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
    track_llm_request,
    track_rag_query,
    track_retrieval_request,
    track_synthesis_fallback,
)


class TestMetricsFunctions:
    """Tests for metrics tracking functions."""

    def test_get_metrics_returns_bytes(self) -> None:
        assert isinstance(get_metrics(), bytes)

    def test_content_type(self) -> None:
        assert get_metrics_content_type().startswith("text/plain")

    def test_track_llm_request_success(self) -> None:
        track_llm_request(
            model="gemini-1.5-flash",
            duration=1.5,
            prompt_tokens=100,
            completion_tokens=50,
        )

        metrics = get_metrics().decode()
        assert "llm_request_duration_seconds" in metrics
        assert 'llm_tokens_total{model="gemini-1.5-flash",type="prompt"}' in metrics

    def test_track_llm_request_failure(self) -> None:
        track_llm_request(
            model="gemini-1.5-flash",
            duration=0.5,
            prompt_tokens=0,
            completion_tokens=0,
            success=False,
        )

        metrics = get_metrics().decode()
        assert 'llm_requests_total{model="gemini-1.5-flash",status="error"}' in metrics

    def test_track_rag_query(self) -> None:
        track_rag_query(0.8, status="no_context")

        assert 'rag_queries_total{status="no_context"}' in get_metrics().decode()

    def test_track_retrieval_request(self) -> None:
        track_retrieval_request(chunks_returned=5, top_score=0.9)

        metrics = get_metrics().decode()
        assert "retrieval_chunks_returned" in metrics
        assert "retrieval_top_score" in metrics

    def test_track_synthesis_fallback(self) -> None:
        before = _sample("synthesis_fallback_total")
        track_synthesis_fallback()
        assert _sample("synthesis_fallback_total") == before + 1


class TestEndpointNormalization:
    """Tests for endpoint label cardinality."""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/health/live", "/health"),
            ("/health/ready", "/health"),
            ("/trpc/rag.query", "/trpc"),
            ("/trpc", "/trpc"),
            ("/ragQuery", "/ragQuery"),
            ("/", "/"),
        ],
    )
    def test_normalize(self, path: str, expected: str) -> None:
        middleware = MetricsMiddleware(app=lambda scope, receive, send: None)
        assert middleware._normalize_endpoint(path) == expected


def _sample(name: str) -> float:
    for line in get_metrics().decode().splitlines():
        if line.startswith(f"{name} "):
            return float(line.split()[1])
    return 0.0
