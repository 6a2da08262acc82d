"""Observability module for metrics and monitoring."""

from istock_rag.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
    track_llm_request,
    track_rag_query,
    track_retrieval_request,
    track_synthesis_fallback,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics",
    "get_metrics_content_type",
    "track_llm_request",
    "track_rag_query",
    "track_retrieval_request",
    "track_synthesis_fallback",
]
