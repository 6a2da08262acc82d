"""Context retrieval module."""

from istock_rag.retrieval.models import RetrievalResult
from istock_rag.retrieval.retriever import ContextRetriever, VertexRagRetriever

__all__ = [
    "ContextRetriever",
    "RetrievalResult",
    "VertexRagRetriever",
]
