"""RAG pipeline module."""

from istock_rag.rag.models import Query, RagResponse, Source
from istock_rag.rag.pipeline import RAGPipeline
from istock_rag.rag.synthesizer import AnswerSynthesizer

__all__ = [
    "AnswerSynthesizer",
    "Query",
    "RAGPipeline",
    "RagResponse",
    "Source",
]
