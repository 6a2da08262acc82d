"""LLM client module."""

from istock_rag.llm.client import LLMClient, VertexGeminiClient
from istock_rag.llm.models import GenerationResult, Message, Role
from istock_rag.llm.prompts import PromptTemplate, RAGPromptTemplate

__all__ = [
    "GenerationResult",
    "LLMClient",
    "Message",
    "PromptTemplate",
    "RAGPromptTemplate",
    "Role",
    "VertexGeminiClient",
]
