"""RAG pipeline data models."""

from pydantic import BaseModel, Field

MIN_PROMPT_LENGTH = 3
MAX_PROMPT_LENGTH = 2000


class Source(BaseModel):
    """Citation for a retrieved document.

    Attributes:
        uri: Absolute link to the document (or a synthesized placeholder).
        title: Display title, unique within one response.
    """

    uri: str = Field(description="Document URI")
    title: str = Field(description="Document title")


class Query(BaseModel):
    """Canonical question sent by the client.

    Attributes:
        prompt: The farmer's question.
        context: Optional extra details supplied with the question.
    """

    prompt: str = Field(
        min_length=MIN_PROMPT_LENGTH,
        max_length=MAX_PROMPT_LENGTH,
        description="User question",
    )
    context: str | None = Field(default=None, description="Optional extra details")


class RagResponse(BaseModel):
    """Answer returned to the client.

    Attributes:
        text: Synthesized (or fallback) answer.
        sources: Deduplicated citations.
        confidence: Retrieval confidence in [0, 1].
    """

    text: str = Field(description="Answer text")
    sources: list[Source] = Field(
        default_factory=list,
        description="Source citations",
    )
    confidence: float = Field(ge=0.0, le=1.0, description="Retrieval confidence")
