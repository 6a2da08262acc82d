"""Retrieval data models."""

from typing import Any

from pydantic import BaseModel, Field


class RetrievalResult(BaseModel):
    """Flattened result of a retrieval call.

    Attributes:
        contexts: Context records, in upstream order. Their schema is not
            guaranteed, so they are kept as returned.
        scores: Similarity scores, best first when the service ranks them.
        payload: Raw response, kept for response-level fallbacks.
    """

    contexts: list[Any] = Field(
        default_factory=list,
        description="Context records as returned by the service",
    )
    scores: list[float] = Field(
        default_factory=list,
        description="Similarity scores",
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Raw retrieval response",
    )

    @property
    def top_score(self) -> float | None:
        """First score, if any."""
        return self.scores[0] if self.scores else None
