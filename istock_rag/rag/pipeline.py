"""RAG pipeline orchestrator."""

import time

from istock_rag.exceptions import RAGPlatformError
from istock_rag.logging_config import get_logger
from istock_rag.observability.metrics import track_rag_query
from istock_rag.rag.models import Query, RagResponse
from istock_rag.rag.sources import DEFAULT_SOURCE_HOST, dedupe_sources
from istock_rag.rag.synthesizer import AnswerSynthesizer
from istock_rag.retrieval.models import RetrievalResult
from istock_rag.retrieval.retriever import ContextRetriever
from istock_rag.retrieval.shapes import context_texts, payload_confidence, response_text

logger = get_logger(__name__)

NO_RESPONSE_TEXT = "No response generated"
DEFAULT_CONFIDENCE = 0.8


def resolve_confidence(retrieval: RetrievalResult) -> float:
    """Confidence for a response, clamped to [0, 1].

    The first retrieval score wins, then a payload-level ``confidence``,
    then the default. Zero values count as absent.
    """
    confidence = (
        retrieval.top_score
        or payload_confidence(retrieval.payload)
        or DEFAULT_CONFIDENCE
    )
    return min(max(confidence, 0.0), 1.0)


class RAGPipeline:
    """Orchestrates the RAG pipeline.

    Combines retrieval, source deduplication and answer synthesis into a
    single query interface.
    """

    def __init__(
        self,
        retriever: ContextRetriever,
        synthesizer: AnswerSynthesizer,
        source_host: str = DEFAULT_SOURCE_HOST,
    ) -> None:
        """Initialize the RAG pipeline.

        Args:
            retriever: Context retriever.
            synthesizer: Answer synthesizer.
            source_host: Host for placeholder source URIs.
        """
        self._retriever = retriever
        self._synthesizer = synthesizer
        self._source_host = source_host

    async def query(self, request: Query) -> RagResponse:
        """Execute a RAG query.

        Args:
            request: The canonical query.

        Returns:
            RagResponse with answer, sources and confidence.

        Raises:
            RAGPlatformError: If retrieval fails. Synthesis failures are
                recovered by the synthesizer.
        """
        start = time.perf_counter()
        logger.info(
            "Processing RAG query",
            extra={
                "prompt_length": len(request.prompt),
                "has_context": request.context is not None,
            },
        )

        try:
            retrieval = await self._retriever.retrieve(query=request.prompt)
        except RAGPlatformError:
            track_rag_query(time.perf_counter() - start, status="error")
            raise

        texts = context_texts(retrieval.contexts)
        text = NO_RESPONSE_TEXT
        if texts:
            text = await self._synthesizer.synthesize(
                question=request.prompt,
                texts=texts,
                user_context=request.context,
            )

        if text == NO_RESPONSE_TEXT:
            text = response_text(retrieval.payload) or NO_RESPONSE_TEXT

        response = RagResponse(
            text=text,
            sources=dedupe_sources(retrieval.contexts, host=self._source_host),
            confidence=resolve_confidence(retrieval),
        )

        track_rag_query(
            time.perf_counter() - start,
            status="success" if texts else "no_context",
        )
        logger.info(
            "RAG query completed",
            extra={
                "prompt_length": len(request.prompt),
                "contexts_count": len(retrieval.contexts),
                "sources_count": len(response.sources),
                "answer_length": len(response.text),
            },
        )
        return response

    async def close(self) -> None:
        """Close the underlying clients."""
        await self._retriever.close()
        await self._synthesizer.close()
