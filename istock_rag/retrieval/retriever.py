"""Retriever interface and the Vertex AI RAG Engine implementation."""

from abc import ABC, abstractmethod
from typing import Any

import httpx

from istock_rag.auth import TokenProvider
from istock_rag.config import RagEngineConfig, RagEngineSettings, get_settings
from istock_rag.exceptions import ErrorCode, RetrievalError, UpstreamError
from istock_rag.logging_config import get_logger
from istock_rag.observability.metrics import track_retrieval_request
from istock_rag.retrieval.models import RetrievalResult
from istock_rag.retrieval.shapes import extract_contexts, extract_scores

logger = get_logger(__name__)


class ContextRetriever(ABC):
    """Abstract base class for retrievers.

    Defines the interface for retrieving context passages.
    """

    @abstractmethod
    async def retrieve(
        self,
        query: str,
        top_k: int | None = None,
    ) -> RetrievalResult:
        """Retrieve context passages for a query.

        Args:
            query: The user's question.
            top_k: Number of passages to request.

        Returns:
            RetrievalResult with flattened contexts and scores.

        Raises:
            UpstreamError: If the service is unreachable, denies access,
                or the corpus does not exist.
            RetrievalError: For any other retrieval failure.
        """
        ...

    async def close(self) -> None:
        """Release resources held by the retriever."""


class VertexRagRetriever(ContextRetriever):
    """Retriever for a managed Vertex AI RAG corpus.

    Calls the ``retrieveContexts`` REST method and normalizes whatever
    payload layout comes back.
    """

    def __init__(
        self,
        config: RagEngineConfig,
        token_provider: TokenProvider,
        settings: RagEngineSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the retriever.

        Args:
            config: Resolved corpus identifiers.
            token_provider: Source of Google Cloud access tokens.
            settings: Retrieval settings (timeout, top_k).
            client: HTTP client (for testing).
        """
        self._config = config
        self._token_provider = token_provider
        self._settings = settings or get_settings().rag_engine
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def url(self) -> str:
        return f"{self._config.api_endpoint}/{self._config.parent}:retrieveContexts"

    def build_payload(self, query: str, top_k: int) -> dict[str, Any]:
        """Request body for ``retrieveContexts``."""
        return {
            "vertexRagStore": {
                "ragResources": [{"ragCorpus": self._config.corpus_name}],
            },
            "query": {
                "text": query,
                "ragRetrievalConfig": {"topK": top_k},
            },
        }

    async def retrieve(
        self,
        query: str,
        top_k: int | None = None,
    ) -> RetrievalResult:
        client = await self._get_client()
        token = await self._token_provider.get_token()
        payload = self.build_payload(query, top_k or self._settings.top_k)

        try:
            response = await client.post(
                self.url,
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()

        except httpx.TimeoutException as e:
            logger.error(f"RAG Engine request timed out: {e}")
            raise UpstreamError(
                "RAG Engine request timed out",
                code=ErrorCode.UPSTREAM_UNAVAILABLE,
                details={"timeout": self._settings.timeout},
            ) from e

        except httpx.HTTPStatusError as e:
            raise self._status_error(e.response) from e

        except httpx.RequestError as e:
            logger.error(f"RAG Engine connection error: {e}")
            raise UpstreamError(
                f"Network error: failed to reach RAG Engine: {e}",
                code=ErrorCode.UPSTREAM_UNAVAILABLE,
                details={"url": self.url},
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise RetrievalError(
                f"Invalid response from RAG Engine: {e}",
                details={"error": str(e)},
            ) from e

        if not isinstance(data, dict):
            raise RetrievalError(
                "Invalid response from RAG Engine: expected a JSON object",
                details={"type": type(data).__name__},
            )

        contexts = extract_contexts(data)
        scores = extract_scores(data, contexts)
        result = RetrievalResult(contexts=contexts, scores=scores, payload=data)

        track_retrieval_request(
            chunks_returned=len(contexts),
            top_score=result.top_score or 0.0,
        )
        logger.info(
            "Retrieved contexts",
            extra={
                "query_length": len(query),
                "contexts_count": len(contexts),
                "scores_count": len(scores),
                "payload_keys": sorted(data.keys()),
            },
        )
        return result

    def _status_error(self, response: httpx.Response) -> Exception:
        status = response.status_code
        message = _upstream_message(response)
        logger.error(
            "RAG Engine API error",
            extra={"status_code": status, "upstream_message": message},
        )

        if status == 404:
            return UpstreamError(
                "RAG Engine not found. Check your RAG_ENGINE_ID configuration.",
                code=ErrorCode.UPSTREAM_NOT_FOUND,
                details={"status_code": status, "corpus": self._config.corpus_name},
            )
        if status == 403:
            return UpstreamError(
                "Permission denied. Check service account permissions.",
                code=ErrorCode.UPSTREAM_PERMISSION_DENIED,
                details={"status_code": status},
            )
        return RetrievalError(
            f"RAG Engine API error ({status}): {message}",
            details={"status_code": status},
        )


def _upstream_message(response: httpx.Response) -> str:
    """Best-effort error message from a Google API error body."""
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
    return response.reason_phrase or "Unknown error"
