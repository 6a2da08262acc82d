"""LLM client interface and the Vertex AI Gemini implementation."""

import time
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import ValidationError

from istock_rag.auth import TokenProvider
from istock_rag.config import LLMSettings, RagEngineConfig, get_settings
from istock_rag.exceptions import ErrorCode, LLMError, RAGPlatformError
from istock_rag.llm.models import GenerationResult, Message, Role
from istock_rag.logging_config import get_logger
from istock_rag.observability.metrics import track_llm_request

logger = get_logger(__name__)


class LLMClient(ABC):
    """Abstract base class for LLM clients.

    Defines the interface for generating text with LLMs.
    """

    @abstractmethod
    async def generate(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Generate text from messages.

        Args:
            messages: Conversation messages.
            temperature: Sampling temperature override.
            max_tokens: Maximum tokens override.

        Returns:
            GenerationResult with generated text.

        Raises:
            LLMError: If generation fails.
        """
        ...

    async def generate_text(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Generate text from a simple prompt.

        Args:
            prompt: User prompt.
            system_prompt: Optional system prompt.
            temperature: Sampling temperature override.
            max_tokens: Maximum tokens override.

        Returns:
            GenerationResult with generated text.

        Raises:
            LLMError: If generation fails.
        """
        messages: list[Message] = []

        if system_prompt:
            messages.append(Message(role=Role.SYSTEM, content=system_prompt))

        messages.append(Message(role=Role.USER, content=prompt))

        return await self.generate(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name."""
        ...

    async def close(self) -> None:
        """Release resources held by the client."""


class VertexGeminiClient(LLMClient):
    """Gemini client for the Vertex AI ``generateContent`` REST method."""

    def __init__(
        self,
        config: RagEngineConfig,
        token_provider: TokenProvider,
        settings: LLMSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Gemini client.

        Args:
            config: Project and region hosting the model.
            token_provider: Source of Google Cloud access tokens.
            settings: LLM configuration.
            client: HTTP client (for testing).
        """
        self._config = config
        self._token_provider = token_provider
        self._settings = settings or get_settings().llm
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._settings.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.model

    @property
    def url(self) -> str:
        return (
            f"{self._config.api_endpoint}/{self._config.parent}"
            f"/publishers/google/models/{self.model_name}:generateContent"
        )

    def build_payload(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        """Request body for ``generateContent``."""
        system = [m.content for m in messages if m.role == Role.SYSTEM]
        payload: dict[str, Any] = {
            "contents": [
                {"role": m.role.value, "parts": [{"text": m.content}]}
                for m in messages
                if m.role != Role.SYSTEM
            ],
            "generationConfig": {
                "maxOutputTokens": (
                    max_tokens if max_tokens is not None else self._settings.max_output_tokens
                ),
                "temperature": (
                    temperature if temperature is not None else self._settings.temperature
                ),
                "topP": self._settings.top_p,
            },
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": text} for text in system]}
        return payload

    async def generate(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Generate text using the generateContent API."""
        start = time.perf_counter()
        try:
            result = await self._generate(self.build_payload(messages, temperature, max_tokens))
        except RAGPlatformError:
            track_llm_request(
                model=self.model_name,
                duration=time.perf_counter() - start,
                prompt_tokens=0,
                completion_tokens=0,
                success=False,
            )
            raise

        track_llm_request(
            model=self.model_name,
            duration=time.perf_counter() - start,
            prompt_tokens=result.prompt_tokens,
            completion_tokens=result.completion_tokens,
        )
        return result

    async def _generate(self, payload: dict[str, Any]) -> GenerationResult:
        client = await self._get_client()
        token = await self._token_provider.get_token()

        try:
            response = await client.post(
                self.url,
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()

        except httpx.TimeoutException as e:
            logger.error(f"Gemini request timed out: {e}")
            raise LLMError(
                "LLM request timed out",
                code=ErrorCode.LLM_TIMEOUT,
                details={"timeout": self._settings.timeout},
            ) from e

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"Gemini request failed: {status}")

            if status == 429:
                raise LLMError(
                    "Rate limit exceeded",
                    code=ErrorCode.LLM_RATE_LIMIT,
                    details={"status_code": status},
                ) from e

            raise LLMError(
                f"Gemini API error: {status}",
                code=ErrorCode.LLM_SERVICE_ERROR,
                details={"status_code": status},
            ) from e

        except httpx.RequestError as e:
            logger.error(f"Gemini connection error: {e}")
            raise LLMError(
                f"Failed to connect to Gemini: {e}",
                code=ErrorCode.LLM_SERVICE_ERROR,
                details={"url": self.url},
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(
                f"Invalid response from Gemini: {e}",
                details={"error": str(e)},
            ) from e

        return self._parse(data)

    def _parse(self, data: Any) -> GenerationResult:
        candidates = data.get("candidates") if isinstance(data, dict) else None
        if not candidates or not isinstance(candidates, list):
            raise LLMError(
                "No candidates returned from Gemini",
                code=ErrorCode.LLM_EMPTY_RESPONSE,
            )

        first = candidates[0] if isinstance(candidates[0], dict) else {}
        content = first.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        texts = [
            part["text"]
            for part in parts or []
            if isinstance(part, dict) and isinstance(part.get("text"), str) and part["text"]
        ]
        text = "\n".join(texts).strip()
        if not text:
            raise LLMError(
                "No text generated from Gemini",
                code=ErrorCode.LLM_EMPTY_RESPONSE,
                details={"finish_reason": first.get("finishReason")},
            )

        usage = data.get("usageMetadata")
        if not isinstance(usage, dict):
            usage = {}
        model = data.get("modelVersion")

        try:
            return GenerationResult(
                content=text,
                model=model if isinstance(model, str) and model else self.model_name,
                prompt_tokens=_token_count(usage, "promptTokenCount"),
                completion_tokens=_token_count(usage, "candidatesTokenCount"),
                total_tokens=_token_count(usage, "totalTokenCount"),
            )
        except ValidationError as e:
            raise LLMError(
                "Malformed response from Gemini",
                code=ErrorCode.LLM_EMPTY_RESPONSE,
                details={"error": str(e)},
            ) from e


def _token_count(usage: dict[str, Any], key: str) -> int:
    value = usage.get(key)
    # bool is an int subclass
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return 0
