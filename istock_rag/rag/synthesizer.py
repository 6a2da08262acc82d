"""Answer synthesis with a deterministic fallback."""

from istock_rag.exceptions import RAGPlatformError
from istock_rag.llm.client import LLMClient
from istock_rag.llm.prompts import RAGPromptTemplate
from istock_rag.logging_config import get_logger
from istock_rag.observability.metrics import track_synthesis_fallback

logger = get_logger(__name__)

UNABLE_TO_ANSWER = "Unable to generate answer. Please try rephrasing your question."
FALLBACK_WINDOW = 800
FALLBACK_MIN_CUT = 400


def fallback_answer(texts: list[str]) -> str:
    """Answer from the best passage when the model is unavailable.

    The first passage is cut to the 800-character window and then backed up
    to its last sentence or paragraph end, provided that lies past character
    400. Otherwise the whole window is kept with an ellipsis.

    Args:
        texts: Passage texts, best first.

    Returns:
        Fallback answer text.
    """
    if not texts:
        return UNABLE_TO_ANSWER

    window = texts[0][:FALLBACK_WINDOW]
    cut = max(window.rfind("."), window.rfind("\n"))
    if cut > FALLBACK_MIN_CUT:
        return window[: cut + 1]
    return window + "..."


class AnswerSynthesizer:
    """Turns retrieved passages into a farmer-facing answer."""

    def __init__(
        self,
        llm_client: LLMClient,
        prompt_template: RAGPromptTemplate | None = None,
    ) -> None:
        """Initialize the synthesizer.

        Args:
            llm_client: Client for the generative model.
            prompt_template: Prompt template for synthesis.
        """
        self._llm_client = llm_client
        self._prompt_template = prompt_template or RAGPromptTemplate()

    async def synthesize(
        self,
        question: str,
        texts: list[str],
        user_context: str | None = None,
    ) -> str:
        """Generate an answer, falling back to passage truncation.

        Model failures never propagate: any error from the LLM call yields
        the fallback.

        Args:
            question: The user's question.
            texts: Non-empty passage texts, best first.
            user_context: Optional extra details sent by the client.

        Returns:
            Answer text.
        """
        system_prompt, user_prompt = self._prompt_template.build_prompt(
            question=question,
            chunks=texts,
            user_context=user_context,
        )

        try:
            result = await self._llm_client.generate_text(
                prompt=user_prompt,
                system_prompt=system_prompt,
            )
        except RAGPlatformError as e:
            logger.warning(
                f"LLM synthesis failed, using fallback: {e.message}",
                extra={"error_code": e.code.value, "contexts_count": len(texts)},
            )
            track_synthesis_fallback()
            return fallback_answer(texts)
        except Exception:
            logger.exception(
                "Unexpected LLM synthesis failure, using fallback",
                extra={"contexts_count": len(texts)},
            )
            track_synthesis_fallback()
            return fallback_answer(texts)

        logger.debug(
            "Synthesized answer",
            extra={"answer_length": len(result.content), "tokens_used": result.total_tokens},
        )
        return result.content

    async def close(self) -> None:
        await self._llm_client.close()
