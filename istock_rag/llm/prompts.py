"""Prompt templates for answer synthesis."""

from abc import ABC, abstractmethod
from typing import Any


class PromptTemplate(ABC):
    """Abstract base class for prompt templates."""

    @abstractmethod
    def format(self, **kwargs: Any) -> str:
        """Format the template with provided variables.

        Args:
            **kwargs: Template variables.

        Returns:
            Formatted prompt string.
        """
        ...


class RAGPromptTemplate(PromptTemplate):
    """Prompt template for livestock-health answers.

    Formats retrieved veterinary passages and the farmer's question into
    a single user prompt.
    """

    DEFAULT_SYSTEM_PROMPT = (
        "You are a helpful assistant that provides accurate information about "
        "livestock health based on veterinary documents. Provide clear, concise "
        "answers (2-4 paragraphs, 200-400 words) using simple, professional "
        "language appropriate for farmers. Do not include disclaimers, legal "
        "text, or document metadata."
    )

    DEFAULT_USER_TEMPLATE = """Based on the following context from veterinary documents, answer this question: {question}

Context:
{context}"""

    USER_CONTEXT_TEMPLATE = "\n\nAdditional details from the farmer:\n{user_context}"

    MAX_CHUNKS = 5

    def __init__(
        self,
        system_prompt: str | None = None,
        user_template: str | None = None,
    ) -> None:
        """Initialize the prompt template.

        Args:
            system_prompt: Custom system prompt.
            user_template: Custom user message template.
        """
        self.system_prompt = system_prompt or self.DEFAULT_SYSTEM_PROMPT
        self.user_template = user_template or self.DEFAULT_USER_TEMPLATE

    def format(self, **kwargs: Any) -> str:
        """Format the user template.

        Args:
            **kwargs: Must include 'context' and 'question'.

        Returns:
            Formatted user prompt.
        """
        return self.user_template.format(**kwargs)

    def format_context(self, chunks: list[str], separator: str = "\n\n---\n\n") -> str:
        """Join the top chunks into a single context string.

        Args:
            chunks: List of text chunks, best first.
            separator: Separator between chunks.

        Returns:
            Combined context string.
        """
        return separator.join(chunks[: self.MAX_CHUNKS])

    def build_prompt(
        self,
        question: str,
        chunks: list[str],
        user_context: str | None = None,
    ) -> tuple[str, str]:
        """Build complete prompt from question and chunks.

        Args:
            question: User question.
            chunks: Retrieved context chunks.
            user_context: Optional extra details sent by the client.

        Returns:
            Tuple of (system_prompt, user_prompt).
        """
        context = self.format_context(chunks)
        user_prompt = self.format(context=context, question=question)
        if user_context:
            user_prompt += self.USER_CONTEXT_TEMPLATE.format(user_context=user_context)
        return self.system_prompt, user_prompt
