"""Request body normalization.

Clients send the question in several envelopes: ``{prompt}``, ``{query}``,
``{data: {prompt}}`` and ``{data: {query}}``, sometimes as a JSON string
holding the JSON document. Everything is reduced to one ``Query``.
"""

import json
from collections.abc import Mapping
from typing import Any

from fastapi import Request

from istock_rag.exceptions import ValidationError
from istock_rag.rag.models import MAX_PROMPT_LENGTH, MIN_PROMPT_LENGTH, Query
from istock_rag.retrieval.shapes import dig

BODY_REQUIRED = "Request body is required"
INVALID_JSON = "Invalid JSON in request body"
INVALID_FORMAT = "Invalid request format. Expected { prompt: string, context?: string }"
PROMPT_REQUIRED = "Prompt is required and must be a string"
PROMPT_TOO_SHORT = f"Prompt must be at least {MIN_PROMPT_LENGTH} characters long"
PROMPT_TOO_LONG = f"Prompt must be less than {MAX_PROMPT_LENGTH} characters"

# (envelope path, prompt key), tried in order
PROMPT_LOCATIONS: tuple[tuple[tuple[str, ...], str], ...] = (
    ((), "prompt"),
    ((), "query"),
    (("data",), "prompt"),
    (("data",), "query"),
)


def decode_body(raw: bytes | str) -> Any:
    """Parse a raw request body.

    Raises:
        ValidationError: If the body is empty or not JSON.
    """
    try:
        text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
    except UnicodeDecodeError as e:
        raise ValidationError(INVALID_JSON) from e

    # A JSON string may itself hold the JSON document
    for _ in range(2):
        if not text.strip():
            raise ValidationError(BODY_REQUIRED)
        try:
            body = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError(INVALID_JSON, details={"error": str(e)}) from e
        if not isinstance(body, str):
            break
        text = body

    if body is None:
        raise ValidationError(BODY_REQUIRED)
    return body


def resolve_prompt(body: Any) -> tuple[Any, Any]:
    """Find the prompt and its sibling context in a decoded body.

    The first location whose key is present wins.

    Returns:
        ``(prompt, context)`` as sent, not yet validated.

    Raises:
        ValidationError: If no known location holds a prompt.
    """
    for envelope, key in PROMPT_LOCATIONS:
        container = dig(body, envelope)
        if isinstance(container, Mapping) and key in container:
            return container[key], container.get("context")

    raise ValidationError(INVALID_FORMAT, received=body)


def validate_query(prompt: Any, context: Any = None) -> Query:
    """Check prompt type and length and build the canonical query.

    Raises:
        ValidationError: With a message naming the violated rule.
    """
    if not prompt or not isinstance(prompt, str):
        raise ValidationError(PROMPT_REQUIRED)
    if len(prompt) < MIN_PROMPT_LENGTH:
        raise ValidationError(PROMPT_TOO_SHORT, details={"length": len(prompt)})
    if len(prompt) > MAX_PROMPT_LENGTH:
        raise ValidationError(PROMPT_TOO_LONG, details={"length": len(prompt)})

    if not (isinstance(context, str) and context.strip()):
        context = None
    return Query(prompt=prompt, context=context)


def normalize_body(raw: bytes | str) -> Query:
    """Turn a raw request body into a validated ``Query``."""
    prompt, context = resolve_prompt(decode_body(raw))
    return validate_query(prompt, context)


async def parse_query(request: Request) -> Query:
    """FastAPI dependency reading the canonical query from the body."""
    return normalize_body(await request.body())
