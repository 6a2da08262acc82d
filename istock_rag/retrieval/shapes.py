"""Shape probes for Vertex AI ``retrieveContexts`` payloads.

The payload layout differs between API versions and client libraries:
contexts may sit one or two levels deep, arrive as a single object instead
of a list, or come under a different key entirely. Each probe handles one
known layout and returns ``None`` when it does not apply. Probes are tried
in order and the first match wins.
"""

import math
import re
from collections.abc import Callable, Mapping, Sequence
from numbers import Real
from typing import Any

Payload = Mapping[str, Any]
Probe = Callable[[Payload], list[Any] | None]

MAX_RECORD_SCORES = 5

# Field paths probed on each context record, most specific first.
TEXT_PATHS: tuple[tuple[str, ...], ...] = (
    ("text",),
    ("content",),
    ("contextText",),
    ("ragContext", "text"),
    ("ragContext", "content"),
)


def dig(record: Any, path: Sequence[str]) -> Any:
    """Follow ``path`` through nested mappings.

    Returns:
        The value at the end of the path, or None if any step is missing.
    """
    current = record
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def first_value(record: Any, paths: Sequence[Sequence[str]]) -> Any:
    """Return the first non-empty value found along ``paths``."""
    for path in paths:
        value = dig(record, path)
        if value not in (None, "", 0, False):
            return value
    return None


def _list_at(*path: str) -> Probe:
    def probe(payload: Payload) -> list[Any] | None:
        value = dig(payload, path)
        return value if isinstance(value, list) else None

    return probe


def _single_at(*path: str) -> Probe:
    def probe(payload: Payload) -> list[Any] | None:
        value = dig(payload, path)
        return None if value is None else [value]

    return probe


CONTEXT_PROBES: tuple[Probe, ...] = (
    _list_at("contexts"),
    _list_at("contexts", "contexts"),
    _single_at("contexts", "contexts"),
    _single_at("contexts"),
    _list_at("ragContexts"),
    _single_at("ragContexts"),
    _list_at("contextChunks"),
    _single_at("contextChunks"),
)

SCORE_PROBES: tuple[Probe, ...] = (
    _list_at("scores"),
    _list_at("contexts", "scores"),
    _list_at("similarityScores"),
)


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, Real)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def extract_contexts(payload: Payload) -> list[Any]:
    """Flatten the context records of a retrieval payload.

    Args:
        payload: Decoded ``retrieveContexts`` response.

    Returns:
        Context records in upstream order; empty if no layout matches.
    """
    for probe in CONTEXT_PROBES:
        contexts = probe(payload)
        if contexts is not None:
            return contexts
    return []


def extract_scores(payload: Payload, contexts: Sequence[Any]) -> list[float]:
    """Collect similarity scores for a retrieval payload.

    Payload-level score lists win. Otherwise the numeric ``score`` (or
    ``_score``) of each record is used, capped at five entries.
    """
    for probe in SCORE_PROBES:
        scores = probe(payload)
        if scores is not None:
            return [float(s) for s in scores if _is_number(s)]

    per_record = [first_value(ctx, (("score",), ("_score",))) for ctx in contexts]
    return [float(s) for s in per_record if _is_number(s)][:MAX_RECORD_SCORES]


def context_text(record: Any) -> str:
    """Return the trimmed passage text of a record ("" if none)."""
    value = first_value(record, TEXT_PATHS)
    return str(value).strip() if value is not None else ""


def context_texts(contexts: Sequence[Any]) -> list[str]:
    """Passage texts of all records, blanks dropped."""
    return [text for text in (context_text(ctx) for ctx in contexts) if text]


def response_text(payload: Payload) -> str | None:
    """Top-level ``response``/``text`` field, whitespace collapsed."""
    for key in ("response", "text"):
        value = payload.get(key)
        if value is None:
            continue
        flattened = re.sub(r"\s+", " ", str(value)).strip()
        if flattened:
            return flattened
    return None


def payload_confidence(payload: Payload) -> float | None:
    """Top-level ``confidence`` value when the service supplies one."""
    value = payload.get("confidence")
    return float(value) if _is_number(value) else None
