"""Citation sources from retrieved context records.

Records name their document under many different keys depending on the
retrieval backend, so URI and title are resolved by probing ordered field
paths. Only records with a genuine title become sources, and titles are
deduplicated case-insensitively, first seen wins.
"""

from collections.abc import Iterable, Sequence
from typing import Any
from urllib.parse import quote

from istock_rag.rag.models import Source
from istock_rag.retrieval.shapes import dig

PLACEHOLDER_TITLE = "Reference"
DEFAULT_SOURCE_HOST = "rag.istock.local"
VALID_URI_PREFIXES = ("http://", "https://", "data:")
# Punctuation kept literal in the placeholder path segment
URI_SAFE_CHARS = "!'()*~"

URI_PATHS: tuple[tuple[str, ...], ...] = (
    ("sourceUri",),
    ("uri",),
    ("source", "uri"),
    ("metadata", "sourceUri"),
    ("metadata", "source"),
    ("ragContext", "sourceUri"),
    ("ragContext", "uri"),
)

TITLE_PATHS: tuple[tuple[str, ...], ...] = (
    ("sourceDisplayName",),
    ("sourceTitle",),
    ("title",),
    ("source", "title"),
    ("metadata", "title"),
    ("ragContext", "title"),
    ("ragContext", "sourceTitle"),
)


def _first_string(record: Any, paths: Sequence[Sequence[str]]) -> str | None:
    for path in paths:
        value = dig(record, path)
        if isinstance(value, str) and value:
            return value
    return None


def resolve_uri(record: Any) -> str | None:
    return _first_string(record, URI_PATHS)


def resolve_title(record: Any) -> str:
    return _first_string(record, TITLE_PATHS) or PLACEHOLDER_TITLE


def dedup_key(title: str, uri: str | None) -> str:
    """Key under which a record is deduplicated."""
    if title != PLACEHOLDER_TITLE:
        return title.lower().strip()
    return uri or "unknown"


def is_valid_uri(uri: str | None) -> bool:
    return bool(uri) and uri.startswith(VALID_URI_PREFIXES)


def placeholder_uri(title: str, host: str = DEFAULT_SOURCE_HOST) -> str:
    return f"https://{host}/{quote(title, safe=URI_SAFE_CHARS)}"


def dedupe_sources(
    contexts: Iterable[Any],
    host: str = DEFAULT_SOURCE_HOST,
) -> list[Source]:
    """Build the ordered, unique source list for a response.

    Args:
        contexts: Retrieved context records.
        host: Host for placeholder URIs of sources without a usable one.

    Returns:
        Sources in first-seen order.
    """
    sources: dict[str, Source] = {}
    for record in contexts:
        uri = resolve_uri(record)
        title = resolve_title(record)
        if title == PLACEHOLDER_TITLE or not title.strip():
            continue

        key = dedup_key(title, uri)
        if key in sources:
            continue

        sources[key] = Source(
            uri=uri if is_valid_uri(uri) else placeholder_uri(title, host),
            title=title,
        )
    return list(sources.values())
