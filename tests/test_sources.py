"""Tests for citation source deduplication."""

import pytest

from istock_rag.rag.sources import (
    PLACEHOLDER_TITLE,
    dedup_key,
    dedupe_sources,
    is_valid_uri,
    placeholder_uri,
    resolve_title,
    resolve_uri,
)


class TestResolveFields:
    """Tests for URI and title probing."""

    @pytest.mark.parametrize(
        "record",
        [
            {"sourceUri": "https://vet.example/a.pdf"},
            {"uri": "https://vet.example/a.pdf"},
            {"source": {"uri": "https://vet.example/a.pdf"}},
            {"metadata": {"sourceUri": "https://vet.example/a.pdf"}},
            {"metadata": {"source": "https://vet.example/a.pdf"}},
            {"ragContext": {"sourceUri": "https://vet.example/a.pdf"}},
            {"ragContext": {"uri": "https://vet.example/a.pdf"}},
        ],
    )
    def test_uri_paths(self, record: dict) -> None:
        assert resolve_uri(record) == "https://vet.example/a.pdf"

    @pytest.mark.parametrize(
        "record",
        [
            {"sourceDisplayName": "Sheep Handbook"},
            {"sourceTitle": "Sheep Handbook"},
            {"title": "Sheep Handbook"},
            {"source": {"title": "Sheep Handbook"}},
            {"metadata": {"title": "Sheep Handbook"}},
            {"ragContext": {"title": "Sheep Handbook"}},
            {"ragContext": {"sourceTitle": "Sheep Handbook"}},
        ],
    )
    def test_title_paths(self, record: dict) -> None:
        assert resolve_title(record) == "Sheep Handbook"

    def test_display_name_preferred(self) -> None:
        record = {"title": "file.pdf", "sourceDisplayName": "Sheep Handbook"}
        assert resolve_title(record) == "Sheep Handbook"

    def test_title_placeholder(self) -> None:
        assert resolve_title({"text": "no title"}) == PLACEHOLDER_TITLE

    def test_non_string_ignored(self) -> None:
        assert resolve_uri({"uri": 42, "sourceUri": None}) is None


class TestHelpers:
    """Tests for URI helpers."""

    @pytest.mark.parametrize(
        "uri",
        ["https://vet.example/a.pdf", "http://vet.example", "data:text/plain,hi"],
    )
    def test_valid_uri(self, uri: str) -> None:
        assert is_valid_uri(uri)

    @pytest.mark.parametrize("uri", [None, "", "gs://bucket/a.pdf", "vet.example/a.pdf"])
    def test_invalid_uri(self, uri: str | None) -> None:
        assert not is_valid_uri(uri)

    def test_placeholder_uri_encodes_title(self) -> None:
        assert placeholder_uri("Cattle & Sheep (2nd ed)") == (
            "https://rag.istock.local/Cattle%20%26%20Sheep%20(2nd%20ed)"
        )

    def test_placeholder_uri_custom_host(self) -> None:
        assert placeholder_uri("Guide", host="docs.istock.app") == "https://docs.istock.app/Guide"

    def test_dedup_key(self) -> None:
        assert dedup_key("  Sheep Handbook ", None) == "sheep handbook"
        assert dedup_key(PLACEHOLDER_TITLE, "gs://x") == "gs://x"
        assert dedup_key(PLACEHOLDER_TITLE, None) == "unknown"


class TestDedupeSources:
    """Tests for the source list of a response."""

    def test_case_insensitive_first_seen(self) -> None:
        """Titles differing only by case collapse to the first record."""
        contexts = [
            {"title": "Cattle Guide", "sourceUri": "https://vet.example/one.pdf"},
            {"title": "cattle guide", "sourceUri": "https://vet.example/two.pdf"},
            {"title": "Sheep Handbook", "sourceUri": "https://vet.example/sheep.pdf"},
        ]

        sources = dedupe_sources(contexts)

        assert [(s.title, s.uri) for s in sources] == [
            ("Cattle Guide", "https://vet.example/one.pdf"),
            ("Sheep Handbook", "https://vet.example/sheep.pdf"),
        ]

    def test_titleless_records_dropped(self) -> None:
        """Records without a genuine title never become sources."""
        contexts = [
            {"sourceUri": "https://vet.example/a.pdf", "text": "passage"},
            {"title": "   ", "sourceUri": "https://vet.example/b.pdf"},
            {"title": "Reference", "sourceUri": "https://vet.example/c.pdf"},
        ]
        assert dedupe_sources(contexts) == []

    def test_non_http_uri_gets_placeholder(self) -> None:
        contexts = [{"sourceDisplayName": "Pig Health Manual", "sourceUri": "gs://vet/pigs.pdf"}]

        sources = dedupe_sources(contexts)

        assert sources[0].uri == "https://rag.istock.local/Pig%20Health%20Manual"
        assert sources[0].title == "Pig Health Manual"

    def test_missing_uri_gets_placeholder(self) -> None:
        sources = dedupe_sources([{"title": "Goat Notes"}], host="docs.istock.app")
        assert sources[0].uri == "https://docs.istock.app/Goat%20Notes"

    def test_titles_unique(self) -> None:
        contexts = [{"title": t} for t in ["A", "a", "B", "A ", "b"]]
        titles = [s.title.lower().strip() for s in dedupe_sources(contexts)]
        assert len(titles) == len(set(titles))

    def test_non_mapping_records_skipped(self) -> None:
        assert dedupe_sources(["raw string", None, 3]) == []
