"""Tests for logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

from istock_rag.config import Environment, Settings
from istock_rag.logging_config import (
    DevFormatter,
    JSONFormatter,
    get_logger,
    setup_logging,
)


def make_record(
    msg: str = "Retrieved contexts",
    level: int = logging.INFO,
    exc_info=None,
    **extra: object,
) -> logging.LogRecord:
    record = logging.LogRecord(
        name="istock_rag.retrieval.retriever",
        level=level,
        pathname="/app/istock_rag/retrieval/retriever.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSON log formatter."""

    def test_format_basic_message(self) -> None:
        """Basic log message is formatted as JSON."""
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "istock_rag.retrieval.retriever"
        assert data["message"] == "Retrieved contexts"
        assert "timestamp" in data
        assert data["file"] == "/app/istock_rag/retrieval/retriever.py:42"

    def test_format_includes_extra(self) -> None:
        """Fields passed through ``extra=`` are grouped under ``extra``."""
        record = make_record(contexts_count=3, prompt_length=27)
        data = json.loads(JSONFormatter().format(record))

        assert data["extra"] == {"contexts_count": 3, "prompt_length": 27}

    def test_no_extra_key_without_extra(self) -> None:
        data = json.loads(JSONFormatter().format(make_record()))
        assert "extra" not in data

    def test_format_with_exception(self) -> None:
        """Exception info is included in output."""
        try:
            raise ValueError("upstream exploded")
        except ValueError:
            exc_info = sys.exc_info()

        record = make_record("RAG query failed", level=logging.ERROR, exc_info=exc_info)
        data = json.loads(JSONFormatter().format(record))

        assert "ValueError" in data["exception"]
        assert "upstream exploded" in data["exception"]


class TestDevFormatter:
    """Tests for development formatter."""

    def test_format_includes_level(self) -> None:
        """Development format includes level, logger and message."""
        output = DevFormatter().format(make_record("CORS preflight", level=logging.WARNING))

        assert "WARNING" in output
        assert "istock_rag.retrieval.retriever" in output
        assert "CORS preflight" in output


class TestSetupLogging:
    """Tests for logging setup."""

    def test_returns_root_logger(self) -> None:
        """setup_logging returns root logger."""
        logger = setup_logging(level="INFO", json_output=False)
        assert logger is logging.getLogger()

    def test_uses_json_in_production(self) -> None:
        """JSON output is used in production environment."""
        mock_settings = Settings(environment=Environment.PRODUCTION)

        with patch("istock_rag.logging_config.get_settings", return_value=mock_settings):
            setup_logging()

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_uses_dev_formatter_in_development(self) -> None:
        """Dev formatter is used in development environment."""
        mock_settings = Settings(environment=Environment.DEVELOPMENT)

        with patch("istock_rag.logging_config.get_settings", return_value=mock_settings):
            setup_logging()

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, DevFormatter)

    def test_level_override(self) -> None:
        """Log level can be overridden."""
        setup_logging(level="DEBUG", json_output=False)
        assert logging.getLogger().level == logging.DEBUG

    def test_third_party_loggers_quieted(self) -> None:
        """HTTP and auth libraries only log warnings."""
        setup_logging(level="DEBUG", json_output=False)

        for name in ("httpx", "httpcore", "google.auth", "uvicorn.access"):
            assert logging.getLogger(name).level == logging.WARNING


class TestGetLogger:
    """Tests for named logger retrieval."""

    def test_returns_named_logger(self) -> None:
        logger = get_logger("istock_rag.api.cors")
        assert logger.name == "istock_rag.api.cors"

    def test_inherits_root_level(self) -> None:
        """Package loggers inherit the configured level."""
        setup_logging(level="WARNING", json_output=False)
        assert get_logger("istock_rag.rag.pipeline").getEffectiveLevel() == logging.WARNING
