"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator, Iterator
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from istock_rag.api.app import app
from istock_rag.api.routes import get_pipeline
from istock_rag.auth import TokenProvider
from istock_rag.config import (
    LEGACY_CONFIG_ENV,
    RagEngineConfig,
    get_rag_engine_config,
    get_settings,
)

RAG_ENV_VARS = (
    "RAG_ENGINE_PROJECT_ID",
    "RAG_ENGINE_LOCATION",
    "RAG_ENGINE_ID",
    LEGACY_CONFIG_ENV,
    "NODE_ENV",
    "ENVIRONMENT",
)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Run each test without ambient RAG configuration or cached singletons."""
    for name in RAG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # No stray .env or .runtimeconfig.json from the working tree
    monkeypatch.chdir(tmp_path)

    get_settings.cache_clear()
    get_rag_engine_config.cache_clear()
    get_pipeline.cache_clear()
    yield
    app.dependency_overrides.clear()
    get_settings.cache_clear()
    get_rag_engine_config.cache_clear()
    get_pipeline.cache_clear()


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for FastAPI app.

    Yields:
        AsyncClient configured for testing.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def rag_config() -> RagEngineConfig:
    """Corpus coordinates used by client tests."""
    return RagEngineConfig(project_id="istock-test", location="us-east1", corpus_id="123")


@pytest.fixture
def token_provider() -> TokenProvider:
    """Token provider that never touches Google credentials."""
    provider = AsyncMock(spec=TokenProvider)
    provider.get_token.return_value = "test-token"
    return provider
