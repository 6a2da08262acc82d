"""Application configuration using Pydantic Settings.

Configuration is loaded from environment variables (and ``.env``).
The RAG engine identifiers additionally fall back to the legacy
Firebase runtime config document, field by field.
"""

import json
import logging
import os
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from istock_rag.exceptions import ConfigurationError

# logging_config imports this module, so use the stdlib accessor here
logger = logging.getLogger(__name__)

LEGACY_CONFIG_ENV = "CLOUD_RUNTIME_CONFIG"
LEGACY_CONFIG_FILE = ".runtimeconfig.json"

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:5174",
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5174",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
    "http://localhost:5176",
    "https://istock-abebc.web.app",
    "https://istock-abebc.firebaseapp.com",
]


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    TEST = "test"
    STAGING = "staging"
    PRODUCTION = "production"


def _split_csv(value: Any) -> Any:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class RagEngineSettings(BaseSettings):
    """Vertex AI RAG engine configuration.

    The identifiers are optional here; ``get_rag_engine_config`` decides
    whether the service is actually configured.
    """

    model_config = SettingsConfigDict(env_prefix="RAG_ENGINE_")

    project_id: str | None = Field(
        default=None,
        description="Google Cloud project hosting the RAG corpus",
    )
    location: str | None = Field(
        default=None,
        description="Vertex AI region of the RAG corpus (e.g. us-east1)",
    )
    id: str | None = Field(
        default=None,
        description="RAG corpus ID",
    )
    timeout: float = Field(
        default=30.0,
        description="Retrieval request timeout in seconds",
    )
    top_k: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Number of context chunks to retrieve",
    )


class LLMSettings(BaseSettings):
    """Gemini generation configuration."""

    model_config = SettingsConfigDict(env_prefix="LLM_")

    model: str = Field(
        default="gemini-1.5-flash",
        description="Publisher model used for answer synthesis",
    )
    timeout: float = Field(
        default=30.0,
        description="Request timeout in seconds",
    )
    max_output_tokens: int = Field(
        default=1000,
        description="Maximum tokens in response",
    )
    temperature: float = Field(
        default=0.7,
        description="Sampling temperature",
    )
    top_p: float = Field(
        default=0.95,
        description="Nucleus sampling probability mass",
    )


class CORSSettings(BaseSettings):
    """Cross-origin policy for the browser client."""

    model_config = SettingsConfigDict(env_prefix="CORS_")

    allowed_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS),
        description="Origins allowed verbatim (comma separated in env)",
    )
    hosting_suffixes: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: [".web.app", ".firebaseapp.com"],
        description="Hosting platform suffixes accepted for any site",
    )

    @field_validator("allowed_origins", "hosting_suffixes", mode="before")
    @classmethod
    def _split_lists(cls, value: Any) -> Any:
        return _split_csv(value)


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        validation_alias=AliasChoices("NODE_ENV", "ENVIRONMENT", "environment"),
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    source_placeholder_host: str = Field(
        default="rag.istock.local",
        description="Host used to build URIs for sources without one",
    )
    runtime_config_path: Path = Field(
        default=Path(LEGACY_CONFIG_FILE),
        description="Legacy runtime config file read when env vars are missing",
    )

    # Nested settings
    rag_engine: RagEngineSettings = Field(default_factory=RagEngineSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


class RagEngineConfig(BaseModel):
    """Resolved identifiers of the RAG corpus."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    location: str
    corpus_id: str

    @property
    def parent(self) -> str:
        return f"projects/{self.project_id}/locations/{self.location}"

    @property
    def corpus_name(self) -> str:
        return f"{self.parent}/ragCorpora/{self.corpus_id}"

    @property
    def api_endpoint(self) -> str:
        return f"https://{self.location}-aiplatform.googleapis.com/v1"


def load_legacy_runtime_config(path: Path | None = None) -> dict[str, Any]:
    """Load the legacy Firebase runtime config document.

    ``CLOUD_RUNTIME_CONFIG`` may hold the JSON document itself or a path to
    it; otherwise ``path`` (``.runtimeconfig.json`` by default) is read.
    Missing or unreadable documents yield an empty dict.

    Args:
        path: Fallback file location.

    Returns:
        Parsed config document.
    """
    raw = os.environ.get(LEGACY_CONFIG_ENV, "").strip()
    source = LEGACY_CONFIG_ENV
    try:
        if not raw:
            candidate = path or Path(LEGACY_CONFIG_FILE)
            if not candidate.is_file():
                return {}
            raw = candidate.read_text(encoding="utf-8")
            source = str(candidate)
        elif not raw.startswith("{"):
            source = raw
            raw = Path(raw).read_text(encoding="utf-8")
        data = json.loads(raw)
    except (OSError, json.JSONDecodeError) as e:
        logger.debug(f"Legacy runtime config unavailable: {e}", extra={"source": source})
        return {}

    return data if isinstance(data, dict) else {}


@lru_cache
def get_rag_engine_config() -> RagEngineConfig:
    """Resolve the RAG engine identifiers once per process.

    Environment variables win; each missing field is looked up in the legacy
    runtime config (``rag.engine_project_id``, ``rag.engine_location``,
    ``rag.engine_id``).

    Returns:
        Resolved configuration.

    Raises:
        ConfigurationError: If any identifier is missing from both sources.
    """
    settings = get_settings()
    project_id = settings.rag_engine.project_id
    location = settings.rag_engine.location
    corpus_id = settings.rag_engine.id

    if not (project_id and location and corpus_id):
        legacy = load_legacy_runtime_config(settings.runtime_config_path).get("rag")
        if isinstance(legacy, dict):
            project_id = project_id or legacy.get("engine_project_id")
            location = location or legacy.get("engine_location")
            corpus_id = corpus_id or legacy.get("engine_id")

    for variable, value in (
        ("RAG_ENGINE_PROJECT_ID", project_id),
        ("RAG_ENGINE_LOCATION", location),
        ("RAG_ENGINE_ID", corpus_id),
    ):
        if not value:
            raise ConfigurationError(
                f"{variable} environment variable is not set",
                details={"variable": variable},
            )

    config = RagEngineConfig(
        project_id=str(project_id),
        location=str(location),
        corpus_id=str(corpus_id),
    )
    logger.info(
        "RAG engine configuration resolved",
        extra={"project_id": config.project_id, "location": config.location},
    )
    return config
