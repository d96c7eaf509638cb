"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


class UpstreamConfig(BaseSettings):
    """Completion + retrieval service configuration."""

    provider: str = "openai"
    model: str = "gpt-4.1"
    temperature: float = 0.0
    max_results: int = 20
    base_url: str | None = None
    api_key: str | None = None

    # Retrieval index reference (OpenAI vector store id)
    vector_store_id: str | None = None

    model_config = SettingsConfigDict(env_prefix="UPSTREAM_")


class RateLimitConfig(BaseSettings):
    """Per-client admission limits."""

    chat_burst: int = 20
    chat_daily: int = 200
    upload_per_minute: int = 10
    sweep_interval_seconds: float = 300.0

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_")


class FilterConfig(BaseSettings):
    """Content filter configuration."""

    max_input_length: int = 2000
    block_offtopic: bool = False

    model_config = SettingsConfigDict(env_prefix="FILTER_")


class StreamConfig(BaseSettings):
    """Streaming relay configuration."""

    frame_buffer_size: int = 32

    model_config = SettingsConfigDict(env_prefix="STREAM_")


class CorpusConfig(BaseSettings):
    """Known corpus documents.

    ``documents`` seeds the catalog so citation heuristics can resolve
    filenames before anything is ingested through the API.
    """

    documents: list[str] = Field(default_factory=list)
    default_document: str | None = None

    model_config = SettingsConfigDict(env_prefix="CORPUS_")


class AppConfig(BaseSettings):
    """Top-level application configuration."""

    app_name: str = "PageCite"
    debug: bool = False
    log_level: str = "INFO"
    log_to_file: bool = False
    log_dir: str = str(_project_root / "logs")
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list = Field(default_factory=lambda: ["*"])

    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    filter: FilterConfig = Field(default_factory=FilterConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    corpus: CorpusConfig = Field(default_factory=CorpusConfig)

    model_config = SettingsConfigDict(env_file=str(_env_file), env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return AppConfig()
