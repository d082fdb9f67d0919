from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    env: str = Field(default="dev", alias="APP_ENV")
    debug: bool = Field(default=False, alias="APP_DEBUG")
    app_version: str = Field(default="v1", alias="APP_VERSION")

    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_base_url: Optional[str] = Field(default=None, alias="OPENAI_BASE_URL")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    openai_temperature: float = Field(default=0.1, alias="OPENAI_TEMPERATURE")
    use_langchain: bool = Field(default=True, alias="USE_LANGCHAIN")
    assistant_min_confidence: float = Field(default=0.5, alias="ASSISTANT_MIN_CONFIDENCE")

    http_timeout_seconds: float = Field(default=15.0, alias="HTTP_TIMEOUT_SECONDS")
    scraper_timeout_seconds: float = Field(default=10.0, alias="SCRAPER_TIMEOUT_SECONDS")

    # Conversation context windows
    history_context_limit: int = Field(default=50, alias="HISTORY_CONTEXT_LIMIT")
    classifier_history_limit: int = Field(default=20, alias="CLASSIFIER_HISTORY_LIMIT")

    # Website plan limits
    max_pages_per_site: int = Field(default=10, alias="MAX_PAGES_PER_SITE")

    suggestion_dedup_hours: int = Field(default=24, alias="SUGGESTION_DEDUP_HOURS")

    # LangSmith / LangChain tracing
    langsmith_api_key: str | None = Field(default=None, alias="LANGSMITH_API_KEY")
    langsmith_endpoint: str | None = Field(default=None, alias="LANGSMITH_ENDPOINT")
    langsmith_project: str | None = Field(default=None, alias="LANGSMITH_PROJECT")
    langsmith_tracing_v2: bool = Field(default=False, alias="LANGCHAIN_TRACING_V2")
    enable_request_tracing: bool = Field(default=True, alias="ENABLE_REQUEST_TRACING")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
