import json
from functools import lru_cache
from typing import Dict, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings

from .exceptions import ConfigurationError


DEFAULT_RSS_FEEDS = {
    "world": "https://feeds.bbci.co.uk/news/world/rss.xml",
    "technology": "https://feeds.bbci.co.uk/news/technology/rss.xml",
    "business": "https://feeds.bbci.co.uk/news/business/rss.xml",
}


class Settings(BaseSettings):

    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=5000, validation_alias=AliasChoices("PORT", "API_PORT"), description="API port")
    debug: bool = Field(default=False, description="Debug mode")
    allowed_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins",
        validation_alias=AliasChoices("CORS_ALLOWED_ORIGINS", "ALLOWED_ORIGINS"),
    )

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json or text)")

    # Firestore
    firebase_service_account_key: Optional[str] = Field(
        default=None,
        description="Firebase service account JSON (inline)"
    )
    firebase_service_account_path: Optional[str] = Field(
        default=None,
        description="Firebase service account JSON file path"
    )
    firebase_project_id: Optional[str] = Field(default=None, description="Firebase project ID")
    articles_collection: str = Field(default="articles", description="Firestore collection for article records")

    # Rewrite service (OpenAI-compatible chat completions)
    openai_api_key: Optional[str] = Field(default=None, description="Rewrite service API key")
    openai_base_url: str = Field(
        default="https://api.chatanywhere.tech/v1",
        description="Base URL of the OpenAI-compatible rewrite service"
    )
    openai_model_name: str = Field(default="gpt-3.5-turbo-0125", description="Rewrite model name")
    rewrite_temperature: float = Field(default=0.5, description="Sampling temperature for rewrites")
    rewrite_max_tokens: int = Field(default=2000, description="Max tokens per rewrite response")
    rewrite_max_retries: int = Field(default=3, ge=1, description="Total attempts on HTTP 429")
    rewrite_base_delay_seconds: float = Field(default=1.5, ge=0, description="First backoff delay, doubled per retry")
    rewrite_timeout_seconds: float = Field(default=60.0, description="Rewrite request timeout")

    # Content extraction
    extractor_timeout_seconds: float = Field(default=10.0, description="Article page fetch timeout")
    extractor_max_chars: int = Field(default=4000, description="Maximum extracted characters kept per article")

    # Batching
    batch_size: int = Field(default=10, ge=1, description="Articles per rewrite batch")
    batch_cooldown_seconds: float = Field(default=3.0, ge=0, description="Pause between batches")

    # Feed polling
    rss_feeds: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_RSS_FEEDS),
        description="Feed map of category to RSS URL"
    )
    scheduler_enabled: bool = Field(default=True, description="Run the recurring feed poll")
    feed_poll_interval_minutes: int = Field(default=120, ge=1, description="Interval between scheduled polls")
    feed_max_entries: int = Field(default=5, ge=1, description="Entries processed per feed per run")
    feed_article_delay_seconds: float = Field(default=5.0, ge=0, description="Pause between articles")
    feed_timeout_seconds: float = Field(default=15.0, description="Feed fetch timeout")
    reprocess_incomplete_limit: int = Field(
        default=5,
        ge=0,
        description="Stored incomplete records retried after each poll"
    )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value):
        if value is None:
            return value
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("rss_feeds", mode="before")
    @classmethod
    def parse_rss_feeds(cls, value):
        if isinstance(value, str):
            return json.loads(value) if value.strip() else {}
        return value

    def validate_required(self) -> None:
        """Refuse to run half-configured."""
        missing = []
        if not self.openai_api_key:
            missing.append("OPENAI_API_KEY")
        if not (self.firebase_service_account_key or self.firebase_service_account_path):
            missing.append("FIREBASE_SERVICE_ACCOUNT_KEY or FIREBASE_SERVICE_ACCOUNT_PATH")
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                details={"missing": missing}
            )

    class Config:
        env_file = [".env", ".env.local"]  # .env.local takes precedence over .env
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
