"""Service configuration loaded from ``SITEQA_*`` environment variables."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings.  Crawl values only seed the store's editable settings."""

    model_config = SettingsConfigDict(env_prefix="SITEQA_", env_file=".env", extra="ignore")

    log_level: str = "INFO"

    # Crawler identity and timeouts
    user_agent: str = "SiteQABot"
    navigation_timeout_ms: int = 30_000
    robots_timeout_s: float = 10.0
    headless: bool = True

    # Crawl defaults
    default_max_pages: int = 50
    default_crawl_delay_ms: int = 2000
    respect_robots_txt: bool = True

    # Retrieval
    search_limit: int = 5
    context_chars_per_document: int = 2000
    score_occurrence_weight: float = 2.0
    score_title_weight: float = 5.0
    score_partial_weight: float = 0.5

    # Answering model
    anthropic_api_key: Optional[str] = None
    anthropic_api_url: str = "https://api.anthropic.com/v1/messages"
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    anthropic_version: str = "2023-06-01"
    anthropic_max_tokens: int = 2048
    anthropic_timeout_s: float = 60.0


@lru_cache
def get_settings() -> Settings:
    return Settings()
