"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.

Settings are read at the edges (API app, CLI scripts) and passed into the
pipeline components as explicit constructor arguments.
"""

from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # AI provider selection ("anthropic" or "openai")
    AI_PROVIDER: str = "anthropic"

    # Claude API
    ANTHROPIC_API_KEY: Optional[str] = None
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"

    # OpenAI API
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_REFINE_MODEL: str = "gpt-4o-mini"

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Billing
    CREDITS_PER_GENERATION: int = 1

    # Limits
    MAX_REFINEMENTS: int = 2
    MAX_SCHEMA_TYPES_PER_URL: int = 10
    MAX_BATCH_URLS: int = 10
    BATCH_PACING_SECONDS: float = 1.0

    # Timeouts (seconds)
    URL_CHECK_TIMEOUT: int = 15
    SCRAPE_TIMEOUT: int = 30
    AI_TIMEOUT: int = 120

    # Crawler identity
    SCRAPER_USER_AGENT: str = "Mozilla/5.0 (compatible; SchemaForgeBot/1.0)"
    RESPECT_ROBOTS_TXT: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
