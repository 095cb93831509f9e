# ABOUTME: Application configuration using Pydantic Settings for environment variables
# ABOUTME: Provides type-safe access to LLM and storage credentials, intervals and logging config

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Application configuration with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="XTRADE_SCRAPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown environment variables
    )

    # Generative model configuration
    llm_api_key: str = Field(default="", description="API key for the card extraction model")
    llm_model: str = Field(
        default="gemini/gemini-2.5-flash", description="LiteLLM-style model identifier used through dspy"
    )
    llm_max_tokens: int = Field(default=4096, description="Completion token budget per extraction request")
    max_html_chars: int = Field(
        default=100_000, description="Sanitized HTML is truncated to this many characters before extraction"
    )

    # Database configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/xtrade_catalog.db", description="SQLAlchemy async database URL"
    )

    # Object storage (S3-compatible, e.g. Cloudflare R2 or MinIO)
    storage_endpoint: str = Field(default="", description="S3-compatible endpoint URL")
    storage_access_key_id: str = Field(default="", description="Access key ID for the bucket")
    storage_secret_access_key: str = Field(default="", description="Secret access key for the bucket")
    storage_bucket: str = Field(default="xtrade-card-images-dev", description="Bucket receiving mirrored images")
    storage_public_domain: str = Field(
        default="card-images.xtrade-dev.tqer39.dev", description="Public domain serving the bucket contents"
    )

    # Backpressure against external hosts (seconds)
    page_interval: float = Field(default=2.0, description="Minimum spacing between page fetches")
    image_interval: float = Field(default=1.0, description="Minimum spacing between image fetches")
    source_interval: float = Field(default=5.0, description="Pause between consecutive sources")
    image_max_width: int = Field(default=800, description="Mirrored images wider than this are downscaled")

    # Logging configuration
    log_mode: Literal["interactive", "production"] | None = Field(
        default=None, description="Logging output mode; detected from the terminal when unset"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging verbosity level"
    )
    log_file: Path | None = Field(default=None, description="Custom log file path (overrides default)")


# Global config instance - lazy loaded when first accessed
_config_instance: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance.

    Creates the config on first access, subsequent calls return the same instance.
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    return _config_instance


def reload_config() -> Config:
    """Reload configuration from environment variables."""
    global _config_instance
    _config_instance = Config()
    return _config_instance
