"""
Configuration module with strict validation.

Key principles:
- APP STARTUP only requires DATABASE_URL
- AI generation requires the key of the selected LLM provider (fails early)
- Scheduler cadence, batch sizes and retry policy are configurable
- Safe defaults for all optional settings
"""
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MissingLLMAPIKeyError(Exception):
    """Raised when AI generation is requested without a provider API key."""
    pass


class Settings(BaseSettings):
    """Application settings with validation.

    Loads from environment variables and .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database (REQUIRED for API startup)
    database_url: str = Field(
        ...,
        description="PostgreSQL connection URL"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # Entity search
    entity_search_limit_per_table: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum matches returned from each entity table"
    )

    # News scheduler
    news_scheduler_enabled: bool = Field(
        default=True,
        description="Start the news polling loops with the API process"
    )

    news_new_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Seconds between scans for NEW news records"
    )

    news_new_batch_size: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum NEW records picked up per scan"
    )

    news_retry_interval_seconds: float = Field(
        default=600.0,
        gt=0,
        description="Seconds between scans for FAILED news records"
    )

    news_retry_batch_size: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Maximum FAILED records resubmitted per scan"
    )

    news_worker_count: int = Field(
        default=4,
        ge=1,
        le=50,
        description="Concurrent news processing workers"
    )

    news_queue_size: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Capacity of the news dispatch queue"
    )

    # Retry Configuration
    news_max_attempts: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Processing attempts before a FAILED record is left for manual review"
    )

    news_retry_base_minutes: float = Field(
        default=5.0,
        gt=0,
        description="Delay before the first retry of a FAILED record"
    )

    news_retry_max_minutes: float = Field(
        default=60.0 * 24,
        gt=0,
        description="Upper bound on the delay between retries"
    )

    news_retry_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Exponential backoff factor for retries"
    )

    # LLM Configuration (OPTIONAL for startup, REQUIRED for AI generation)
    llm_provider: str = Field(
        default="openai",
        description="LLM provider used for news analysis: openai or anthropic"
    )

    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key"
    )

    anthropic_api_key: Optional[str] = Field(
        default=None,
        description="Anthropic API key"
    )

    llm_model: Optional[str] = Field(
        default=None,
        description="Model override (provider default when unset)"
    )

    llm_max_tokens: int = Field(
        default=1500,
        ge=100,
        le=16000,
        description="Maximum tokens in an AI generation response"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in {"openai", "anthropic"}:
            raise ValueError("llm_provider must be 'openai' or 'anthropic'")
        return v_lower

    def require_llm_api_key(self) -> str:
        """
        Get the API key for the configured LLM provider.

        Called when building the LLM client for AI generation.

        Raises:
            MissingLLMAPIKeyError: If the key is not configured

        Returns:
            str: The API key
        """
        if self.llm_provider == "anthropic":
            key, env_name = self.anthropic_api_key, "ANTHROPIC_API_KEY"
        else:
            key, env_name = self.openai_api_key, "OPENAI_API_KEY"
        if not key:
            raise MissingLLMAPIKeyError(
                f"{env_name} is required for AI generation with provider "
                f"'{self.llm_provider}'. Please set it in your .env file or "
                f"environment variables."
            )
        return key


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    This pattern allows:
    - Easy testing (can reset settings between tests)
    - Lazy loading (only loads when first accessed)
    - Singleton pattern (same instance used everywhere)
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """
    Reset the global settings instance.

    Useful for testing to ensure clean state between tests.
    """
    global _settings
    _settings = None
