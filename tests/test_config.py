"""
Unit tests for configuration module.

Tests run WITHOUT .env file and WITHOUT API keys.
"""
import pytest
from app.core.config import (
    Settings,
    get_settings,
    reset_settings,
    MissingLLMAPIKeyError
)


@pytest.mark.unit
def test_config_requires_database_url(clean_env, monkeypatch):
    """Database URL is required for app startup."""
    with pytest.raises(Exception):  # Pydantic validation error
        Settings(_env_file=None)


@pytest.mark.unit
def test_config_llm_key_optional_for_startup(clean_env, monkeypatch):
    """LLM API keys are optional for app startup."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")

    settings = Settings(_env_file=None)
    assert settings.database_url == "postgresql://test"
    assert settings.openai_api_key is None
    assert settings.anthropic_api_key is None


@pytest.mark.unit
def test_config_llm_key_required_for_generation(clean_env, monkeypatch):
    """The provider key is required when calling require_llm_api_key()."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")

    settings = Settings(_env_file=None)

    with pytest.raises(MissingLLMAPIKeyError) as exc_info:
        settings.require_llm_api_key()

    assert "OPENAI_API_KEY is required" in str(exc_info.value)


@pytest.mark.unit
def test_config_key_follows_provider(clean_env, monkeypatch):
    """The Anthropic key is used when the provider is anthropic."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")
    monkeypatch.setenv("LLM_PROVIDER", "Anthropic")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")

    settings = Settings(_env_file=None)

    assert settings.llm_provider == "anthropic"
    assert settings.require_llm_api_key() == "sk-ant"


@pytest.mark.unit
def test_config_defaults(clean_env, monkeypatch):
    """Test default values for optional settings."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")

    settings = Settings(_env_file=None)

    assert settings.log_level == "INFO"
    assert settings.entity_search_limit_per_table == 5
    assert settings.news_scheduler_enabled is True
    assert settings.news_new_interval_seconds == 60
    assert settings.news_new_batch_size == 5
    assert settings.news_retry_interval_seconds == 600
    assert settings.news_retry_batch_size == 3
    assert settings.news_worker_count == 4
    assert settings.news_queue_size == 50
    assert settings.news_max_attempts == 5
    assert settings.news_retry_base_minutes == 5
    assert settings.news_retry_max_minutes == 1440
    assert settings.news_retry_multiplier == 2.0
    assert settings.llm_provider == "openai"
    assert settings.llm_max_tokens == 1500


@pytest.mark.unit
def test_config_custom_values(clean_env, monkeypatch):
    """Test custom values from environment."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("NEWS_NEW_BATCH_SIZE", "10")
    monkeypatch.setenv("NEWS_SCHEDULER_ENABLED", "false")
    monkeypatch.setenv("ENTITY_SEARCH_LIMIT_PER_TABLE", "7")

    settings = Settings(_env_file=None)

    assert settings.log_level == "DEBUG"
    assert settings.news_new_batch_size == 10
    assert settings.news_scheduler_enabled is False
    assert settings.entity_search_limit_per_table == 7


@pytest.mark.unit
def test_config_invalid_log_level(clean_env, monkeypatch):
    """Test validation of log level."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")
    monkeypatch.setenv("LOG_LEVEL", "VERBOSE")

    with pytest.raises(Exception):
        Settings(_env_file=None)


@pytest.mark.unit
def test_config_invalid_provider(clean_env, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")
    monkeypatch.setenv("LLM_PROVIDER", "cohere")

    with pytest.raises(Exception):
        Settings(_env_file=None)


@pytest.mark.unit
def test_config_search_limit_bounds(clean_env, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")
    monkeypatch.setenv("ENTITY_SEARCH_LIMIT_PER_TABLE", "0")

    with pytest.raises(Exception):
        Settings(_env_file=None)


@pytest.mark.unit
def test_get_settings_singleton(clean_env, monkeypatch):
    """get_settings returns the same instance until reset."""
    monkeypatch.setenv("DATABASE_URL", "postgresql://test")

    first = get_settings()
    assert get_settings() is first

    reset_settings()
    assert get_settings() is not first
