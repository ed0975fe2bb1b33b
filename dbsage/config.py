"""
Application configuration management using Pydantic Settings.
All settings are loaded from environment variables (or a local .env file).

Components take an optional ``settings`` argument and fall back to the
module-level instance, so tests can inject their own values.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


LLMProvider = Literal[
    "groq", "openai", "anthropic", "google", "deepseek", "grok", "openrouter"
]


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Records Store (analysis history)
    # =========================================================================
    records_database_url: str = Field(default="sqlite:///dbsage.db")

    # =========================================================================
    # LLM Provider Configuration
    # =========================================================================
    llm_provider: LLMProvider = Field(default="groq")
    llm_model: str = Field(default="")  # Empty = provider default
    llm_timeout_seconds: float = Field(default=30.0, gt=0)

    groq_api_key: str = Field(default="")
    openai_api_key: str = Field(default="")
    anthropic_api_key: str = Field(default="")
    google_api_key: str = Field(default="")
    deepseek_api_key: str = Field(default="")
    grok_api_key: str = Field(default="")
    openrouter_api_key: str = Field(default="")

    # =========================================================================
    # Chat Agent
    # =========================================================================
    chat_row_limit: int = Field(default=100, ge=1)
    chat_history_window: int = Field(default=8, ge=1)
    chat_turn_timeout_seconds: float = Field(default=30.0, gt=0)

    # =========================================================================
    # Analyses
    # =========================================================================
    dynamic_row_limit: int = Field(default=1000, ge=1)
    chart_ascii_height: int = Field(default=20, ge=2)

    # =========================================================================
    # Application Settings
    # =========================================================================
    environment: Literal["development", "staging", "production"] = Field(
        default="development"
    )
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="console")

    def api_key_for(self, provider: str) -> str:
        """Return the configured API key for a provider ('' when unset)."""
        return getattr(self, f"{provider}_api_key", "")


# Global settings instance
settings = Settings()
