"""Configuration settings using Pydantic."""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Generative model configuration
    llm_provider: str = "gemini"
    google_gemini_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"

    # Alternative provider
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: Optional[str] = None

    # Application Configuration
    environment: str = "development"
    log_level: str = "INFO"
    enable_tracing: bool = False
    database_path: str = "code_interactions.db"

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000


# Global settings instance
settings = Settings()
