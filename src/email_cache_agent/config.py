"""Configuration management for Email Cache Agent.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the EMAIL_CACHE_ prefix (e.g., EMAIL_CACHE_OLLAMA_HOST).
    """

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Ollama Configuration
    ollama_host: str = Field(
        default="http://localhost:11434",
        description="Ollama API host URL",
    )
    ollama_timeout: int = Field(
        default=60,
        description="Timeout for Ollama API requests in seconds",
    )
    embedding_model: str = Field(
        default="nomic-embed-text",
        description="Model used for message and query embeddings",
    )
    summary_model: str = Field(
        default="llama3.1:8b-instruct-q4_K_M",
        description="Model used to write message summaries",
    )
    extraction_model: str = Field(
        default="qwen2.5:1.5b",
        description="Model used to extract importance and deadline",
    )
    summary_language: str = Field(
        default="Japanese",
        description="Language the summary bullets are written in",
    )

    # Gmail Configuration
    gmail_credentials_path: Path = Field(
        default=Path("conf/credentials.json"),
        description="Path to Gmail API credentials file",
    )
    gmail_token_path: Path = Field(
        default=Path("conf/token.json"),
        description="Path to Gmail API token file",
    )
    gmail_scope: str = Field(
        default="https://www.googleapis.com/auth/gmail.modify",
        description=(
            "OAuth scope used for Gmail access. Marking messages read and moving "
            "them to trash both require gmail.modify."
        ),
    )
    gmail_user_id: str = Field(
        default="me",
        description="Gmail user id passed to every API call",
    )
    sync_recent_size: int = Field(
        default=50,
        description="Number of most recent messages pulled by an incremental sync",
    )
    sync_history_page_size: int = Field(
        default=500,
        description="Page size used by historical sync",
    )

    # Local cache configuration
    cache_db_path: Path = Field(
        default=Path("db/mail_cache.db"),
        description="Path to the local SQLite mail cache",
    )
    cache_busy_timeout_ms: int = Field(
        default=5000,
        description="SQLite busy timeout in milliseconds before a lock error surfaces",
    )

    # Enrichment configuration
    embed_char_budget: int = Field(
        default=4000,
        description="Maximum number of characters sent to the embedding model",
    )
    enrichment_workers: int = Field(
        default=2,
        ge=1,
        description="Number of concurrent background enrichment workers",
    )
    enrichment_queue_size: int = Field(
        default=256,
        ge=1,
        description="Maximum queued enrichment jobs before submitters wait",
    )

    # Search configuration
    search_top_k: int = Field(
        default=10,
        ge=1,
        description="Maximum number of semantic search results",
    )

    # Retention configuration
    retention_initial_delay_seconds: float = Field(
        default=30.0,
        description="Delay after startup before the first retention sweep",
    )
    retention_interval_seconds: float = Field(
        default=0.0,
        description="Interval between retention sweeps; 0 runs the sweep only once",
    )

    # Channel configuration
    channels_path: Path = Field(
        default=Path("conf/channels.json"),
        description="Path to the JSON channel definitions",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    max_retries: int = Field(
        default=3,
        description="Maximum number of retries for failed operations",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
