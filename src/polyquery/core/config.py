"""Application configuration using Pydantic Settings with multi-file support."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Pydantic-settings natively loads from multiple .env files in priority order.
    Later files override earlier ones. Secrets use SecretStr for security.

    Priority (lowest to highest):
    1. .env (base defaults)
    2. env-files/dev.env (development overrides)
    3. env-files/secrets/secrets.env (secrets, never committed)
    4. OS environment variables (highest priority)
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "env-files/dev.env", "env-files/secrets/secrets.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "PolyQuery"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # API Configuration
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 4000
    CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["*"])

    # Text generation (any OpenAI-compatible endpoint, e.g. a local Ollama server)
    OPENAI_API_KEY: SecretStr = Field(..., description="API key for the text generation endpoint")
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_BASE_URL: str | None = Field(
        default=None,
        description="Override for OpenAI-compatible servers (e.g. http://localhost:11434/v1)",
    )
    OPENAI_TEMPERATURE: float = Field(default=0.0, ge=0.0, le=2.0)
    OPENAI_MAX_TOKENS: int = Field(default=2048, ge=100, le=128000)
    OPENAI_TIMEOUT: int = Field(default=300, ge=10, le=1800)

    # Persisted state
    DATA_DIR: Path = Field(default=Path("data"), description="Root directory for persisted state")
    CONNECTIONS_FILE: str = Field(default="connections.json")
    METADATA_FILE: str = Field(default="metadata.json")
    SCHEMAS_DIR: str = Field(default="schemas")

    # Optional single-URI mode: seeds a "default" MongoDB connection
    MONGODB_URI: str | None = None
    MONGO_TIMEOUT_MS: int = Field(default=5000, ge=100)

    # Schema cache
    SCHEMA_CACHE_TTL_SECONDS: int = Field(
        default=24 * 60 * 60,
        ge=1,
        description="Age after which a schema snapshot is regenerated",
    )
    DOCUMENT_SAMPLE_SIZE: int = Field(default=100, ge=1, le=10000)
    SPREADSHEET_SAMPLE_SIZE: int = Field(default=100, ge=1, le=10000)
    SPREADSHEET_MAX_ROWS: int = Field(default=10000, ge=1)
    WORKBOOK_CACHE_SIZE: int = Field(default=16, ge=1)

    # Result cache
    CACHE_ENABLED: bool = Field(default=True, description="Enable result caching")
    RESULT_CACHE_TTL_SECONDS: int = Field(default=300, ge=1, description="Result cache TTL")
    RESULT_CACHE_MAX_SIZE: int = Field(default=256, ge=1)
    REDIS_URL: str | None = Field(
        default=None,
        description="Redis connection URL for a shared result cache",
    )

    # Query defaults
    DEFAULT_QUERY_LIMIT: int = Field(default=50, ge=1, le=10000)

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @property
    def connections_path(self) -> Path:
        return self.DATA_DIR / self.CONNECTIONS_FILE

    @property
    def metadata_path(self) -> Path:
        return self.DATA_DIR / self.METADATA_FILE

    @property
    def schemas_path(self) -> Path:
        return self.DATA_DIR / self.SCHEMAS_DIR


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
