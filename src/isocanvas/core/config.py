"""Application configuration with validation."""

from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class SettingsError(Exception):
    """Raised when configuration is unusable for the environment."""
    pass


class Settings(BaseSettings):
    """
    Application settings with validation.

    Every field can be overridden with an ``ISOCANVAS_``-prefixed
    environment variable (e.g. ``ISOCANVAS_API_URL``).
    """

    model_config = SettingsConfigDict(
        env_prefix="ISOCANVAS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # Remote document API
    api_url: str = Field(
        default="http://localhost:3000",
        description="Base URL of the remote document API"
    )
    api_document_path: str = Field(
        default="/api/document",
        description="Path of the document resource (GET/POST/DELETE ?id=...)"
    )
    api_token: str = Field(
        default="",
        description="Optional bearer token for the remote document API"
    )
    api_timeout: float = Field(
        default=30.0,
        description="Request timeout in seconds"
    )
    # Retries apply to connection errors, timeouts and 5xx responses only.
    api_max_retries: int = Field(
        default=3,
        description="Attempts per request before giving up"
    )
    api_retry_base_delay: float = Field(
        default=1.0,
        description="Exponential backoff base in seconds (1s, 2s, 4s)"
    )

    # Client-local store
    local_store_url: str = Field(
        default="sqlite:///./isocanvas-local.db",
        description="SQLAlchemy URL of the client-local keyed store"
    )
    local_key_prefix: str = Field(
        default="local-document-",
        description="Namespace prefix of local-store keys"
    )
    local_user_id: str = Field(
        default="local-user",
        description="userId stamped on locally created versions"
    )

    # Autosave
    # Bounds the version-creation rate under rapid typing.
    autosave_debounce_seconds: float = Field(
        default=1.0,
        description="Debounce window before an edit is written"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in ("json", "text"):
            raise ValueError("Invalid log format. Must be 'json' or 'text'")
        return v_lower

    @field_validator('api_timeout', 'api_retry_base_delay', 'autosave_debounce_seconds')
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Value must be non-negative")
        return v

    @field_validator('api_max_retries')
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("api_max_retries must be at least 1")
        return v

    def validate_production_config(self) -> list[str]:
        """Validate configuration for the production environment.

        In production, startup fails when the document API is still the local
        development server or is reached without a token. In development the
        problems are returned for the caller to log.

        Raises:
            SettingsError: If production config is unusable.
        """
        problems: list[str] = []

        if "localhost" in self.api_url or "127.0.0.1" in self.api_url:
            problems.append(f"ISOCANVAS_API_URL points at a local server: {self.api_url}")

        if not self.api_token:
            problems.append("ISOCANVAS_API_TOKEN is empty; remote writes would be unauthenticated.")

        if self.local_store_url in ("sqlite://", "sqlite:///:memory:"):
            problems.append("ISOCANVAS_LOCAL_STORE_URL is in-memory; local versions would not survive a restart.")

        if problems and self.environment == Environment.PRODUCTION:
            raise SettingsError(
                "Production configuration is unusable:\n  - " + "\n  - ".join(problems)
            )
        return problems


# Global settings instance
settings = Settings()
