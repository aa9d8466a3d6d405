"""
Configuration module for the Prediction Proxy.

This module uses Pydantic Settings to load and validate the environment
variables the proxy needs to reach the upstream prediction service.

Environment variables are loaded from .env file or system environment.
Settings are read once and frozen; a missing UPSTREAM_URL or UPSTREAM_KEY
raises a ValidationError before the application accepts any request.
"""

from functools import lru_cache

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The two upstream values are required; everything else has a default.
    """

    # =========================================================================
    # Upstream Prediction Service
    # =========================================================================

    UPSTREAM_URL: HttpUrl = Field(
        ...,
        description="Base URL of the prediction service (e.g., https://flowise.example.com)",
    )

    UPSTREAM_KEY: str = Field(
        ...,
        description="Bearer credential sent to the prediction service",
        min_length=1,
    )

    UPSTREAM_CONNECT_TIMEOUT: float = Field(
        default=10.0,
        description="Seconds allowed to establish the upstream connection",
        gt=0,
    )

    UPSTREAM_READ_TIMEOUT: float = Field(
        default=300.0,
        description="Seconds allowed between streamed upstream chunks",
        gt=0,
    )

    # =========================================================================
    # Proxy Server Configuration
    # =========================================================================

    PROXY_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the proxy server",
    )

    PROXY_PORT: int = Field(
        default=8080,
        description="Port to bind the proxy server",
        ge=1,
        le=65535,
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra env vars not defined here
        frozen=True,
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def upstream_url_str(self) -> str:
        """
        Get upstream URL as string (for building endpoint URLs).

        Returns:
            Upstream base URL without trailing slash.
        """
        return str(self.UPSTREAM_URL).rstrip("/")

    def prediction_url(self, chatflow_id: str) -> str:
        """
        Build the prediction endpoint URL for a chatflow.

        Args:
            chatflow_id: Chatflow identifier, already percent-encoded

        Returns:
            Full URL of the upstream prediction endpoint.
        """
        return f"{self.upstream_url_str}/api/v1/prediction/{chatflow_id}"

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("UPSTREAM_KEY")
    @classmethod
    def validate_upstream_key(cls, v: str) -> str:
        """
        Reject credentials that are blank after trimming.

        The key is otherwise returned exactly as configured.

        Raises:
            ValueError: If the key is only whitespace
        """
        if not v.strip():
            raise ValueError("UPSTREAM_KEY must not be blank")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

        level = v.upper()
        if level not in allowed_levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {allowed_levels}, got: {v}"
            )

        return level


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    This function is cached so that the settings are loaded only once
    during the process lifetime.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ValidationError: If UPSTREAM_URL or UPSTREAM_KEY is missing
                        or invalid.
    """
    return Settings()
