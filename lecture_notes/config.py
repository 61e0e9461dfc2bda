"""
Configuration management for the lecture notes service.

Uses Pydantic Settings to load configuration from environment variables
and an optional .env file.
"""

from typing import List, Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """
    Configuration class for the lecture notes service.

    Loads settings from environment variables and optional .env file.
    Everything except the encryption key has a usable default.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(default="lecture-notes", description="Application name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="'text' or 'json'")

    # Storage
    database_url: str = Field(
        default="sqlite:///data/notes.db",
        description="SQLAlchemy database URL"
    )

    # Secret vault
    encryption_key: Optional[str] = Field(
        default=None,
        description="Process-wide secret used to encrypt user API keys"
    )

    # Generation service
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the Gemini REST API"
    )
    gemini_model: str = Field(
        default="gemini-2.0-flash-lite",
        description="Model used for note generation"
    )
    generation_timeout: int = Field(
        default=120,
        description="Timeout in seconds for a generation call"
    )
    max_transcript_length: int = Field(
        default=50_000,
        description="Maximum accepted transcript length in characters"
    )

    # Identity provider (issues the opaque session tokens)
    identity_url: Optional[str] = Field(
        default=None,
        description="Base URL of the identity provider"
    )
    identity_api_key: Optional[str] = Field(
        default=None,
        description="Public API key sent to the identity provider"
    )
    allowed_email_domain: Optional[str] = Field(
        default=None,
        description="Only accept users whose email ends with this domain"
    )

    # API settings
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins"
    )
    generation_rate_limit: str = Field(
        default="10/minute",
        description="slowapi rate limit for the generation endpoint"
    )
    rate_limit_enabled: bool = Field(default=True, description="Enable rate limiting")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in ("text", "json"):
            raise ValueError(f"Invalid log format: {v}. Must be 'text' or 'json'")
        return v_lower

    @property
    def cors_origin_list(self) -> List[str]:
        """Parse comma-separated origins."""
        return [o.strip().rstrip("/") for o in self.cors_origins.split(",") if o.strip()]

    @property
    def identity_configured(self) -> bool:
        return bool(self.identity_url)


@lru_cache()
def get_config() -> Config:
    """
    Get cached configuration instance.

    Returns:
        Config instance loaded from environment
    """
    return Config()
