"""
Configuration Management Module

This module handles all application configuration using Pydantic Settings.
Configuration is loaded from environment variables with strong typing and validation.

Design Decisions:
- Use Pydantic Settings for automatic environment variable loading
- Settings are frozen once built and passed explicitly to the components
  that need them (router, Instagram client)
- Missing credentials are reported at startup but are not fatal; the first
  outbound call that needs them will fail instead
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All sensitive values are loaded from environment variables only,
    never hardcoded or logged.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True
    )

    # =========================================================================
    # Meta / Instagram Credentials
    # =========================================================================
    page_access_token: str = Field(
        default="",
        description="Page access token used for Graph API calls"
    )

    verify_token: str = Field(
        default="",
        description="Token Meta echoes back during webhook subscription"
    )

    app_secret: str = Field(
        default="",
        description="App secret used to verify X-Hub-Signature-256"
    )

    instagram_account_id: str = Field(
        default="",
        description="Instagram business account ID handled by this bot"
    )

    # =========================================================================
    # Graph API Configuration
    # =========================================================================
    graph_api_base: str = Field(
        default="https://graph.facebook.com/v18.0",
        description="Base URL of the Graph API"
    )

    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Timeout for each outbound Graph API call"
    )

    supported_object: str = Field(
        default="instagram",
        description="Webhook object type this service dispatches"
    )

    # =========================================================================
    # Maintenance
    # =========================================================================
    maintenance_enabled: bool = Field(
        default=True,
        description="Run the periodic maintenance task"
    )

    maintenance_interval_seconds: float = Field(
        default=6 * 60 * 60,
        ge=1.0,
        description="Interval between maintenance runs"
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Host to bind the server"
    )

    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Port to bind the server"
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    log_json_format: bool = Field(
        default=True,
        description="Enable JSON logging format"
    )

    log_requests: bool = Field(
        default=False,
        description="Enable request/response logging"
    )

    # =========================================================================
    # Feature Flags
    # =========================================================================
    enable_direct_messages: bool = Field(
        default=True,
        description="Send direct messages"
    )

    enable_comment_replies: bool = Field(
        default=True,
        description="Post public replies to comments"
    )

    dry_run: bool = Field(
        default=False,
        description="Log outbound calls instead of sending them"
    )

    # =========================================================================
    # Validators
    # =========================================================================
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("graph_api_base")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # =========================================================================
    # Computed Properties
    # =========================================================================
    def credential_status(self) -> dict:
        """Map each credential name to whether it is configured."""
        return {
            "page_access_token": bool(self.page_access_token),
            "verify_token": bool(self.verify_token),
            "app_secret": bool(self.app_secret),
            "instagram_account_id": bool(self.instagram_account_id),
        }

    def missing_credentials(self) -> List[str]:
        """Get the names of credentials that are not configured."""
        return [name for name, is_set in self.credential_status().items() if not is_set]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Only the composition root (app factory, runner) should call this;
    everything else receives the settings object explicitly.

    Returns:
        Settings instance
    """
    return Settings()
