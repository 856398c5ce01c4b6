"""
Configuration management for the VuOwma forwarder.

Supports configuration via environment variables and .env files.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ForwarderSettings(BaseSettings):
    """
    Configuration settings for VuOwma.

    All settings can be configured via environment variables with the VUOWMA_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="VUOWMA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Endpoint settings
    base_url: Optional[str] = Field(
        default=None,
        description="Public VuOwma URL used to link back to a batch"
    )
    webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook that receives forwarded messages"
    )
    message_format: str = Field(
        default="messagecard",
        description="Card format sent to the webhook (messagecard or adaptivecard)"
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for the outbound webhook request"
    )

    # Database settings
    database_url: str = Field(
        default="sqlite:///vuowma.db",
        description="SQLAlchemy database URL for message storage"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )


# Global config instance
_config: Optional[ForwarderSettings] = None


def get_config() -> ForwarderSettings:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = ForwarderSettings()
    return _config


def set_config(config: ForwarderSettings) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
