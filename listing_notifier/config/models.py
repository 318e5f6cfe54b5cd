"""Configuration schema models using Pydantic."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class DeliveryConfig(BaseModel):
    """Email delivery settings that are not secrets.

    Credentials and transport selection live in the environment (see
    ``EnvironmentConfig``); this block only tunes how messages are built
    and how long outbound calls may take.
    """

    request_timeout: float = Field(
        15.0, gt=0, le=120, description="Timeout for Resend API calls (seconds)"
    )
    smtp_timeout: float = Field(
        30.0, gt=0, le=300, description="Socket timeout for SMTP connections (seconds)"
    )
    resend_api_url: str = Field(
        "https://api.resend.com", min_length=1, description="Resend API base URL"
    )
    site_name: str = Field(
        "AFC Private Listing Network", min_length=1, description="Name used in email copy"
    )
    dashboard_url: str = Field(
        "https://afcpln.example.com", min_length=1, description="Link used in call-to-action"
    )
    default_sender_name: str = Field(
        "AFC Private Listings", min_length=1, description="Sender display name fallback"
    )
    default_sender_address: str = Field(
        "hello@lgweb.app", min_length=3, description="Sender address fallback"
    )

    @field_validator("resend_api_url", "dashboard_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize URLs so paths can be appended safely."""
        return v.strip().rstrip("/")


class AppConfig(BaseModel):
    """Root configuration object for the listing notifier."""

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    delivery: DeliveryConfig = Field(
        default_factory=DeliveryConfig, description="Email delivery settings"
    )
