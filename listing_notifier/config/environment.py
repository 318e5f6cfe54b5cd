"""Environment variable loading and validation.

Email transport settings are read from the process environment every time
a delivery resolves its transport, so this module must stay cheap: no I/O
beyond ``os.environ`` lookups.

Two entry points share one parser:

- ``load_environment_config`` validates everything and raises once with
  every problem; the CLI uses it at startup.
- ``load_email_config`` reads only what transport selection needs and never
  raises. SMTP problems are kept on the result and surface when an SMTP
  transport is actually built, so a bad ``SMTP_PORT`` or ``LOG_LEVEL`` does
  not stop Resend deliveries.
"""

import os
from typing import Callable, List, Mapping, Optional

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/listing_notifier.db"

# Explicit sender keys, highest priority first
SENDER_ENV_KEYS = (
    "EMAIL_FROM",
    "RESEND_FROM",
    "RESEND_FROM_EMAIL",
    "RESEND_SENDER",
    "RESEND_FROM_ADDRESS",
)

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        resend_api_key: Optional[str] = None,
        email_from: Optional[str] = None,
        email_from_name: Optional[str] = None,
        resend_domain: Optional[str] = None,
        smtp_url: Optional[str] = None,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_secure: Optional[bool] = None,
        smtp_user: Optional[str] = None,
        smtp_pass: Optional[str] = None,
        inert_transport: bool = False,
        log_level: Optional[str] = None,
        log_format: Optional[str] = None,
        environment: Optional[str] = None,
        database_url: Optional[str] = None,
        smtp_errors: Optional[List[str]] = None,
    ):
        self.resend_api_key = resend_api_key
        self.email_from = email_from
        self.email_from_name = email_from_name
        self.resend_domain = resend_domain
        self.smtp_url = smtp_url
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_secure = smtp_secure
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.inert_transport = inert_transport
        self.log_level = log_level
        self.log_format = log_format
        self.environment = environment or "local"
        self.database_url = database_url or DEFAULT_DATABASE_URL
        # Malformed SMTP variables, reported when an SMTP transport is built
        self.smtp_errors = list(smtp_errors or ())

    @property
    def has_primary_credential(self) -> bool:
        """Whether a Resend API key is configured."""
        return bool(self.resend_api_key)

    @property
    def has_smtp_settings(self) -> bool:
        """Whether any direct-protocol (SMTP) destination is configured."""
        return bool(self.smtp_url or self.smtp_host)


def _reader(env: Mapping[str, str]) -> Callable[[str], Optional[str]]:
    def get(key: str) -> Optional[str]:
        value = env.get(key)
        if value is None:
            return None
        return value.strip() or None

    return get


def _parse_email_settings(get: Callable[[str], Optional[str]], errors: List[str]) -> EnvironmentConfig:
    """Read the email variables. SMTP problems go on the result, others into ``errors``."""
    smtp_errors: List[str] = []

    smtp_port = None
    smtp_port_str = get("SMTP_PORT")
    if smtp_port_str:
        try:
            smtp_port = int(smtp_port_str)
        except ValueError:
            smtp_errors.append(f"Invalid SMTP_PORT: '{smtp_port_str}'. Must be a valid integer.")
        else:
            if not 1 <= smtp_port <= 65535:
                smtp_errors.append(f"Invalid SMTP_PORT: {smtp_port}. Must be between 1 and 65535.")
                smtp_port = None

    smtp_secure = None
    smtp_secure_str = get("SMTP_SECURE")
    if smtp_secure_str is not None:
        try:
            smtp_secure = _parse_bool(smtp_secure_str)
        except ValueError:
            smtp_errors.append(f"Invalid SMTP_SECURE: '{smtp_secure_str}'. Use true or false.")

    smtp_user = get("SMTP_USER")
    smtp_pass = get("SMTP_PASS")
    if smtp_user and not smtp_pass:
        smtp_errors.append("SMTP_USER is set but SMTP_PASS is not. Both must be set for authentication.")
    elif smtp_pass and not smtp_user:
        smtp_errors.append("SMTP_PASS is set but SMTP_USER is not. Both must be set for authentication.")

    inert_transport = False
    inert_str = get("EMAIL_INERT_TRANSPORT")
    if inert_str is not None:
        try:
            inert_transport = _parse_bool(inert_str)
        except ValueError:
            errors.append(f"Invalid EMAIL_INERT_TRANSPORT: '{inert_str}'. Use true or false.")

    return EnvironmentConfig(
        resend_api_key=get("RESEND_API_KEY"),
        email_from=next((get(key) for key in SENDER_ENV_KEYS if get(key)), None),
        email_from_name=get("EMAIL_FROM_NAME"),
        resend_domain=get("RESEND_DOMAIN"),
        smtp_url=get("SMTP_URL"),
        smtp_host=get("SMTP_HOST"),
        smtp_port=smtp_port,
        smtp_secure=smtp_secure,
        smtp_user=smtp_user,
        smtp_pass=smtp_pass,
        inert_transport=inert_transport,
        environment=get("ENVIRONMENT"),
        database_url=get("DATABASE_URL"),
        smtp_errors=smtp_errors,
    )


def load_email_config(environ: Optional[Mapping[str, str]] = None) -> EnvironmentConfig:
    """
    Read the email variables for transport selection without validating the rest.

    Logging and database variables are ignored. An unparseable
    EMAIL_INERT_TRANSPORT counts as unset. SMTP problems are recorded in
    ``smtp_errors`` instead of raised.

    Args:
        environ: Mapping to read from (defaults to os.environ)
    """
    env = os.environ if environ is None else environ
    return _parse_email_settings(_reader(env), errors=[])


def load_environment_config(environ: Optional[Mapping[str, str]] = None) -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Every variable is optional; with nothing set the service still starts
    and delivers through the inert transport.

    Email variables:
    - RESEND_API_KEY: Resend API key (selects the primary provider)
    - EMAIL_FROM / RESEND_FROM / RESEND_FROM_EMAIL / RESEND_SENDER /
      RESEND_FROM_ADDRESS: explicit sender address (first one set wins)
    - EMAIL_FROM_NAME: sender display name
    - RESEND_DOMAIN: sending domain used to synthesize a sender address
    - SMTP_URL: SMTP connection URL (smtp:// or smtps://)
    - SMTP_HOST, SMTP_PORT, SMTP_SECURE, SMTP_USER, SMTP_PASS: SMTP host form
    - EMAIL_INERT_TRANSPORT: force the inert (no-op) transport

    Runtime variables:
    - LOG_LEVEL, LOG_FORMAT, ENVIRONMENT
    - DATABASE_URL: audit log database URL

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        EnvironmentConfig object with validated values

    Raises:
        ConfigurationError: If any variable is present but malformed
    """
    get = _reader(os.environ if environ is None else environ)
    errors: List[str] = []

    config = _parse_email_settings(get, errors)
    errors[:0] = config.smtp_errors

    log_level = get("LOG_LEVEL")
    if log_level and log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}")

    log_format = get("LOG_FORMAT")
    if log_format and log_format not in ("json", "key-value"):
        errors.append(f"Invalid LOG_FORMAT: '{log_format}'. Must be 'json' or 'key-value'")

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                "Verify SMTP_PORT is a number between 1 and 65535",
                "Boolean flags accept true/false, yes/no, 1/0",
            ],
        )

    config.log_level = log_level.upper() if log_level else None
    config.log_format = log_format
    return config


def _parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(value)
