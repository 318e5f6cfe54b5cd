"""Settings: the YAML file, environment credentials and their validation."""

from .environment import EnvironmentConfig, load_email_config, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config
from .models import AppConfig, DeliveryConfig, LogFormat, LoggingConfig, LogLevel

__all__ = [
    "AppConfig",
    "ConfigurationError",
    "DeliveryConfig",
    "EnvironmentConfig",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "load_config",
    "load_email_config",
    "load_environment_config",
]
