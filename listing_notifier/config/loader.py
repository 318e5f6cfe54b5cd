"""Load the optional YAML settings file together with the environment."""

from pathlib import Path
from typing import Optional, Tuple

import yaml
from pydantic import ValidationError

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .models import AppConfig

# Checked in order when no --config path is given
SEARCH_PATHS = (Path("config.yaml"), Path("config") / "config.yaml")


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Build the application settings and read the environment snapshot.

    An explicit ``config_path`` must exist. Without one, the first of
    ``SEARCH_PATHS`` that exists is used; if none do, built-in defaults
    apply. The environment is read once here for startup checks; delivery
    re-reads it per send.

    Raises:
        ConfigurationError: If the file is missing, unparseable or invalid,
            or if an environment variable is malformed
    """
    settings_file = locate_settings_file(config_path)
    app_config = AppConfig() if settings_file is None else read_settings_file(settings_file)
    return app_config, load_environment_config()


def locate_settings_file(config_path: Optional[Path] = None) -> Optional[Path]:
    if config_path is not None:
        if config_path.is_file():
            return config_path
        raise ConfigurationError(
            f"Configuration file not found: {config_path}",
            suggestions=["Check the --config path", "Omit --config to use built-in defaults"],
        )
    return next((candidate for candidate in SEARCH_PATHS if candidate.is_file()), None)


def read_settings_file(path: Path) -> AppConfig:
    """Parse and validate one YAML settings file. An empty file yields defaults."""
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Could not parse YAML in {path}: {e}",
            suggestions=["Indent with spaces, not tabs", "Compare against config.example.yaml"],
        ) from e
    except OSError as e:
        raise ConfigurationError(f"Could not read {path}: {e}") from e

    try:
        return AppConfig.model_validate(raw or {})
    except ValidationError as e:
        raise ConfigurationError.from_validation_error(
            f"Invalid settings in {path}",
            e,
            suggestions=["Compare against config.example.yaml"],
        ) from e
