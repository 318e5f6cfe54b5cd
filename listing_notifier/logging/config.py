"""Root logger setup plus the formatters and filter it installs.

Two output styles are supported: ``json`` for shipping to a log
collector, and ``key-value`` for reading in a terminal. Both emit every
field passed through ``extra=`` (or bound with ``log_context``) after the
standard message, with credential-bearing fields masked.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Literal

from .context import get_log_context

LogFormat = Literal["json", "key-value"]

SERVICE_NAME = "listing-notifier"
KEY_VALUE_LAYOUT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
KEY_VALUE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Loggers that chatter at INFO about every outbound request
NOISY_LOGGERS = ("httpx", "httpcore")

# Built from a blank record so new interpreter attributes are picked up
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime"}

MASKED_FIELDS = frozenset({"api_key", "password", "smtp_pass", "resend_api_key"})
MASK = "***"


def extra_fields(record: logging.LogRecord, exclude: Iterable[str] = ()) -> Dict[str, Any]:
    """Return the caller-supplied fields of ``record`` with secrets masked."""
    excluded = set(exclude)
    fields: Dict[str, Any] = {}
    for key, value in vars(record).items():
        if key in _STANDARD_ATTRS or key in excluded or key.startswith("_"):
            continue
        fields[key] = MASK if (key in MASKED_FIELDS and value) else value
    return fields


def _utc_millis(created: float) -> str:
    stamp = datetime.fromtimestamp(created, tz=timezone.utc)
    return f"{stamp:%Y-%m-%dT%H:%M:%S}.{stamp.microsecond // 1000:03d}Z"


def _json_safe(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool, list, dict)):
        return value
    return str(value)


class ContextualFilter(logging.Filter):
    """Attach service identity and any bound ``log_context`` fields to records."""

    def __init__(self, service: str = SERVICE_NAME, environment: str = "local"):
        super().__init__()
        self.service = service
        self.environment = environment

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service
        record.environment = self.environment
        for key, value in get_log_context().items():
            # explicit extra= takes precedence
            record.__dict__.setdefault(key, value)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": _utc_millis(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update((key, _json_safe(value)) for key, value in extra_fields(record).items())
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class KeyValueFormatter(logging.Formatter):
    """Standard log line followed by sorted ``key=value`` pairs."""

    QUOTE_TRIGGERS = (" ", "=", ",")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = extra_fields(record, exclude=("service", "environment"))
        if not fields:
            return line
        pairs = " ".join(f"{key}={self.render(fields[key])}" for key in sorted(fields))
        return f"{line} {pairs}"

    @classmethod
    def render(cls, value: Any) -> str:
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, datetime):
            return value.isoformat()
        text = str(value)
        if isinstance(value, str) and any(ch in text for ch in cls.QUOTE_TRIGGERS):
            return f'"{text}"'
        return text


def _build_handler(format_type: LogFormat, environment: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if format_type == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(KeyValueFormatter(KEY_VALUE_LAYOUT, datefmt=KEY_VALUE_DATEFMT))
    handler.addFilter(ContextualFilter(service=SERVICE_NAME, environment=environment))
    return handler


def configure_logging(
    level: str = "INFO",
    format_type: LogFormat = "key-value",
    environment: str = "local",
) -> None:
    """
    Replace the root logger's handlers with a single stdout handler.

    Args:
        level: Level name such as ``DEBUG`` or ``WARNING``
        format_type: ``json`` or ``key-value``
        environment: Deployment label stamped on every record

    Raises:
        ValueError: If the level name or format is not recognised
    """
    level_name = level.upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")
    if format_type not in ("json", "key-value"):
        raise ValueError(f"Invalid log format: {format_type!r} (expected 'json' or 'key-value')")

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(_build_handler(format_type, environment))
    root.setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    logging.getLogger(__name__).debug(
        "Root logger ready",
        extra={
            "event": "logging.ready",
            "component": "logging",
            "log_level": level_name,
            "log_format": format_type,
        },
    )
