"""Structured logging: a component-tagging adapter plus setup helpers."""

import logging
from typing import Optional, Union


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """Adds a fixed ``component`` field; per-call ``extra`` keys override it."""

    def process(self, msg, kwargs):
        merged = dict(self.extra)
        merged.update(kwargs.get("extra") or {})
        kwargs["extra"] = merged
        return msg, kwargs


def get_logger(name: str, component: Optional[str] = None) -> Union[logging.Logger, ComponentLoggerAdapter]:
    """Return ``logging.getLogger(name)``, wrapped when a component is given.

    Example:
        >>> log = get_logger(__name__, component="fanout")
        >>> log.info("Fan-out started", extra={"event": "fanout.started"})
    """
    base = logging.getLogger(name)
    return ComponentLoggerAdapter(base, {"component": component}) if component else base
