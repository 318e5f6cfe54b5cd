"""Fields bound to the current task and stamped onto its log records.

Backed by a ContextVar: every task started by ``asyncio.gather`` gets a
copy of its parent's fields, so a per-recipient binding inside one
delivery is invisible to the deliveries running beside it.
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Any, Dict, Iterator, Optional

_bound_fields: ContextVar[Optional[Dict[str, Any]]] = ContextVar("listing_notifier_log_fields", default=None)


def get_log_context() -> Dict[str, Any]:
    """Return a detached copy of the fields bound in this context."""
    return dict(_bound_fields.get() or {})


def push_log_context(**fields: Any) -> Token:
    """Bind ``fields`` on top of the current ones; undo with pop_log_context()."""
    return _bound_fields.set({**get_log_context(), **fields})


def pop_log_context(token: Token) -> None:
    _bound_fields.reset(token)


def clear_log_context() -> None:
    _bound_fields.set(None)


@contextmanager
def log_context(**fields: Any) -> Iterator[Dict[str, Any]]:
    """Bind ``fields`` for the duration of a ``with`` block.

    Example:
        >>> with log_context(listing_id="l-1", recipient="bea@example.com"):
        ...     logger.info("Sending alert")
    """
    token = push_log_context(**fields)
    try:
        yield get_log_context()
    finally:
        pop_log_context(token)
