"""ORM mapping for the ``email_logs`` audit table.

Rows are append-only. Timestamps are kept as ISO 8601 UTC text with a
``Z`` suffix so they sort lexically and read cleanly in the sqlite3 shell.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Index, Integer, String, Text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from listing_notifier.domain.models import AuditLogEntry

logger = logging.getLogger(__name__)

AuditBase = declarative_base()

STORED_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

# Columns copied one-to-one between AuditLogEntry and the row
_PLAIN_FIELDS = (
    "user_id",
    "listing_id",
    "message_id",
    "search_name",
    "to_address",
    "subject",
    "body",
    "transport_response",
)


class AuditLogModel(AuditBase):
    """One delivered email."""

    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    listing_id = Column(String(64))
    message_id = Column(String(64))
    search_name = Column(String(255))
    to_address = Column(String(320), nullable=False)
    subject = Column(Text, nullable=False)
    body = Column(Text, nullable=False)
    # provenance, e.g. "resend" or "resend-fallback:rate-limited"
    transport_response = Column(String(255), nullable=False)
    created_at = Column(String(32), nullable=False)

    __table_args__ = (
        Index("ix_email_logs_user_id", "user_id"),
        Index("ix_email_logs_listing_id", "listing_id"),
        Index("ix_email_logs_created_at", "created_at"),
    )

    def to_domain(self) -> AuditLogEntry:
        values = {name: getattr(self, name) for name in _PLAIN_FIELDS}
        return AuditLogEntry(id=self.id, created_at=_parse_datetime(self.created_at), **values)

    @classmethod
    def from_domain(cls, entry: AuditLogEntry) -> "AuditLogModel":
        """Build an unsaved row; the database assigns ``id``."""
        values = {name: getattr(entry, name) for name in _PLAIN_FIELDS}
        return cls(created_at=_format_datetime(entry.created_at), **values)


def _format_datetime(value: datetime) -> str:
    # naive values are taken to be UTC already
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(STORED_FORMAT)


def _parse_datetime(stored: Optional[str]) -> datetime:
    if not stored:
        return datetime.now(timezone.utc)
    parsed = datetime.fromisoformat(stored.removesuffix("Z"))
    return parsed.replace(tzinfo=timezone.utc)


def create_schema(engine: Engine) -> None:
    """Create the audit table and its indexes when they are missing."""
    AuditBase.metadata.create_all(engine, checkfirst=True)
    logger.debug("Audit schema ensured", extra={"event": "database.schema_ensured"})
