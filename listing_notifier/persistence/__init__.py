"""SQL-backed email audit log."""

from .database import close_database, get_engine, get_session, init_database
from .exceptions import DatabaseConnectionError, PersistenceError
from .repositories import AuditLogRepository, SqlAuditLog

__all__ = [
    "AuditLogRepository",
    "DatabaseConnectionError",
    "PersistenceError",
    "SqlAuditLog",
    "close_database",
    "get_engine",
    "get_session",
    "init_database",
]
