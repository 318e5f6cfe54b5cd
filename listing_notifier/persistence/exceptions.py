"""Errors raised by the audit database layer."""


class PersistenceError(Exception):
    """Any failure reading or writing the audit log."""


class DatabaseConnectionError(PersistenceError):
    """The database URL is unusable, unreachable, or init_database() never ran."""
