"""Engine and session lifecycle for the email audit log.

The ORM is used synchronously; ``SqlAuditLog`` hops onto worker threads
for each write, so SQLite connections must tolerate being used from a
thread other than the one that opened them.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from listing_notifier.logging import get_logger

from .exceptions import DatabaseConnectionError

logger = get_logger(__name__, component="database")

SQLITE_BUSY_TIMEOUT = 30


@dataclass
class _DatabaseState:
    engine: Optional[Engine] = None
    sessions: Optional[sessionmaker] = None

    def reset(self) -> None:
        self.engine = None
        self.sessions = None


_state = _DatabaseState()


def _not_ready(accessor: str) -> DatabaseConnectionError:
    return DatabaseConnectionError(
        f"Audit database not initialized: init_database() must run before {accessor}()"
    )


def _prepare_sqlite_file(url: URL) -> None:
    """Make sure the directory holding a file-backed SQLite database exists."""
    if not url.database or url.database == ":memory:":
        return
    directory = Path(url.database).parent
    if not directory.exists():
        logger.info(
            "Creating audit database directory",
            extra={"event": "database.directory_created", "path": str(directory)},
        )
        directory.mkdir(parents=True, exist_ok=True)


def _enable_wal(engine: Engine) -> None:
    # Audit writes arrive from several worker threads at once
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        try:
            cursor.execute("PRAGMA journal_mode=WAL")
        finally:
            cursor.close()


def _ping(engine: Engine) -> None:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise DatabaseConnectionError(f"Audit database is unreachable: {e}") from e


def init_database(database_url: str) -> None:
    """Open the audit database and create the ``email_logs`` table if needed.

    Args:
        database_url: SQLAlchemy URL, e.g. ``sqlite:///./data/listing_notifier.db``

    Raises:
        DatabaseConnectionError: If the URL is unusable or the database
            cannot be reached
    """
    if not isinstance(database_url, str) or not database_url:
        raise DatabaseConnectionError("Database URL must be a non-empty string")

    safe_url = _redact_url(database_url)
    try:
        url = make_url(database_url)
        is_sqlite = url.get_backend_name() == "sqlite"
        if is_sqlite:
            _prepare_sqlite_file(url)

        connect_args = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT} if is_sqlite else {}
        engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
        if is_sqlite:
            _enable_wal(engine)

        _ping(engine)

        from .schema import create_schema

        create_schema(engine)
    except DatabaseConnectionError:
        raise
    except (SQLAlchemyError, ArgumentError, OSError) as e:
        logger.error(
            f"Could not open audit database: {e}",
            extra={"event": "database.open_failed", "database_url": safe_url},
            exc_info=True,
        )
        raise DatabaseConnectionError(f"Could not open audit database {safe_url}: {e}") from e

    _state.engine = engine
    _state.sessions = sessionmaker(bind=engine, expire_on_commit=False)
    logger.info("Audit database ready", extra={"event": "database.ready", "database_url": safe_url})


def _redact_url(url: str) -> str:
    """Render ``url`` with any password replaced by ``***``."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return url


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Yield a session scoped to one unit of work.

    The session commits when the block exits normally and rolls back if
    it raises; the exception is re-raised either way.

    Raises:
        DatabaseConnectionError: If init_database() has not run
    """
    if _state.sessions is None:
        raise _not_ready("get_session")

    with _state.sessions() as session:
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.warning(
                "Audit session rolled back",
                extra={"event": "database.rollback", "error_type": type(e).__name__},
            )
            raise


def get_engine() -> Engine:
    if _state.engine is None:
        raise _not_ready("get_engine")
    return _state.engine


def close_database() -> None:
    """Dispose of the engine; safe to call when nothing is open."""
    if _state.engine is None:
        return
    _state.engine.dispose()
    _state.reset()
    logger.debug("Audit database closed", extra={"event": "database.closed"})
