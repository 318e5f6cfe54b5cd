"""Data access for the email audit log.

AuditLogRepository is synchronous and bound to a caller's session, as in
the rest of the persistence layer. SqlAuditLog adapts it to the async
AuditLog port by running each write in a worker thread.
"""

import asyncio
import logging
from typing import Callable, ContextManager, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from listing_notifier.domain.models import AuditLogEntry

from .database import get_session
from .exceptions import PersistenceError
from .schema import AuditLogModel

logger = logging.getLogger(__name__)


class AuditLogRepository:
    """Repository for email audit records."""

    def __init__(self, session: Session):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy session for database operations
        """
        self.session = session

    def record(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Insert one audit entry.

        Args:
            entry: Entry to persist (its id is ignored)

        Returns:
            The persisted entry with its assigned id

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            model = AuditLogModel.from_domain(entry)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error recording audit entry for {entry.to_address}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to record audit entry: {e}") from e

    def list_for_user(self, user_id: str) -> List[AuditLogEntry]:
        """Entries for one recipient, oldest first.

        Raises:
            PersistenceError: If database error occurs
        """
        return self._list(select(AuditLogModel).where(AuditLogModel.user_id == user_id))

    def list_for_listing(self, listing_id: str) -> List[AuditLogEntry]:
        """Entries that reference a listing, oldest first.

        Raises:
            PersistenceError: If database error occurs
        """
        return self._list(select(AuditLogModel).where(AuditLogModel.listing_id == listing_id))

    def list_all(self) -> List[AuditLogEntry]:
        return self._list(select(AuditLogModel))

    def count(self) -> int:
        try:
            return self.session.execute(select(func.count(AuditLogModel.id))).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Error counting audit entries: {e}", exc_info=True)
            raise PersistenceError(f"Failed to count audit entries: {e}") from e

    def _list(self, stmt) -> List[AuditLogEntry]:
        try:
            stmt = stmt.order_by(AuditLogModel.created_at, AuditLogModel.id)
            return [model.to_domain() for model in self.session.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving audit entries: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve audit entries: {e}") from e


class SqlAuditLog:
    """Async AuditLog backed by AuditLogRepository.

    Each record() call opens its own session (one transaction per delivered
    email) in a worker thread, so concurrent fan-out deliveries never block
    the event loop on database I/O.
    """

    def __init__(self, session_scope: Optional[Callable[[], ContextManager[Session]]] = None):
        """Initialize the adapter.

        Args:
            session_scope: Context manager factory yielding a session
                (defaults to get_session)
        """
        self.session_scope = session_scope or get_session

    async def record(self, entry: AuditLogEntry) -> AuditLogEntry:
        return await asyncio.to_thread(self._record, entry)

    def _record(self, entry: AuditLogEntry) -> AuditLogEntry:
        with self.session_scope() as session:
            saved = AuditLogRepository(session).record(entry)
        logger.debug(
            f"Audit entry {saved.id} recorded for {saved.to_address}",
            extra={"event": "audit.recorded", "transport_response": saved.transport_response},
        )
        return saved
