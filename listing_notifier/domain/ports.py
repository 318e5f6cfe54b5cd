"""Ports (interfaces) the notification pipeline depends on.

User storage and the audit log belong to the surrounding application; the
pipeline only needs the handful of operations below.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from .models import AuditLogEntry, User, UserSummary


class UserDirectory(Protocol):
    """Read access to the user store."""

    async def find_users_with_saved_searches(self) -> List[User]:
        """Return every buyer account holding at least one saved search."""
        ...

    async def find_user_by_id(self, user_id: str) -> Optional[UserSummary]:
        """Hydrate an account reference, or None if it does not exist."""
        ...


class AuditLog(Protocol):
    """Append-only record of delivered notifications."""

    async def record(self, entry: AuditLogEntry) -> AuditLogEntry:
        ...
