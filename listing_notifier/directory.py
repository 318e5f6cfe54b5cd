"""User directory backed by a JSON fixture file.

Used by the CLI for manual runs; the real application plugs its own user
store in through the UserDirectory port. The file holds either a list of
users or an object with a ``users`` list, each shaped like ``User``.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from listing_notifier.config.exceptions import ConfigurationError
from listing_notifier.domain.models import User, UserSummary

logger = logging.getLogger(__name__)


class JsonUserDirectory:
    """In-memory UserDirectory loaded from a JSON file or a list of users."""

    def __init__(self, users: List[User]):
        self._users: Dict[str, User] = {user.id: user for user in users}

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "JsonUserDirectory":
        """Load users from a JSON file.

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(
                f"Users file not found: {path}",
                suggestions=["Pass --users with the path to a JSON list of users"],
            )

        try:
            with open(path, "r", encoding="utf-8") as f:
                raw: Any = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in users file {path}: {e}") from e

        records = raw.get("users", []) if isinstance(raw, dict) else raw
        if not isinstance(records, list):
            raise ConfigurationError(f"Users file {path} must contain a list of users")

        try:
            users = [User.model_validate(record) for record in records]
        except ValidationError as e:
            raise ConfigurationError.from_validation_error(
                f"Invalid user record in {path}", e
            ) from e

        logger.debug(f"Loaded {len(users)} users from {path}")
        return cls(users)

    async def find_users_with_saved_searches(self) -> List[User]:
        """Buyer accounts (role ``user``) with at least one saved search."""
        return [
            user
            for user in self._users.values()
            if user.role == "user" and user.saved_searches
        ]

    async def find_user_by_id(self, user_id: str) -> Optional[UserSummary]:
        user = self._users.get(user_id)
        return user.summary() if user else None
