"""Domain models and collaborator ports."""

from .models import (
    Address,
    AuditLogEntry,
    Conversation,
    ConversationMessage,
    Listing,
    ParticipantRef,
    SavedSearch,
    User,
    UserSummary,
    participant_id,
)
from .participants import resolve_participant, select_participants
from .ports import AuditLog, UserDirectory

__all__ = [
    "Address",
    "AuditLog",
    "AuditLogEntry",
    "Conversation",
    "ConversationMessage",
    "Listing",
    "ParticipantRef",
    "SavedSearch",
    "User",
    "UserDirectory",
    "UserSummary",
    "participant_id",
    "resolve_participant",
    "select_participants",
]
