"""Normalization of conversation participant references.

A participant is stored either as a bare account id or as an embedded user
that may lack an email address. resolve_participant() turns both shapes
into a UserSummary, hydrating through the user directory when needed.
"""

import logging
from typing import Optional, Tuple

from .models import Conversation, ParticipantRef, UserSummary, participant_id
from .ports import UserDirectory

logger = logging.getLogger(__name__)


async def resolve_participant(
    ref: Optional[ParticipantRef], directory: Optional[UserDirectory]
) -> Optional[UserSummary]:
    """Normalize a participant reference to a UserSummary.

    Embedded users that already carry an email are returned unchanged. Ids,
    and embedded users without an email, are looked up with
    ``find_user_by_id``; a failing lookup is logged and the reference is
    treated as unresolved (the embedded user, if any, is returned as-is).

    Args:
        ref: Account id or embedded user
        directory: User directory used for hydration (None disables lookups)

    Returns:
        UserSummary, or None if only an id was known and it could not be resolved
    """
    if ref is None:
        return None

    embedded = ref if isinstance(ref, UserSummary) else None
    if embedded is not None and embedded.email:
        return embedded

    user_id = participant_id(ref)
    if directory is None or not user_id:
        return embedded

    try:
        found = await directory.find_user_by_id(user_id)
    except Exception as e:
        logger.warning(
            f"Participant lookup failed for {user_id}: {e}",
            extra={"event": "participant.lookup_failed", "user_id": user_id},
        )
        return embedded

    if found is None:
        logger.info(
            f"Participant {user_id} not found in user directory",
            extra={"event": "participant.not_found", "user_id": user_id},
        )
        return embedded

    if embedded is not None:
        # Keep the embedded name when the directory record has none
        return UserSummary(
            id=found.id,
            full_name=found.full_name or embedded.full_name,
            email=found.email,
            role=found.role,
        )
    return UserSummary(id=found.id, full_name=found.full_name, email=found.email, role=found.role)


def select_participants(
    conversation: Conversation, sender_id: Optional[str]
) -> Tuple[ParticipantRef, ParticipantRef]:
    """Pick (recipient, sender) references for a new message.

    The recipient is whichever participant did not send the message. A
    sender matching neither participant notifies the agent.
    """
    agent_id = participant_id(conversation.agent)
    buyer_id = participant_id(conversation.buyer)
    sender = str(sender_id) if sender_id is not None else None

    if sender is not None and sender == agent_id:
        return conversation.buyer, conversation.agent
    if sender is not None and sender == buyer_id:
        return conversation.agent, conversation.buyer
    return conversation.agent, sender or ""
