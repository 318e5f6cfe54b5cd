"""Conversation message notifications."""

from typing import Optional

from listing_notifier.domain.models import Conversation
from listing_notifier.domain.participants import resolve_participant, select_participants
from listing_notifier.logging import get_logger
from listing_notifier.notifications.models import DeliveryExhaustedError, DeliveryReceipt
from listing_notifier.notifications.service import NotificationService

logger = get_logger(__name__, component="conversation")

__all__ = ["ConversationNotifier", "resolve_participant", "select_participants"]


class ConversationNotifier:
    """Emails the other participant when a conversation message is sent.

    Delivery is fire-and-forget for the person who wrote the message:
    failures are logged here and never reach the caller.
    """

    def __init__(self, notification_service: NotificationService):
        self.notification_service = notification_service

    async def notify(
        self, conversation: Conversation, sender_id: Optional[str], message_body: str
    ) -> Optional[DeliveryReceipt]:
        try:
            return await self.notification_service.send_conversation_notification(
                conversation, sender_id, message_body
            )
        except DeliveryExhaustedError as e:
            logger.error(
                f"Failed to send conversation notification for {conversation.id}: {e}",
                extra={
                    "event": "conversation.notification_failed",
                    "conversation_id": conversation.id,
                    "category": e.category,
                },
            )
        except Exception as e:
            logger.error(
                f"Unexpected error sending conversation notification for {conversation.id}: {e}",
                exc_info=True,
                extra={
                    "event": "conversation.notification_failed",
                    "conversation_id": conversation.id,
                    "error_type": type(e).__name__,
                },
            )
        return None
