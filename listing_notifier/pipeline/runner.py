"""Event entry points for the notification pipeline."""

from typing import Callable, Optional

from listing_notifier.config.environment import EnvironmentConfig, load_email_config
from listing_notifier.config.models import AppConfig
from listing_notifier.domain.models import Conversation, Listing, UserSummary
from listing_notifier.domain.ports import AuditLog, UserDirectory
from listing_notifier.logging import get_logger
from listing_notifier.notifications.models import DeliveryExhaustedError, FanoutResult
from listing_notifier.notifications.resolver import TransportResolver
from listing_notifier.notifications.service import NotificationService

from .conversation import ConversationNotifier
from .fanout import ListingFanout

logger = get_logger(__name__, component="pipeline")


class NotificationPipeline:
    """
    Receives application events and turns them into notification emails.

    The surrounding application calls ``listing_published`` after an agent
    creates a listing and ``conversation_message_sent`` after a message is
    appended to a conversation. Neither call raises for delivery problems.
    """

    def __init__(
        self,
        notification_service: NotificationService,
        user_directory: UserDirectory,
    ):
        """
        Initialize the pipeline.

        Args:
            notification_service: Shared delivery service
            user_directory: User store used for fan-out and participant lookup
        """
        self.notification_service = notification_service
        self.user_directory = user_directory
        self.fanout = ListingFanout(notification_service, user_directory)
        self.conversation_notifier = ConversationNotifier(notification_service)

    @classmethod
    def from_config(
        cls,
        app_config: AppConfig,
        user_directory: UserDirectory,
        audit_log: Optional[AuditLog] = None,
        config_provider: Callable[[], EnvironmentConfig] = load_email_config,
    ) -> "NotificationPipeline":
        """Wire the resolver, service and coordinators from configuration."""
        resolver = TransportResolver(
            config_provider=config_provider, delivery_config=app_config.delivery
        )
        service = NotificationService(
            resolver=resolver,
            audit_log=audit_log,
            user_directory=user_directory,
            delivery_config=app_config.delivery,
        )
        return cls(service, user_directory)

    async def listing_published(self, listing: Listing) -> FanoutResult:
        """Notify every buyer whose saved search matches the new listing."""
        return await self.fanout.notify_for_new_listing(listing)

    async def conversation_message_sent(
        self, conversation: Conversation, sender_id: Optional[str], message_body: str
    ) -> None:
        """Notify the conversation participant who did not send the message."""
        await self.conversation_notifier.notify(conversation, sender_id, message_body)

    async def user_registered(self, user: UserSummary) -> None:
        """Send the welcome email; failures are logged only."""
        try:
            await self.notification_service.send_registration_email(user)
        except DeliveryExhaustedError as e:
            logger.error(
                f"Failed to send welcome email to user {user.id}: {e}",
                extra={"event": "registration.notification_failed", "user_id": user.id},
            )

    async def aclose(self) -> None:
        """Release HTTP connections held by the transport resolver."""
        await self.notification_service.resolver.aclose()
