"""Notification service for listing alerts and message emails.

This module provides the NotificationService class that orchestrates one
delivery: template rendering, transport resolution, the single
primary -> SMTP fallback escalation, and the audit record written after a
confirmed hand-off.
"""

import logging
from typing import Any, Dict, List, Optional

from listing_notifier.config.models import DeliveryConfig
from listing_notifier.domain.models import (
    AuditLogEntry,
    Conversation,
    Listing,
    SavedSearch,
    UserSummary,
)
from listing_notifier.domain.participants import resolve_participant, select_participants
from listing_notifier.domain.ports import AuditLog, UserDirectory
from listing_notifier.logging import get_logger
from listing_notifier.logging.context import log_context

from .models import (
    ClassifiedFailure,
    Delivered,
    DeliveryError,
    DeliveryExhaustedError,
    DeliveryOutcome,
    DeliveryReceipt,
    OutboundEmail,
    TransportConstructionError,
    TransportKind,
)
from .payloads import (
    build_listing_match_context,
    build_message_context,
    build_welcome_context,
)
from .resolver import ResolvedTransport, TransportResolver
from .smtp_client import normalize_recipient
from .templates import (
    CONVERSATION_MESSAGE,
    DIRECT_MESSAGE,
    LISTING_MATCH,
    WELCOME,
    TemplateRenderer,
)

logger = get_logger(__name__, component="notification")


class NotificationService:
    """Service for sending notification emails.

    Coordinates the delivery flow shared by every notification kind:
    1. Render subject, HTML and plain-text bodies
    2. Resolve the active transport
    3. Primary: send via Resend; on rejection, retry once via SMTP
    4. Direct or inert: send once, no further fallback
    5. Record one audit entry on success

    A delivery that fails on every path raises DeliveryExhaustedError and
    leaves no audit entry. Audit write failures are logged, never raised:
    by then the email has already left the process.
    """

    def __init__(
        self,
        resolver: Optional[TransportResolver] = None,
        audit_log: Optional[AuditLog] = None,
        user_directory: Optional[UserDirectory] = None,
        template_renderer: Optional[TemplateRenderer] = None,
        delivery_config: Optional[DeliveryConfig] = None,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize notification service.

        Args:
            resolver: Transport resolver (creates one reading os.environ if None)
            audit_log: Where successful deliveries are recorded (None disables auditing)
            user_directory: Used to hydrate conversation participants
            template_renderer: Template renderer instance (creates default if None)
            delivery_config: Site name, links and sender fallbacks
            logger_instance: Logger instance (uses module logger if None)
        """
        self.delivery_config = delivery_config or DeliveryConfig()
        self.resolver = resolver or TransportResolver(delivery_config=self.delivery_config)
        self.audit_log = audit_log
        self.user_directory = user_directory
        self.template_renderer = template_renderer or TemplateRenderer()
        self.logger = logger_instance or logger

    async def send_listing_match_notification(
        self, buyer: UserSummary, listing: Listing, search: SavedSearch
    ) -> Optional[DeliveryReceipt]:
        """Email a buyer about a listing that matched one of their saved searches.

        Args:
            buyer: Owner of the saved search
            listing: Published listing snapshot
            search: The matching saved search

        Returns:
            DeliveryReceipt, or None if the buyer has no usable email address

        Raises:
            DeliveryExhaustedError: If every transport failed
            NotificationTemplateError: If the templates are broken
        """
        with log_context(listing_id=listing.id, search_name=search.name, user_id=buyer.id):
            to = normalize_recipient(buyer.email)
            if to is None:
                self.logger.warning(
                    f"Skipping listing alert for user {buyer.id} - no usable email address",
                    extra={"event": "notification.skip", "reason": "no_address"},
                )
                return None

            context = build_listing_match_context(buyer, listing, search, self.delivery_config)
            rendered = self.template_renderer.render(LISTING_MATCH, context)

            return await self.deliver(
                to,
                rendered,
                audit={
                    "user_id": buyer.id,
                    "listing_id": listing.id,
                    "search_name": search.name,
                },
            )

    async def send_conversation_notification(
        self, conversation: Conversation, sender_id: Optional[str], message_body: str
    ) -> Optional[DeliveryReceipt]:
        """Email the other participant of a conversation about a new message.

        The recipient is the participant who did not send the message. Bare
        id references are hydrated through the user directory; a recipient
        still lacking a usable address is skipped silently.

        Returns:
            DeliveryReceipt, or None if the recipient could not be resolved

        Raises:
            DeliveryExhaustedError: If every transport failed
        """
        listing = conversation.listing
        with log_context(conversation_id=conversation.id, listing_id=listing.id if listing else None):
            recipient_ref, sender_ref = select_participants(conversation, sender_id)
            recipient = await resolve_participant(recipient_ref, self.user_directory)
            to = normalize_recipient(recipient.email if recipient else None)

            if recipient is None or to is None:
                self.logger.info(
                    "Skipping conversation notification - recipient has no usable address",
                    extra={"event": "notification.skip", "reason": "recipient_unresolved"},
                )
                return None

            sender = await resolve_participant(sender_ref, self.user_directory)
            context = build_message_context(
                sender, recipient, message_body, listing, self.delivery_config
            )
            rendered = self.template_renderer.render(CONVERSATION_MESSAGE, context)

            return await self.deliver(
                to,
                rendered,
                audit={
                    "user_id": recipient.id,
                    "listing_id": listing.id if listing else None,
                },
            )

    async def send_direct_message_notification(
        self,
        sender: UserSummary,
        recipient: UserSummary,
        message_body: str,
        listing: Optional[Listing] = None,
        message_id: Optional[str] = None,
    ) -> Optional[DeliveryReceipt]:
        """Email a user that someone messaged them outside a conversation thread.

        Returns:
            DeliveryReceipt, or None if the recipient has no usable address
        """
        with log_context(message_id=message_id, listing_id=listing.id if listing else None):
            to = normalize_recipient(recipient.email)
            if to is None:
                self.logger.info(
                    f"Skipping direct message notification for user {recipient.id} - no usable email address",
                    extra={"event": "notification.skip", "reason": "no_address"},
                )
                return None

            context = build_message_context(
                sender,
                recipient,
                message_body,
                listing,
                self.delivery_config,
                default_listing_title=None,
            )
            rendered = self.template_renderer.render(DIRECT_MESSAGE, context)

            return await self.deliver(
                to,
                rendered,
                audit={
                    "user_id": recipient.id,
                    "listing_id": listing.id if listing else None,
                    "message_id": message_id,
                },
            )

    async def send_registration_email(self, user: UserSummary) -> Optional[DeliveryReceipt]:
        """Send the welcome email after sign-up. Not audited.

        Returns:
            DeliveryReceipt, or None if the user has no usable email address
        """
        to = normalize_recipient(user.email)
        if to is None:
            self.logger.info(
                f"Skipping welcome email for user {user.id} - no usable email address",
                extra={"event": "notification.skip", "reason": "no_address"},
            )
            return None

        rendered = self.template_renderer.render(
            WELCOME, build_welcome_context(user, self.delivery_config)
        )
        return await self.deliver(to, rendered, audit=None)

    async def deliver(
        self,
        to: str,
        rendered: Dict[str, str],
        audit: Optional[Dict[str, Any]] = None,
    ) -> DeliveryReceipt:
        """Deliver a rendered email and record it.

        Args:
            to: Normalized recipient address
            rendered: Output of TemplateRenderer.render()
            audit: Audit fields (user_id, listing_id, message_id, search_name);
                None skips the audit record

        Returns:
            DeliveryReceipt describing the path that succeeded

        Raises:
            DeliveryExhaustedError: If no transport could deliver the message
        """
        with log_context(recipient=to):
            try:
                resolved = self.resolver.resolve()
            except TransportConstructionError as e:
                self.logger.error(
                    f"No transport available for {to}: {e}",
                    extra={"event": "notification.send.failure", "category": "transport-construction"},
                )
                raise DeliveryExhaustedError(
                    f"No transport could be constructed: {e}",
                    to=to,
                    attempts=[],
                    last_error=e,
                    category="transport-construction",
                ) from e

            message = OutboundEmail(
                to=to,
                from_address=resolved.sender,
                subject=rendered["subject"],
                text=rendered["text_body"],
                html=rendered.get("html_body"),
            )

            attempts: List[str] = []
            if resolved.kind == TransportKind.PRIMARY:
                outcome = await self._attempt_primary(resolved, message)
                if isinstance(outcome, ClassifiedFailure):
                    attempts.append(outcome.provenance)
                    self.logger.warning(
                        f"Resend rejected message to {to} ({outcome.category}), falling back to SMTP: {outcome.error}",
                        extra={"event": "notification.fallback", "category": outcome.category},
                    )
                    outcome = await self._attempt_fallback(outcome, message, resolved)
            else:
                outcome = await self._attempt_direct(resolved, message)

            if isinstance(outcome, ClassifiedFailure):
                attempts.append(outcome.provenance)
                self.logger.error(
                    f"Delivery to {to} failed on every transport ({', '.join(attempts)}): {outcome.error}",
                    extra={
                        "event": "notification.send.failure",
                        "attempts": attempts,
                        "category": outcome.category,
                        "error_type": type(outcome.error).__name__,
                    },
                )
                raise DeliveryExhaustedError(
                    f"Delivery to {to} failed: {outcome.error}",
                    to=to,
                    attempts=attempts,
                    last_error=outcome.error,
                    category=outcome.category,
                )

            self.logger.info(
                f"Notification '{message.subject}' sent to {to} via {outcome.provenance}",
                extra={
                    "event": "notification.send.success",
                    "provenance": outcome.provenance,
                    "message_id": outcome.message_id,
                },
            )

            audited = False
            if audit is not None:
                audited = await self._record_audit(message, outcome, audit)

            return DeliveryReceipt(
                to=to,
                subject=message.subject,
                provenance=outcome.provenance,
                message_id=outcome.message_id,
                audited=audited,
            )

    async def _attempt_primary(
        self, resolved: ResolvedTransport, message: OutboundEmail
    ) -> DeliveryOutcome:
        provenance = TransportKind.PRIMARY.value
        try:
            message_id = await resolved.transport.send(message)
        except DeliveryError as e:
            category = getattr(e, "category", None) or "unknown"
            return ClassifiedFailure(provenance=provenance, category=category, error=e)
        return Delivered(provenance=provenance, message_id=message_id)

    async def _attempt_fallback(
        self,
        failure: ClassifiedFailure,
        message: OutboundEmail,
        resolved: ResolvedTransport,
    ) -> DeliveryOutcome:
        provenance = f"{TransportKind.PRIMARY.value}-fallback:{failure.category}"
        try:
            transport = self.resolver.resolve_fallback(failure.category, resolved.env_config)
            message_id = await transport.send(message)
        except TransportConstructionError as e:
            return ClassifiedFailure(provenance=provenance, category="transport-construction", error=e)
        except DeliveryError as e:
            return ClassifiedFailure(provenance=provenance, category="smtp-error", error=e)
        return Delivered(provenance=provenance, message_id=message_id)

    async def _attempt_direct(
        self, resolved: ResolvedTransport, message: OutboundEmail
    ) -> DeliveryOutcome:
        provenance = resolved.label
        try:
            message_id = await resolved.transport.send(message)
        except DeliveryError as e:
            category = getattr(e, "category", None) or f"{provenance}-error"
            return ClassifiedFailure(provenance=provenance, category=category, error=e)
        return Delivered(provenance=provenance, message_id=message_id)

    async def _record_audit(
        self, message: OutboundEmail, outcome: Delivered, audit: Dict[str, Any]
    ) -> bool:
        if self.audit_log is None:
            self.logger.debug("No audit log configured; skipping audit record")
            return False

        entry = AuditLogEntry(
            user_id=audit["user_id"],
            listing_id=audit.get("listing_id"),
            message_id=audit.get("message_id"),
            search_name=audit.get("search_name"),
            to_address=message.to,
            subject=message.subject,
            body=message.text,
            transport_response=outcome.provenance,
        )
        try:
            await self.audit_log.record(entry)
        except Exception as e:
            self.logger.error(
                f"Failed to record audit entry for {message.to}: {e}",
                exc_info=True,
                extra={"event": "notification.audit.failure"},
            )
            return False
        return True
