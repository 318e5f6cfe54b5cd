"""Delivery transports behind a common async ``send`` interface."""

import asyncio
import json
import logging
from typing import Optional, Protocol
from uuid import uuid4

from .models import OutboundEmail, TransportKind
from .resend_client import ResendClient
from .smtp_client import SMTPClient

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Anything that can hand an OutboundEmail to the outside world."""

    kind: TransportKind

    async def send(self, message: OutboundEmail) -> Optional[str]:
        """Deliver a message and return a provider message id if one exists."""
        ...


class ResendTransport:
    """Primary provider: the Resend HTTP API.

    Once retired (credential rotated or removed) the underlying HTTP client
    is closed as soon as the last in-flight send returns.
    """

    kind = TransportKind.PRIMARY

    def __init__(self, client: ResendClient):
        self.client = client
        self.in_flight = 0
        self.retired = False
        self.closed = False

    @property
    def idle(self) -> bool:
        return self.in_flight == 0

    async def send(self, message: OutboundEmail) -> Optional[str]:
        self.in_flight += 1
        try:
            return await self.client.send(message)
        finally:
            self.in_flight -= 1
            if self.retired and self.idle:
                await self.aclose()

    def retire(self) -> None:
        self.retired = True

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self.client.aclose()


class SMTPTransport:
    """Direct-protocol delivery through an SMTP server.

    smtplib is blocking, so each send runs in the event loop's default
    executor and never stalls other deliveries.
    """

    kind = TransportKind.DIRECT_FALLBACK

    def __init__(self, client: SMTPClient):
        self.client = client

    async def send(self, message: OutboundEmail) -> Optional[str]:
        await asyncio.to_thread(self.client.send, message)
        return None

    def describe(self) -> str:
        return self.client.settings.describe()


class InertTransport:
    """Accepts every message and sends nothing.

    Used when no transport is configured so the service still runs in local
    development; the rendered message is logged at DEBUG level instead.
    """

    kind = TransportKind.INERT

    async def send(self, message: OutboundEmail) -> Optional[str]:
        message_id = f"inert-{uuid4().hex}"
        logger.debug(
            "Inert transport accepted message",
            extra={
                "event": "transport.inert.accepted",
                "message_id": message_id,
                "payload": json.dumps(
                    {"to": message.to, "from": message.from_address, "subject": message.subject}
                ),
            },
        )
        return message_id
