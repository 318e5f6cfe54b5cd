"""Data models and exceptions for the notification service.

This module defines the outbound message shape, the explicit results of a
delivery attempt, and the exception hierarchy used across transports.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when template rendering fails due to configuration or missing variables."""

    pass


class TransportConstructionError(NotificationError):
    """Raised when a transport client cannot be built from the current configuration."""

    pass


class DeliveryError(NotificationError):
    """Raised when a single transport fails to hand off a message."""

    def __init__(self, message: str, provider: str = "unknown"):
        super().__init__(message)
        self.provider = provider


class SMTPDeliveryError(DeliveryError):
    """Raised when the SMTP server rejects a message or cannot be reached."""

    def __init__(self, message: str):
        super().__init__(message, provider="smtp")


class ProviderRejection(DeliveryError):
    """Raised when the Resend API answers with an error.

    Attributes:
        status_code: HTTP status, or None for transport-level failures
        category: Classification from classify_provider_error()
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        category: Optional[str] = None,
    ):
        super().__init__(message, provider="resend")
        self.status_code = status_code
        self.category = category


class DeliveryExhaustedError(NotificationError):
    """Raised when every available transport failed for one message.

    Attributes:
        to: Intended recipient
        attempts: Provenance labels of the transports that were tried
        last_error: The final underlying error
        category: Classification of the final failure
    """

    def __init__(
        self,
        message: str,
        to: str,
        attempts: List[str],
        last_error: Exception,
        category: Optional[str] = None,
    ):
        super().__init__(message)
        self.to = to
        self.attempts = attempts
        self.last_error = last_error
        self.category = category


class TransportKind(str, Enum):
    """Which delivery path the resolver selected."""

    PRIMARY = "resend"
    DIRECT_FALLBACK = "smtp"
    INERT = "inert"


@dataclass(frozen=True)
class OutboundEmail:
    """A fully rendered email ready for any transport.

    Attributes:
        to: Recipient address
        from_address: Sender, optionally with display name
        subject: Single-line subject
        text: Plain text body (stored in the audit log)
        html: Optional HTML alternative
    """

    to: str
    from_address: str
    subject: str
    text: str
    html: Optional[str] = None


@dataclass(frozen=True)
class Delivered:
    """Successful hand-off to a transport.

    Attributes:
        provenance: Audit label, e.g. ``resend`` or ``resend-fallback:unauthorized``
        message_id: Provider message id when one was returned
    """

    provenance: str
    message_id: Optional[str] = None


@dataclass(frozen=True)
class ClassifiedFailure:
    """Failed hand-off, with the error classified for fallback and audit.

    Attributes:
        provenance: Transport that failed
        category: Human-readable classification of the failure
        error: The underlying exception
    """

    provenance: str
    category: str
    error: Exception


DeliveryOutcome = Union[Delivered, ClassifiedFailure]


@dataclass
class DeliveryReceipt:
    """What the delivery service reports back after a successful send.

    Attributes:
        to: Recipient address
        subject: Subject line that was sent
        provenance: Transport label recorded in the audit log
        message_id: Provider message id when available
        audited: Whether the audit entry was written
    """

    to: str
    subject: str
    provenance: str
    message_id: Optional[str] = None
    audited: bool = False

    @property
    def used_fallback(self) -> bool:
        return "fallback" in self.provenance


@dataclass
class NotificationResult:
    """Outcome of one fan-out delivery task.

    Attributes:
        user_id: Buyer the alert was for
        search_name: Saved search that matched
        status: "sent", "skipped" (no usable address) or "failed"
        provenance: Transport label when sent
        error: Error message when failed
    """

    user_id: str
    search_name: str
    status: str  # "sent", "skipped", "failed"
    provenance: Optional[str] = None
    error: Optional[str] = None

    def is_success(self) -> bool:
        return self.status == "sent"


@dataclass
class FanoutResult:
    """Aggregate of one publish event's fan-out.

    Informational only: the publisher never depends on it.
    """

    listing_id: Optional[str]
    candidates: int = 0
    results: List[NotificationResult] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for r in self.results if r.is_success())

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == "failed")

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == "skipped")

    def as_log_fields(self) -> Dict[str, Any]:
        return {
            "listing_id": self.listing_id,
            "candidates": self.candidates,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
        }
