"""Email delivery for listing alerts and message notifications.

This module provides the delivery half of the pipeline:
- NotificationService: renders, delivers with primary -> SMTP fallback, audits
- TransportResolver: picks Resend, SMTP or the inert transport per call
- ResendClient / SMTPClient: provider clients
- TemplateRenderer: Jinja2 subject, HTML and plain-text rendering
- Result types and the NotificationError exception hierarchy
"""

from .models import (
    ClassifiedFailure,
    Delivered,
    DeliveryError,
    DeliveryExhaustedError,
    DeliveryReceipt,
    FanoutResult,
    NotificationError,
    NotificationResult,
    NotificationTemplateError,
    OutboundEmail,
    ProviderRejection,
    SMTPDeliveryError,
    TransportConstructionError,
    TransportKind,
)
from .resend_client import ResendClient, classify_provider_error
from .resolver import ResolvedTransport, TransportResolver, TransportState
from .service import NotificationService
from .smtp_client import SMTPClient, SMTPSettings, build_sender_address, normalize_recipient
from .templates import TemplateRenderer
from .transports import InertTransport, ResendTransport, SMTPTransport

__all__ = [
    # Main service
    "NotificationService",
    # Transport selection
    "TransportResolver",
    "TransportState",
    "ResolvedTransport",
    "TransportKind",
    "ResendTransport",
    "SMTPTransport",
    "InertTransport",
    # Provider clients
    "ResendClient",
    "SMTPClient",
    "SMTPSettings",
    # Models and results
    "OutboundEmail",
    "Delivered",
    "ClassifiedFailure",
    "DeliveryReceipt",
    "NotificationResult",
    "FanoutResult",
    # Exceptions
    "NotificationError",
    "NotificationTemplateError",
    "TransportConstructionError",
    "DeliveryError",
    "SMTPDeliveryError",
    "ProviderRejection",
    "DeliveryExhaustedError",
    # Components and utilities
    "TemplateRenderer",
    "build_sender_address",
    "classify_provider_error",
    "normalize_recipient",
]
