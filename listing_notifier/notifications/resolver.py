"""Transport selection with live configuration reload.

The resolver re-reads configuration on every call so that, for example, a
Resend API key added to the environment takes effect on the next delivery
without a restart. Constructed clients are cached in a TransportState
owned by the resolver instance and rebuilt only when the configuration
they were built from changes.

Selection order:
1. RESEND_API_KEY set and client constructible -> primary (Resend)
2. EMAIL_INERT_TRANSPORT -> inert
3. SMTP_URL -> SMTP from the URL
4. SMTP_HOST -> SMTP from host/port/secure/user/pass
5. nothing configured -> inert
"""

import asyncio
import hashlib
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set

import httpx

from listing_notifier.config.environment import EnvironmentConfig, load_email_config
from listing_notifier.config.exceptions import ConfigurationError
from listing_notifier.config.models import DeliveryConfig
from listing_notifier.logging import get_logger

from .models import TransportConstructionError, TransportKind
from .resend_client import ResendClient
from .smtp_client import SMTPClient, SMTPSettings, build_sender_address, smtp_settings_from_env
from .transports import InertTransport, ResendTransport, SMTPTransport, Transport

logger = get_logger(__name__, component="transport")


def credential_fingerprint(secret: str) -> str:
    """SHA-256 of a credential, so the raw key is never kept as a cache key."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


@dataclass
class TransportState:
    """Lazily built transports and the configuration they were built from.

    Attributes:
        primary: Cached Resend transport
        primary_fingerprint: Fingerprint of the API key the client was built with
        smtp: Cached SMTP transport
        smtp_settings: Settings the SMTP transport was built with
        inert: The inert transport (stateless, built once)
        inert_warned: Whether the "inert transport selected" warning was logged
        retired: Replaced transports that went idle with no event loop
            running; closed by aclose()
        closing: In-progress close tasks for retired transports
    """

    primary: Optional[ResendTransport] = None
    primary_fingerprint: Optional[str] = None
    smtp: Optional[SMTPTransport] = None
    smtp_settings: Optional[SMTPSettings] = None
    inert: InertTransport = field(default_factory=InertTransport)
    inert_warned: bool = False
    retired: List[ResendTransport] = field(default_factory=list)
    closing: Set[asyncio.Task] = field(default_factory=set)


@dataclass(frozen=True)
class ResolvedTransport:
    """The transport chosen for one delivery, plus its sender address."""

    kind: TransportKind
    transport: Transport
    sender: str
    env_config: EnvironmentConfig

    @property
    def label(self) -> str:
        return self.kind.value


class TransportResolver:
    """Chooses and lazily (re)builds the active delivery transport."""

    def __init__(
        self,
        config_provider: Callable[[], EnvironmentConfig] = load_email_config,
        delivery_config: Optional[DeliveryConfig] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
        state: Optional[TransportState] = None,
    ):
        """Initialize the resolver.

        Args:
            config_provider: Returns the current environment configuration
            delivery_config: Timeouts, API URL and sender fallbacks
            http_transport: httpx transport for the Resend client (tests)
            smtp_factory: smtplib.SMTP replacement (tests)
            smtp_ssl_factory: smtplib.SMTP_SSL replacement (tests)
            state: Pre-built state (defaults to an empty one)
        """
        self.config_provider = config_provider
        self.delivery_config = delivery_config or DeliveryConfig()
        self.http_transport = http_transport
        self.smtp_factory = smtp_factory
        self.smtp_ssl_factory = smtp_ssl_factory
        self.state = state or TransportState()

    def resolve(self) -> ResolvedTransport:
        """Select the transport for the next delivery.

        Only the email variables are consulted; a malformed LOG_LEVEL or
        SMTP_PORT never blocks a configured Resend key.

        Returns:
            ResolvedTransport describing the selection

        Raises:
            TransportConstructionError: If configuration is unreadable or the
                selected direct-protocol transport cannot be built
        """
        env_config = self._current_config()
        sender = build_sender_address(env_config, self.delivery_config)

        if not env_config.has_primary_credential and self.state.primary is not None:
            logger.info(
                "Resend credential removed, retiring client",
                extra={"event": "transport.primary.retired"},
            )
            self._retire(self.state.primary)
            self.state.primary = None
            self.state.primary_fingerprint = None

        if env_config.has_primary_credential:
            try:
                primary = self._primary_transport(env_config.resend_api_key)
                return ResolvedTransport(TransportKind.PRIMARY, primary, sender, env_config)
            except TransportConstructionError as e:
                logger.error(
                    f"Resend client could not be constructed, trying direct transports: {e}",
                    extra={"event": "transport.construction_failed", "transport": "resend"},
                )

        if env_config.inert_transport:
            return ResolvedTransport(TransportKind.INERT, self._inert_transport(), sender, env_config)

        if env_config.has_smtp_settings:
            smtp = self._smtp_transport(env_config)
            return ResolvedTransport(TransportKind.DIRECT_FALLBACK, smtp, sender, env_config)

        return ResolvedTransport(TransportKind.INERT, self._inert_transport(), sender, env_config)

    def resolve_fallback(
        self,
        category: Optional[str] = None,
        env_config: Optional[EnvironmentConfig] = None,
    ) -> SMTPTransport:
        """Direct-protocol transport used after the primary provider failed.

        Always SMTP, whatever the normal selection would be: from SMTP_URL,
        else the host settings, else localhost defaults.

        Args:
            category: Classification of the primary failure (logged only)
            env_config: Configuration snapshot from the preceding resolve()

        Raises:
            TransportConstructionError: If the SMTP configuration is malformed
        """
        transport = self._smtp_transport(env_config or self._current_config())
        logger.debug(
            f"Fallback transport {transport.describe()} selected after '{category}' failure",
            extra={"event": "transport.fallback_selected", "category": category},
        )
        return transport

    async def aclose(self) -> None:
        """Close HTTP clients held by cached and retired transports."""
        if self.state.closing:
            await asyncio.gather(*list(self.state.closing))
        transports = list(self.state.retired)
        if self.state.primary is not None:
            transports.append(self.state.primary)
        for transport in transports:
            await transport.aclose()
        self.state.retired.clear()
        self.state.primary = None
        self.state.primary_fingerprint = None

    def _current_config(self) -> EnvironmentConfig:
        try:
            return self.config_provider()
        except ConfigurationError as e:
            logger.error(
                "Email configuration is invalid",
                extra={"event": "transport.config_invalid", "errors": e.errors},
            )
            raise TransportConstructionError(f"Invalid email configuration: {e.message}") from e

    def _primary_transport(self, api_key: str) -> ResendTransport:
        fingerprint = credential_fingerprint(api_key)
        state = self.state

        if state.primary is not None and state.primary_fingerprint == fingerprint:
            return state.primary

        client = ResendClient(
            api_key,
            base_url=self.delivery_config.resend_api_url,
            timeout=self.delivery_config.request_timeout,
            transport=self.http_transport,
        )
        if state.primary is not None:
            logger.info(
                "Resend credential changed, rebuilding client",
                extra={"event": "transport.primary.rebuilt"},
            )
            self._retire(state.primary)
        else:
            logger.info(
                "Resend client constructed",
                extra={"event": "transport.primary.constructed"},
            )

        state.primary = ResendTransport(client)
        state.primary_fingerprint = fingerprint
        return state.primary

    def _smtp_transport(self, env_config: EnvironmentConfig) -> SMTPTransport:
        try:
            settings = smtp_settings_from_env(env_config, timeout=self.delivery_config.smtp_timeout)
        except TransportConstructionError as e:
            logger.error(
                f"SMTP transport could not be constructed: {e}",
                extra={"event": "transport.construction_failed", "transport": "smtp"},
            )
            raise

        state = self.state
        if state.smtp is None or state.smtp_settings != settings:
            client = SMTPClient(
                settings,
                smtp_factory=self.smtp_factory,
                smtp_ssl_factory=self.smtp_ssl_factory,
            )
            state.smtp = SMTPTransport(client)
            state.smtp_settings = settings
            logger.info(
                f"SMTP transport configured for {settings.describe()}",
                extra={"event": "transport.smtp.constructed"},
            )
        return state.smtp

    def _inert_transport(self) -> InertTransport:
        if not self.state.inert_warned:
            self.state.inert_warned = True
            logger.warning(
                "No email transport configured; notifications will not leave this process",
                extra={"event": "transport.inert_selected"},
            )
        return self.state.inert

    def _retire(self, transport: ResendTransport) -> None:
        """Close a replaced Resend transport once nothing is sending through it."""
        transport.retire()
        self.state.retired = [t for t in self.state.retired if not t.closed]
        if not transport.idle:
            # the last in-flight send closes it
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.state.retired.append(transport)
            return
        task = loop.create_task(transport.aclose())
        self.state.closing.add(task)
        task.add_done_callback(self.state.closing.discard)
