"""Unit tests for transport selection and live configuration reload."""

import asyncio
import logging
from unittest.mock import MagicMock, Mock

import httpx
import pytest

from listing_notifier.config.exceptions import ConfigurationError
from listing_notifier.config.models import DeliveryConfig
from listing_notifier.notifications.models import OutboundEmail, TransportConstructionError, TransportKind
from listing_notifier.notifications.resolver import TransportResolver, credential_fingerprint
from listing_notifier.notifications.transports import (
    InertTransport,
    ResendTransport,
    SMTPTransport,
)
from tests.helpers import env_provider


@pytest.fixture
def http_transport():
    return httpx.MockTransport(lambda request: httpx.Response(200, json={"id": "email-1"}))


def make_resolver(env, http_transport=None, **kwargs):
    return TransportResolver(
        config_provider=env_provider(env),
        http_transport=http_transport,
        smtp_factory=Mock(return_value=MagicMock()),
        **kwargs,
    )


class TestSelection:
    """Tests for the selection order."""

    def test_nothing_configured_is_inert(self):
        resolved = make_resolver({}).resolve()
        assert resolved.kind == TransportKind.INERT
        assert isinstance(resolved.transport, InertTransport)
        assert resolved.label == "inert"

    def test_api_key_selects_primary(self, http_transport):
        resolved = make_resolver({"RESEND_API_KEY": "re_1"}, http_transport).resolve()
        assert resolved.kind == TransportKind.PRIMARY
        assert isinstance(resolved.transport, ResendTransport)

    def test_primary_wins_over_inert_and_smtp(self, http_transport):
        env = {"RESEND_API_KEY": "re_1", "EMAIL_INERT_TRANSPORT": "true", "SMTP_HOST": "mail.test"}
        assert make_resolver(env, http_transport).resolve().kind == TransportKind.PRIMARY

    def test_inert_flag_wins_over_smtp(self):
        env = {"EMAIL_INERT_TRANSPORT": "true", "SMTP_URL": "smtp://mail.test:25"}
        assert make_resolver(env).resolve().kind == TransportKind.INERT

    def test_smtp_url_selects_direct(self):
        resolved = make_resolver({"SMTP_URL": "smtp://mail.test:2525"}).resolve()
        assert resolved.kind == TransportKind.DIRECT_FALLBACK
        assert isinstance(resolved.transport, SMTPTransport)
        assert resolved.transport.describe() == "smtp://mail.test:2525"

    def test_smtp_host_selects_direct(self):
        resolved = make_resolver({"SMTP_HOST": "mail.test"}).resolve()
        assert resolved.label == "smtp"

    def test_sender_comes_from_configuration(self):
        resolved = make_resolver({"EMAIL_FROM": "alerts@afc.test"}).resolve()
        assert resolved.sender == "AFC Private Listings <alerts@afc.test>"

    def test_unbuildable_primary_falls_through(self, monkeypatch):
        def broken(*args, **kwargs):
            raise TransportConstructionError("bad URL")

        monkeypatch.setattr("listing_notifier.notifications.resolver.ResendClient", broken)
        resolved = make_resolver({"RESEND_API_KEY": "re_1", "SMTP_HOST": "mail.test"}).resolve()
        assert resolved.kind == TransportKind.DIRECT_FALLBACK


class TestUnrelatedMisconfiguration:
    """Malformed variables only fail the transport that actually uses them."""

    @pytest.mark.parametrize(
        "extra",
        [
            {"LOG_LEVEL": "verbose"},
            {"LOG_FORMAT": "text"},
            {"SMTP_USER": "u"},
            {"SMTP_PORT": "not-a-port"},
            {"SMTP_SECURE": "sometimes"},
        ],
    )
    def test_primary_still_selected(self, http_transport, extra):
        resolved = make_resolver({"RESEND_API_KEY": "re_1", **extra}, http_transport).resolve()
        assert resolved.kind == TransportKind.PRIMARY

    def test_bad_smtp_port_fails_direct_selection(self):
        resolver = make_resolver({"SMTP_HOST": "h", "SMTP_PORT": "not-a-port"})
        with pytest.raises(TransportConstructionError, match="SMTP_PORT"):
            resolver.resolve()

    def test_half_credential_pair_fails_fallback_only(self, http_transport):
        resolver = make_resolver({"RESEND_API_KEY": "re_1", "SMTP_USER": "u"}, http_transport)
        assert resolver.resolve().kind == TransportKind.PRIMARY
        with pytest.raises(TransportConstructionError, match="SMTP_PASS"):
            resolver.resolve_fallback("unauthorized")

    def test_smtp_url_ignores_host_form_variables(self):
        resolved = make_resolver({"SMTP_URL": "smtp://mail.test:25", "SMTP_PORT": "x"}).resolve()
        assert resolved.transport.describe() == "smtp://mail.test:25"

    def test_unparseable_inert_flag_counts_as_unset(self):
        assert make_resolver({"EMAIL_INERT_TRANSPORT": "maybe", "SMTP_HOST": "h"}).resolve().label == "smtp"


class TestLiveReload:
    """Tests for picking up configuration changes without a restart."""

    def test_key_added_later_is_used_next_call(self, http_transport):
        env = {}
        resolver = make_resolver(env, http_transport)
        assert resolver.resolve().kind == TransportKind.INERT

        env["RESEND_API_KEY"] = "re_new"
        assert resolver.resolve().kind == TransportKind.PRIMARY

    def test_primary_cached_while_key_unchanged(self, http_transport):
        resolver = make_resolver({"RESEND_API_KEY": "re_1"}, http_transport)
        first = resolver.resolve().transport
        assert resolver.resolve().transport is first
        assert resolver.state.primary_fingerprint == credential_fingerprint("re_1")

    def test_key_rotation_rebuilds_and_retires_client(self, http_transport):
        env = {"RESEND_API_KEY": "re_1"}
        resolver = make_resolver(env, http_transport)
        first = resolver.resolve().transport

        env["RESEND_API_KEY"] = "re_2"
        second = resolver.resolve().transport

        assert second is not first
        assert resolver.state.retired == [first]
        assert resolver.state.primary_fingerprint == credential_fingerprint("re_2")

    def test_smtp_rebuilt_when_settings_change(self):
        env = {"SMTP_HOST": "one.test"}
        resolver = make_resolver(env)
        first = resolver.resolve().transport
        assert resolver.resolve().transport is first

        env["SMTP_HOST"] = "two.test"
        second = resolver.resolve().transport
        assert second is not first
        assert resolver.state.smtp_settings.host == "two.test"

    def test_malformed_smtp_url_recovers_once_fixed(self):
        env = {"SMTP_URL": "http://wrong-scheme"}
        resolver = make_resolver(env)
        with pytest.raises(TransportConstructionError):
            resolver.resolve()

        env["SMTP_URL"] = "smtp://mail.test:25"
        assert resolver.resolve().kind == TransportKind.DIRECT_FALLBACK

    def test_unreadable_configuration_raises_construction_error(self):
        def unreadable():
            raise ConfigurationError("Environment variable validation failed")

        resolver = TransportResolver(config_provider=unreadable)
        with pytest.raises(TransportConstructionError, match="Invalid email configuration"):
            resolver.resolve()

    def test_inert_warning_logged_once(self, caplog):
        resolver = make_resolver({})
        with caplog.at_level(logging.WARNING):
            resolver.resolve()
            resolver.resolve()

        warnings = [r for r in caplog.records if getattr(r, "event", None) == "transport.inert_selected"]
        assert len(warnings) == 1


class TestFallback:
    """Tests for the SMTP transport used after a primary rejection."""

    def test_fallback_is_smtp_even_without_smtp_settings(self):
        transport = make_resolver({"RESEND_API_KEY": "re_1"}).resolve_fallback("unauthorized")
        assert isinstance(transport, SMTPTransport)
        assert transport.describe() == "smtp://localhost:587"

    def test_fallback_is_smtp_even_when_inert_flag_set(self):
        env = {"EMAIL_INERT_TRANSPORT": "1", "SMTP_URL": "smtps://mail.test"}
        transport = make_resolver(env).resolve_fallback("rate-limited")
        assert transport.describe() == "smtps://mail.test:465"

    def test_fallback_uses_given_snapshot(self):
        resolver = make_resolver({"SMTP_HOST": "live.test"})
        snapshot = resolver.resolve().env_config
        assert resolver.resolve_fallback(env_config=snapshot).client.settings.host == "live.test"

    def test_timeouts_come_from_delivery_config(self):
        resolver = make_resolver({}, delivery_config=DeliveryConfig(smtp_timeout=7))
        assert resolver.resolve_fallback().client.settings.timeout == 7


async def test_aclose_closes_current_and_retired_clients(http_transport):
    env = {"RESEND_API_KEY": "re_1"}
    resolver = make_resolver(env, http_transport)
    first = resolver.resolve().transport
    env["RESEND_API_KEY"] = "re_2"
    second = resolver.resolve().transport

    await resolver.aclose()

    assert first.client._client.is_closed
    assert second.client._client.is_closed
    assert resolver.state.retired == []
    assert resolver.state.primary is None


class TestRetiredClients:
    """Tests for closing Resend clients replaced by rotation or removal."""

    @pytest.fixture
    def message(self):
        return OutboundEmail(to="bea@example.com", from_address="hello@lgweb.app", subject="s", text="t")

    async def test_idle_client_closed_after_rotation(self, http_transport):
        env = {"RESEND_API_KEY": "re_1"}
        resolver = make_resolver(env, http_transport)
        first = resolver.resolve().transport

        env["RESEND_API_KEY"] = "re_2"
        resolver.resolve()
        await asyncio.gather(*resolver.state.closing)

        assert first.client._client.is_closed
        assert resolver.state.retired == []

    async def test_idle_client_closed_after_key_removed(self, http_transport):
        env = {"RESEND_API_KEY": "re_1"}
        resolver = make_resolver(env, http_transport)
        first = resolver.resolve().transport

        del env["RESEND_API_KEY"]
        assert resolver.resolve().kind == TransportKind.INERT
        await asyncio.gather(*resolver.state.closing)

        assert first.client._client.is_closed
        assert resolver.state.primary is None

    async def test_client_in_use_closes_after_its_last_send(self, message):
        release = asyncio.Event()

        async def slow_handler(request):
            await release.wait()
            return httpx.Response(200, json={"id": "email-1"})

        env = {"RESEND_API_KEY": "re_1"}
        resolver = make_resolver(env, httpx.MockTransport(slow_handler))
        first = resolver.resolve().transport
        sending = asyncio.create_task(first.send(message))
        await asyncio.sleep(0)

        env["RESEND_API_KEY"] = "re_2"
        resolver.resolve()
        assert resolver.state.closing == set()
        assert not first.client._client.is_closed

        release.set()
        assert await sending == "email-1"
        assert first.client._client.is_closed

    def test_replaced_clients_held_for_aclose_without_event_loop(self, http_transport):
        env = {}
        resolver = make_resolver(env, http_transport)
        for n in range(3):
            env["RESEND_API_KEY"] = f"re_{n}"
            resolver.resolve()

        assert len(resolver.state.retired) == 2
        assert all(t.retired and not t.closed for t in resolver.state.retired)
