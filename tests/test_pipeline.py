"""Unit tests for the pipeline entry points and the JSON user directory."""

import json
from unittest.mock import AsyncMock, Mock

import pytest

from listing_notifier.config import AppConfig, ConfigurationError
from listing_notifier.config.models import DeliveryConfig
from listing_notifier.directory import JsonUserDirectory
from listing_notifier.domain.models import Conversation
from listing_notifier.notifications.models import DeliveryExhaustedError
from listing_notifier.notifications.service import NotificationService
from listing_notifier.pipeline import NotificationPipeline
from tests.helpers import InMemoryAuditLog, InMemoryUserDirectory, env_provider


class TestNotificationPipeline:
    """Tests for NotificationPipeline wiring and event handlers."""

    def test_from_config_wires_components(self):
        app_config = AppConfig(delivery=DeliveryConfig(site_name="Lakes"))
        directory = InMemoryUserDirectory()
        audit_log = InMemoryAuditLog()

        pipeline = NotificationPipeline.from_config(
            app_config, directory, audit_log=audit_log, config_provider=env_provider({})
        )

        service = pipeline.notification_service
        assert isinstance(service, NotificationService)
        assert service.audit_log is audit_log
        assert service.user_directory is directory
        assert service.delivery_config.site_name == "Lakes"
        assert service.resolver.delivery_config.site_name == "Lakes"
        assert pipeline.fanout.user_directory is directory
        assert pipeline.conversation_notifier.notification_service is service

    async def test_listing_published_runs_fanout(self, buyer, north_loop_listing):
        audit_log = InMemoryAuditLog()
        pipeline = NotificationPipeline.from_config(
            AppConfig(),
            InMemoryUserDirectory([buyer]),
            audit_log=audit_log,
            config_provider=env_provider({"EMAIL_INERT_TRANSPORT": "true"}),
        )

        result = await pipeline.listing_published(north_loop_listing)
        await pipeline.aclose()

        assert result.sent == 1
        assert audit_log.entries[0].transport_response == "inert"

    async def test_conversation_message_sent_never_raises(self, agent):
        service = Mock()
        service.send_conversation_notification = AsyncMock(
            side_effect=DeliveryExhaustedError("x", to="a@b.co", attempts=[], last_error=OSError())
        )
        pipeline = NotificationPipeline(service, InMemoryUserDirectory([agent]))
        conversation = Conversation(id="c", agent="agent-1", buyer="buyer-1")

        assert await pipeline.conversation_message_sent(conversation, "buyer-1", "hi") is None

    async def test_user_registered_logs_failure(self, buyer):
        service = Mock()
        service.send_registration_email = AsyncMock(
            side_effect=DeliveryExhaustedError("x", to="a@b.co", attempts=[], last_error=OSError())
        )
        pipeline = NotificationPipeline(service, InMemoryUserDirectory())

        await pipeline.user_registered(buyer)

        service.send_registration_email.assert_awaited_once_with(buyer)

    async def test_aclose_delegates_to_resolver(self):
        service = Mock()
        service.resolver.aclose = AsyncMock()
        await NotificationPipeline(service, InMemoryUserDirectory()).aclose()
        service.resolver.aclose.assert_awaited_once()


class TestJsonUserDirectory:
    """Tests for the JSON-backed user directory."""

    @pytest.fixture
    def users_file(self, tmp_path):
        path = tmp_path / "users.json"
        path.write_text(
            json.dumps(
                {
                    "users": [
                        {
                            "id": "buyer-1",
                            "full_name": "Bea Buyer",
                            "email": "bea@example.com",
                            "saved_searches": [{"name": "Lofts", "keywords": ["loft"]}],
                        },
                        {"id": "buyer-2", "email": "no-searches@example.com"},
                        {
                            "id": "agent-1",
                            "email": "alex@example.com",
                            "role": "agent",
                            "saved_searches": [{"name": "Comps"}],
                        },
                    ]
                }
            )
        )
        return path

    async def test_only_buyers_with_searches(self, users_file):
        directory = JsonUserDirectory.from_file(users_file)
        users = await directory.find_users_with_saved_searches()
        assert [u.id for u in users] == ["buyer-1"]

    async def test_find_by_id(self, users_file):
        directory = JsonUserDirectory.from_file(users_file)
        agent = await directory.find_user_by_id("agent-1")
        assert agent.email == "alex@example.com"
        assert not hasattr(agent, "saved_searches")
        assert await directory.find_user_by_id("nobody") is None

    async def test_plain_list_format(self, tmp_path):
        path = tmp_path / "users.json"
        path.write_text(json.dumps([{"id": "u", "saved_searches": [{"name": "s"}]}]))
        users = await JsonUserDirectory.from_file(path).find_users_with_saved_searches()
        assert len(users) == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            JsonUserDirectory.from_file(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "users.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            JsonUserDirectory.from_file(path)

    def test_invalid_record(self, tmp_path):
        path = tmp_path / "users.json"
        path.write_text(json.dumps([{"full_name": "No id"}]))
        with pytest.raises(ConfigurationError) as exc_info:
            JsonUserDirectory.from_file(path)
        assert any("id" in error for error in exc_info.value.errors)
