"""Unit tests for the listing fan-out coordinator.

Covers candidate expansion, one delivery attempt per match, failure
isolation between buyers and the user-lookup failure path.
"""

import logging
from unittest.mock import AsyncMock, Mock

import pytest

from listing_notifier.config.environment import EnvironmentConfig
from listing_notifier.domain.models import Listing, SavedSearch, User
from listing_notifier.notifications.models import (
    DeliveryExhaustedError,
    DeliveryReceipt,
    FanoutResult,
    NotificationResult,
    ProviderRejection,
    SMTPDeliveryError,
    TransportKind,
)
from listing_notifier.notifications.resolver import ResolvedTransport
from listing_notifier.notifications.service import NotificationService
from listing_notifier.pipeline.fanout import ListingFanout
from tests.helpers import (
    FailingTransport,
    InMemoryAuditLog,
    InMemoryUserDirectory,
    RecordingTransport,
)


def make_service(primary, fallback=None, audit_log=None):
    resolver = Mock()
    resolver.resolve.return_value = ResolvedTransport(
        TransportKind.PRIMARY, primary, "AFC Private Listings <hello@lgweb.app>", EnvironmentConfig()
    )
    resolver.resolve_fallback.return_value = fallback
    return NotificationService(resolver, audit_log)


def buyer_with(user_id, *searches, email=None):
    return User(
        id=user_id,
        full_name=user_id.title(),
        email=email if email is not None else f"{user_id}@example.com",
        saved_searches=list(searches),
    )


@pytest.fixture
def buyers(north_loop_search):
    return [
        buyer_with("ann", north_loop_search),
        buyer_with("ben", SavedSearch(name="Anywhere"), SavedSearch(name="Lofts", keywords=["loft"])),
        buyer_with("cat", SavedSearch(name="Downtown", areas=["Downtown"])),
    ]


async def test_one_attempt_per_match(buyers, north_loop_listing):
    primary = RecordingTransport(TransportKind.PRIMARY)
    audit_log = InMemoryAuditLog()
    fanout = ListingFanout(make_service(primary, audit_log=audit_log), InMemoryUserDirectory(buyers))

    result = await fanout.notify_for_new_listing(north_loop_listing)

    assert result.candidates == 3
    assert result.sent == 3
    assert result.failed == 0
    assert sorted(m.to for m in primary.sent) == [
        "ann@example.com",
        "ben@example.com",
        "ben@example.com",
    ]
    assert sorted(e.search_name for e in audit_log.entries) == ["Anywhere", "Lofts", "North Loop Buyers"]
    assert {(r.user_id, r.search_name) for r in result.results} == {
        ("ann", "North Loop Buyers"),
        ("ben", "Anywhere"),
        ("ben", "Lofts"),
    }


async def test_failure_is_isolated(buyers, north_loop_listing):
    primary = FailingTransport(
        ProviderRejection("rejected", status_code=403, category="unauthorized"),
        only_for=["ann@example.com"],
    )
    fallback = FailingTransport(SMTPDeliveryError("SMTP down"))
    audit_log = InMemoryAuditLog()
    fanout = ListingFanout(
        make_service(primary, fallback=fallback, audit_log=audit_log), InMemoryUserDirectory(buyers)
    )

    result = await fanout.notify_for_new_listing(north_loop_listing)

    assert (result.sent, result.failed) == (2, 1)
    failed = [r for r in result.results if r.status == "failed"]
    assert failed[0].user_id == "ann"
    assert failed[0].error
    assert len(fallback.attempts) == 1
    assert {e.user_id for e in audit_log.entries} == {"ben"}


async def test_no_matches_no_attempts(north_loop_listing):
    primary = RecordingTransport(TransportKind.PRIMARY)
    audit_log = InMemoryAuditLog()
    directory = InMemoryUserDirectory([buyer_with("cat", SavedSearch(name="Downtown", areas=["Downtown"]))])
    fanout = ListingFanout(make_service(primary, audit_log=audit_log), directory)

    result = await fanout.notify_for_new_listing(north_loop_listing)

    assert result.candidates == 0
    assert result.results == []
    assert primary.sent == []
    assert audit_log.entries == []


async def test_buyer_without_address_is_skipped(north_loop_search, north_loop_listing):
    primary = RecordingTransport(TransportKind.PRIMARY)
    directory = InMemoryUserDirectory(
        [buyer_with("ann", north_loop_search), buyer_with("dan", north_loop_search, email="")]
    )
    fanout = ListingFanout(make_service(primary), directory)

    result = await fanout.notify_for_new_listing(north_loop_listing)

    assert (result.sent, result.skipped, result.failed) == (1, 1, 0)


async def test_user_lookup_failure_returns_empty_result(north_loop_listing, caplog):
    primary = RecordingTransport(TransportKind.PRIMARY)
    fanout = ListingFanout(make_service(primary), InMemoryUserDirectory(fail_search=True))

    with caplog.at_level(logging.ERROR):
        result = await fanout.notify_for_new_listing(north_loop_listing)

    assert result.candidates == 0
    assert primary.sent == []
    assert any(getattr(r, "event", None) == "fanout.user_lookup_failed" for r in caplog.records)


async def test_unexpected_error_is_contained(buyers, north_loop_listing):
    service = Mock()
    service.send_listing_match_notification = AsyncMock(
        side_effect=[
            RuntimeError("template exploded"),
            DeliveryReceipt(to="ben@example.com", subject="s", provenance="smtp"),
            DeliveryExhaustedError("failed", to="ben@example.com", attempts=["smtp"], last_error=OSError()),
        ]
    )
    fanout = ListingFanout(service, InMemoryUserDirectory(buyers))

    result = await fanout.notify_for_new_listing(north_loop_listing)

    assert [r.status for r in result.results] == ["failed", "sent", "failed"]
    assert result.results[1].provenance == "smtp"
    assert service.send_listing_match_notification.await_count == 3


async def test_listing_snapshot_is_shared(buyers):
    service = Mock()
    service.send_listing_match_notification = AsyncMock(return_value=None)
    listing = Listing(id="l-9", title="Sunny loft", area="North Loop", price=300000, bedrooms=3)

    await ListingFanout(service, InMemoryUserDirectory(buyers)).notify_for_new_listing(listing)

    listings = {id(call.args[1]) for call in service.send_listing_match_notification.await_args_list}
    assert listings == {id(listing)}


def test_result_log_fields():
    result = FanoutResult(
        listing_id="l",
        candidates=2,
        results=[
            NotificationResult(user_id="a", search_name="s", status="sent", provenance="resend"),
            NotificationResult(user_id="b", search_name="s", status="failed", error="x"),
        ],
    )
    assert result.as_log_fields() == {"listing_id": "l", "candidates": 2, "sent": 1, "failed": 1, "skipped": 0}
