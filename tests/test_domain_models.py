"""Unit tests for domain models."""

import pytest
from pydantic import ValidationError

from listing_notifier.domain.models import (
    Address,
    AuditLogEntry,
    Conversation,
    Listing,
    SavedSearch,
    User,
    UserSummary,
    participant_id,
)


class TestListing:
    """Tests for Listing model."""

    def test_listing_is_frozen(self):
        listing = Listing(id="l-1", title="Loft", price=100)
        with pytest.raises(ValidationError):
            listing.price = 200

    def test_numeric_strings_are_coerced(self):
        listing = Listing(id="l-1", price="350000", bedrooms=" 3 ", bathrooms="2.5")
        assert listing.price == 350000
        assert listing.bedrooms == 3
        assert listing.bathrooms == 2.5

    def test_blank_or_bad_numbers_become_none(self):
        listing = Listing(id="l-1", price="", bedrooms="many", square_feet=True)
        assert listing.price is None
        assert listing.bedrooms is None
        assert listing.square_feet is None

    def test_city_property(self):
        assert Listing(id="l", address=Address(city="Edina")).city == "Edina"
        assert Listing(id="l").city is None


class TestSavedSearch:
    """Tests for SavedSearch model."""

    def test_name_is_stripped(self):
        assert SavedSearch(name="  Lakes  ").name == "Lakes"

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            SavedSearch(name="   ")

    def test_negative_bounds_rejected(self):
        with pytest.raises(ValidationError):
            SavedSearch(name="s", min_price=-1)
        with pytest.raises(ValidationError):
            SavedSearch(name="s", min_bathrooms=-0.5)

    def test_blank_areas_dropped_and_keywords_kept_verbatim(self):
        search = SavedSearch(name="s", areas=["", "  Uptown "], keywords=["", " pool"])
        assert search.areas == ["Uptown"]
        assert search.keywords == [" pool"]


class TestUsers:
    """Tests for user references."""

    def test_display_name_fallbacks(self):
        assert UserSummary(id="1", full_name="Ann").display_name == "Ann"
        assert UserSummary(id="1", email="ann@example.com").display_name == "ann@example.com"
        assert UserSummary(id="1").display_name == "there"

    def test_summary_drops_saved_searches(self):
        user = User(id="u", full_name="U", email="u@example.com", saved_searches=[SavedSearch(name="s")])
        summary = user.summary()
        assert type(summary) is UserSummary
        assert summary.email == "u@example.com"

    def test_participant_id_for_both_shapes(self):
        assert participant_id("abc") == "abc"
        assert participant_id(UserSummary(id="xyz")) == "xyz"
        assert participant_id(None) is None


class TestConversation:
    """Tests for Conversation parsing."""

    def test_participants_accept_ids_and_embedded_users(self):
        conversation = Conversation.model_validate(
            {
                "id": "c-1",
                "agent": "agent-1",
                "buyer": {"id": "buyer-1", "full_name": "Bea", "email": "bea@example.com"},
                "messages": [{"sender": "buyer-1", "body": "Hi"}],
            }
        )
        assert conversation.agent == "agent-1"
        assert isinstance(conversation.buyer, UserSummary)
        assert conversation.messages[0].created_at.tzinfo is not None


class TestAuditLogEntry:
    """Tests for AuditLogEntry."""

    def test_transport_response_required(self):
        with pytest.raises(ValidationError):
            AuditLogEntry(user_id="u", to_address="a@b.co", subject="s", body="b")

    def test_defaults(self):
        entry = AuditLogEntry(
            user_id="u", to_address="a@b.co", subject="s", body="b", transport_response="inert"
        )
        assert entry.id is None
        assert entry.listing_id is None
        assert entry.created_at.tzinfo is not None
