"""Shared pytest fixtures."""

import pytest

from listing_notifier.config.environment import SENDER_ENV_KEYS
from listing_notifier.domain.models import Address, Listing, SavedSearch, User
from listing_notifier.logging.context import clear_log_context
from listing_notifier.persistence.database import close_database

ENV_KEYS = (
    "RESEND_API_KEY",
    "EMAIL_FROM_NAME",
    "RESEND_DOMAIN",
    "SMTP_URL",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_SECURE",
    "SMTP_USER",
    "SMTP_PASS",
    "EMAIL_INERT_TRANSPORT",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "ENVIRONMENT",
    "DATABASE_URL",
) + SENDER_ENV_KEYS


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Start every test without email or logging variables from the host."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    clear_log_context()
    yield
    clear_log_context()
    close_database()


@pytest.fixture
def mock_env_vars(monkeypatch):
    """SMTP host configuration in the process environment."""
    monkeypatch.setenv("SMTP_HOST", "smtp.test.com")
    monkeypatch.setenv("SMTP_PORT", "587")
    monkeypatch.setenv("SMTP_USER", "mailer@test.com")
    monkeypatch.setenv("SMTP_PASS", "testpass")
    monkeypatch.setenv("EMAIL_FROM", "alerts@test.com")


@pytest.fixture
def north_loop_search():
    return SavedSearch(
        name="North Loop Buyers",
        areas=["North Loop"],
        min_price=200000,
        max_price=500000,
        min_bedrooms=2,
    )


@pytest.fixture
def buyer(north_loop_search):
    return User(
        id="buyer-1",
        full_name="Bea Buyer",
        email="bea@example.com",
        role="user",
        saved_searches=[north_loop_search],
    )


@pytest.fixture
def agent():
    return User(id="agent-1", full_name="Alex Agent", email="alex@example.com", role="agent")


@pytest.fixture
def north_loop_listing():
    return Listing(
        id="listing-1",
        title="Sunny loft",
        description="Exposed brick & big windows",
        price=350000,
        bedrooms=2,
        bathrooms=2,
        square_feet=1200,
        area="North Loop",
        address=Address(street="1 Main St", city="Minneapolis", state="MN", postal_code="55401"),
        agent_id="agent-1",
    )
