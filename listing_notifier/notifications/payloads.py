"""Payload resolution for notification templates.

This module builds the context dictionaries the email templates render.
Builders never raise on missing optional listing fields: a piece that is
absent (square footage, part of the address, a price) resolves to None and
the templates omit it.
"""

import math
from typing import Any, Dict, Optional

from listing_notifier.config.models import DeliveryConfig
from listing_notifier.domain.models import Listing, SavedSearch, UserSummary

DEFAULT_LISTING_TITLE = "Listing"


def _finite(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def format_price(value: Any) -> Optional[str]:
    """Format a price as US dollars, e.g. ``$350,000`` or ``$1,250.50``."""
    number = _finite(value)
    if number is None:
        return None
    if number.is_integer():
        return f"${number:,.0f}"
    return f"${number:,.2f}"


def format_count(value: Any) -> Optional[str]:
    """Format a room count or area without a trailing ``.0`` (2 -> "2", 2.5 -> "2.5")."""
    number = _finite(value)
    if number is None:
        return None
    if number.is_integer():
        return f"{number:,.0f}"
    return f"{number:,g}"


def _clean(value: Optional[str]) -> str:
    return value.strip() if isinstance(value, str) else ""


def format_address(listing: Listing) -> Optional[str]:
    """Format the street address as ``street, city, state postal``.

    Missing parts are dropped along with their separators.
    """
    address = listing.address
    if address is None:
        return None

    state_line = " ".join(part for part in (_clean(address.state), _clean(address.postal_code)) if part)
    parts = [_clean(address.street), _clean(address.city), state_line]
    formatted = ", ".join(part for part in parts if part)
    return formatted or None


def format_location(listing: Optional[Listing]) -> Optional[str]:
    """Short location for message emails: area first, then ``city, state``."""
    if listing is None:
        return None

    parts = [_clean(listing.area)]
    if listing.address is not None:
        city_state = ", ".join(
            part for part in (_clean(listing.address.city), _clean(listing.address.state)) if part
        )
        parts.append(city_state)

    formatted = " · ".join(part for part in parts if part)
    return formatted or None


def listing_title(listing: Optional[Listing]) -> str:
    """Listing headline, or a generic label when the listing is missing or untitled."""
    if listing is None:
        return DEFAULT_LISTING_TITLE
    return _clean(listing.title) or DEFAULT_LISTING_TITLE


def _site_context(delivery_config: DeliveryConfig) -> Dict[str, str]:
    return {
        "site_name": delivery_config.site_name,
        "dashboard_url": delivery_config.dashboard_url,
    }


def build_listing_match_context(
    buyer: UserSummary,
    listing: Listing,
    search: SavedSearch,
    delivery_config: Optional[DeliveryConfig] = None,
) -> Dict[str, Any]:
    """Build template context for a saved-search alert.

    Args:
        buyer: Recipient
        listing: Published listing snapshot
        search: The saved search the listing matched
        delivery_config: Site name and dashboard link

    Returns:
        Dictionary with keys:
        - recipient_name, search_name, site_name, dashboard_url
        - listing: title, area_label, address, price, bedrooms, bathrooms,
          square_feet, description (absent values are None)
    """
    delivery_config = delivery_config or DeliveryConfig()

    area_label = _clean(listing.area) or _clean(listing.city) or "your area"

    return {
        **_site_context(delivery_config),
        "recipient_name": buyer.display_name,
        "search_name": search.name,
        "listing": {
            "id": listing.id,
            "title": listing_title(listing),
            "area_label": area_label,
            "address": format_address(listing),
            "price": format_price(listing.price),
            "bedrooms": format_count(listing.bedrooms),
            "bathrooms": format_count(listing.bathrooms),
            "square_feet": format_count(listing.square_feet),
            "description": _clean(listing.description) or None,
        },
    }


def build_message_context(
    sender: Optional[UserSummary],
    recipient: UserSummary,
    message_body: str,
    listing: Optional[Listing] = None,
    delivery_config: Optional[DeliveryConfig] = None,
    default_listing_title: Optional[str] = DEFAULT_LISTING_TITLE,
) -> Dict[str, Any]:
    """Build template context for conversation and direct-message emails.

    The message body is passed through untouched; the HTML templates escape
    it and the plain-text templates carry it literally.

    Args:
        sender: Author of the message (None renders as "Someone")
        recipient: Participant being notified
        message_body: Literal message text
        listing: Listing the thread is about, if known
        delivery_config: Site name and dashboard link
        default_listing_title: Title used when the listing is missing
    """
    delivery_config = delivery_config or DeliveryConfig()

    if listing is not None:
        title: Optional[str] = listing_title(listing)
    else:
        title = default_listing_title

    return {
        **_site_context(delivery_config),
        "recipient_name": recipient.display_name,
        "sender_name": sender.display_name if sender is not None else "Someone",
        "listing_title": title,
        "location": format_location(listing),
        "message_body": message_body,
    }


def build_welcome_context(
    user: UserSummary, delivery_config: Optional[DeliveryConfig] = None
) -> Dict[str, Any]:
    """Build template context for the registration welcome email."""
    delivery_config = delivery_config or DeliveryConfig()
    return {
        **_site_context(delivery_config),
        "recipient_name": user.display_name,
    }
