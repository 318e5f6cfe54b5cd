"""Saved-search matching for newly published listings.

The predicate is pure and total: it never raises and never performs I/O.
A listing matches a saved search when every sub-predicate holds:

1. Area: listing area or address city equals one of the search areas
2. Price: within [min_price, max_price]
3. Bedrooms / bathrooms: at least the requested minimum
4. Keywords: at least one keyword appears in title + description

Empty area and keyword lists match everything. A missing or non-numeric
listing value fails any bound that constrains it.
"""

import logging
import math
from typing import Iterable, List, Optional

from listing_notifier.domain.models import Listing, SavedSearch, User

from .models import NotificationCandidate

logger = logging.getLogger(__name__)


def _normalize(value) -> str:
    return str(value).strip().lower() if value else ""


def _as_number(value) -> Optional[float]:
    """Coerce a value to a finite float, or None when that is impossible."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _at_least(value, bound) -> bool:
    """True if no bound is set, else value must be a number >= bound."""
    limit = _as_number(bound)
    if limit is None:
        return True
    number = _as_number(value)
    return number is not None and number >= limit


def _at_most(value, bound) -> bool:
    limit = _as_number(bound)
    if limit is None:
        return True
    number = _as_number(value)
    return number is not None and number <= limit


def matches_area(listing: Listing, areas: Optional[Iterable[str]]) -> bool:
    """Case-insensitive equality of listing area or city against any search area."""
    wanted = {_normalize(area) for area in areas or () if _normalize(area)}
    if not wanted:
        return True

    candidates = {_normalize(listing.area), _normalize(listing.city)}
    candidates.discard("")
    return bool(wanted & candidates)


def matches_price(listing: Listing, search: SavedSearch) -> bool:
    return _at_least(listing.price, search.min_price) and _at_most(
        listing.price, search.max_price
    )


def matches_bedrooms(listing: Listing, search: SavedSearch) -> bool:
    return _at_least(listing.bedrooms, search.min_bedrooms)


def matches_bathrooms(listing: Listing, search: SavedSearch) -> bool:
    return _at_least(listing.bathrooms, search.min_bathrooms)


def matches_keywords(listing: Listing, keywords: Optional[Iterable[str]]) -> bool:
    """At least one keyword is a case-insensitive substring of title + description.

    Keywords are lowercased but not trimmed.
    """
    terms = [str(keyword).lower() for keyword in keywords or () if keyword]
    if not terms:
        return True

    haystack = f"{listing.title or ''} {listing.description or ''}".lower()
    return any(term in haystack for term in terms)


def listing_matches_search(listing: Optional[Listing], search: Optional[SavedSearch]) -> bool:
    """Decide whether a listing satisfies a saved search.

    Args:
        listing: Published listing snapshot
        search: Buyer's saved search

    Returns:
        True when every sub-predicate holds; False for a missing listing or search
    """
    if listing is None or search is None:
        return False

    return (
        matches_area(listing, search.areas)
        and matches_price(listing, search)
        and matches_bedrooms(listing, search)
        and matches_bathrooms(listing, search)
        and matches_keywords(listing, search.keywords)
    )


# Short alias used by callers that think of this as "the matcher"
matches = listing_matches_search


def find_candidates(listing: Listing, users: Iterable[User]) -> List[NotificationCandidate]:
    """Pair a listing with every (buyer, saved search) it satisfies.

    Args:
        listing: Published listing snapshot
        users: Buyers holding saved searches

    Returns:
        One NotificationCandidate per matching pair, in user then search order
    """
    candidates: List[NotificationCandidate] = []

    for user in users:
        for search in user.saved_searches:
            if listing_matches_search(listing, search):
                candidates.append(NotificationCandidate(buyer=user, search=search, listing=listing))
            else:
                logger.debug(
                    f"Listing {listing.id} did not match search '{search.name}' of user {user.id}",
                    extra={"listing_id": listing.id, "user_id": user.id, "search_name": search.name},
                )

    return candidates
