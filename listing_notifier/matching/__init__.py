"""Saved-search matching for published listings.

This module provides:
- listing_matches_search / matches: pure predicate over (listing, search)
- The individual sub-predicates (area, price, bedrooms, bathrooms, keywords)
- find_candidates: expand a listing into matching (buyer, search) pairs
- NotificationCandidate: ephemeral pairing handed to delivery
"""

from .engine import (
    find_candidates,
    listing_matches_search,
    matches,
    matches_area,
    matches_bathrooms,
    matches_bedrooms,
    matches_keywords,
    matches_price,
)
from .models import NotificationCandidate

__all__ = [
    "NotificationCandidate",
    "find_candidates",
    "listing_matches_search",
    "matches",
    "matches_area",
    "matches_bathrooms",
    "matches_bedrooms",
    "matches_keywords",
    "matches_price",
]
