"""Data models for the matching engine."""

from dataclasses import dataclass

from listing_notifier.domain.models import Listing, SavedSearch, User


@dataclass(frozen=True)
class NotificationCandidate:
    """A (buyer, saved search, listing) triple that should trigger an alert.

    Produced by the matcher for a single publish event and never persisted.

    Attributes:
        buyer: Account that owns the saved search
        search: The saved search the listing satisfied
        listing: The published listing snapshot
    """

    buyer: User
    search: SavedSearch
    listing: Listing

    @property
    def key(self) -> str:
        """Stable identifier for log correlation."""
        return f"{self.buyer.id}:{self.search.name}:{self.listing.id}"
