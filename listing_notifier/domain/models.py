"""Core domain models for listings, saved searches, users and conversations.

This module defines the data structures the notification pipeline reads:
- Listing: immutable snapshot of a published listing
- SavedSearch: a buyer's standing query
- UserSummary / User: account references, with saved searches for buyers
- Conversation: agent/buyer thread whose participants may be bare ids
- AuditLogEntry: record of a delivered notification
"""

from datetime import datetime, timezone
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Address(BaseModel):
    """Structured street address. Every part is optional."""

    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class Listing(BaseModel):
    """Snapshot of a listing taken when it was published.

    Numeric fields are optional so that partially filled listings can still
    be evaluated; the matcher treats a missing value as failing any bound
    that constrains it.
    """

    id: Optional[str] = Field(None, description="Listing identifier")
    title: str = Field("", description="Listing headline")
    description: str = Field("", description="Free-text description")
    price: Optional[float] = Field(None, description="Asking price (USD)")
    bedrooms: Optional[float] = Field(None, description="Bedroom count")
    bathrooms: Optional[float] = Field(None, description="Bathroom count (halves allowed)")
    square_feet: Optional[float] = Field(None, description="Interior square footage")
    area: Optional[str] = Field(None, description="Neighbourhood / market area")
    address: Optional[Address] = None
    agent_id: Optional[str] = Field(None, description="Owning agent account id")
    status: str = Field("active", description="draft, active, pending or sold")

    model_config = ConfigDict(frozen=True)

    @field_validator("price", "bedrooms", "bathrooms", "square_feet", mode="before")
    @classmethod
    def coerce_number(cls, v):
        """Turn blank or unparseable numbers into None instead of failing."""
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, (int, float)):
            return v
        try:
            return float(str(v).strip())
        except ValueError:
            return None

    @property
    def city(self) -> Optional[str]:
        """City from the structured address, if any."""
        return self.address.city if self.address else None


class SavedSearch(BaseModel):
    """Buyer-authored standing query used to trigger listing alerts.

    Empty ``areas`` or ``keywords`` lists match every listing.
    """

    name: str = Field(..., min_length=1, description="Display name")
    areas: List[str] = Field(default_factory=list, description="Target areas or cities")
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    min_bedrooms: Optional[float] = Field(None, ge=0)
    min_bathrooms: Optional[float] = Field(None, ge=0)
    keywords: List[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Strip whitespace from the display name."""
        stripped = v.strip()
        if not stripped:
            raise ValueError("Saved search name cannot be empty")
        return stripped

    @field_validator("areas")
    @classmethod
    def drop_blank_areas(cls, v: List[str]) -> List[str]:
        """Strip areas and drop blanks so they cannot match area-less listings."""
        return [area.strip() for area in v if area and area.strip()]

    @field_validator("keywords")
    @classmethod
    def drop_empty_keywords(cls, v: List[str]) -> List[str]:
        # Surrounding spaces are significant: " pool" needs a space before "pool"
        return [keyword for keyword in v if keyword]


class UserSummary(BaseModel):
    """Minimal account reference used as a notification recipient."""

    id: str
    full_name: str = ""
    email: Optional[str] = None
    role: str = Field("user", description="user, agent or admin")

    @property
    def display_name(self) -> str:
        """Best human-readable name for email copy."""
        return self.full_name or self.email or "there"


class User(UserSummary):
    """Account with the saved searches it owns."""

    saved_searches: List[SavedSearch] = Field(default_factory=list)

    def summary(self) -> UserSummary:
        """Drop saved searches, keeping only the reference fields."""
        return UserSummary(id=self.id, full_name=self.full_name, email=self.email, role=self.role)


# A conversation participant arrives either as a bare account id or as an
# embedded user; resolve_participant() normalizes both to UserSummary.
ParticipantRef = Union[UserSummary, str]


def participant_id(ref: Optional[ParticipantRef]) -> Optional[str]:
    """Extract the account id from either participant shape."""
    if ref is None:
        return None
    if isinstance(ref, UserSummary):
        return ref.id
    return str(ref)


class ConversationMessage(BaseModel):
    """A single message appended to a conversation."""

    sender: ParticipantRef
    body: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Conversation(BaseModel):
    """Thread between one agent and one buyer about a listing."""

    id: Optional[str] = None
    listing: Optional[Listing] = None
    agent: ParticipantRef
    buyer: ParticipantRef
    messages: List[ConversationMessage] = Field(default_factory=list)


class AuditLogEntry(BaseModel):
    """Append-only record of a successfully delivered notification."""

    id: Optional[int] = None
    user_id: str
    listing_id: Optional[str] = None
    message_id: Optional[str] = None
    search_name: Optional[str] = None
    to_address: str
    subject: str
    body: str
    transport_response: str = Field(
        ..., description="Which transport handled delivery, e.g. 'resend-fallback:domain-unverified'"
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
