"""
Marketplace Models

Data structures for the model marketplace registry.
"""

from datetime import datetime
from enum import Enum

from pydantic import Field, field_validator

from nexml.models.base import MarketModel, ensure_utc, generate_id, utc_now

MIN_SCORE = 1
MAX_SCORE = 5


class PaymentKind(str, Enum):
    """What a settled payment paid for."""
    PURCHASE = "purchase"
    RENT = "rent"


class ModelListing(MarketModel):
    """
    A model registered in the marketplace.

    A listing may be for sale, for rent, both or neither. Prices are
    integers in the smallest currency unit.
    """

    id: str = Field(description="Opaque listing id allocated by the catalog")
    content_ref: str = Field(description="Off-registry content address, stored verbatim")
    owner: str = Field(description="Identity of the current controlling party")
    creator: str = Field(description="Identity that uploaded the listing")

    # Terms
    for_sale: bool = False
    sale_price: int = Field(default=0, ge=0)
    for_rent: bool = False
    rent_price: int = Field(default=0, ge=0)

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime | None = None

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def convert_datetime(cls, v):
        return ensure_utc(v)

    def terms(self) -> dict[str, object]:
        """The owner-mutable fields, as passed to upload/update."""
        return {
            "content_ref": self.content_ref,
            "for_rent": self.for_rent,
            "for_sale": self.for_sale,
            "rent_price": self.rent_price,
            "sale_price": self.sale_price,
        }


class Rating(MarketModel):
    """
    A one-time score and comment left by a rater on a listing.
    """

    listing_id: str
    rater: str
    score: int = Field(ge=MIN_SCORE, le=MAX_SCORE)
    comment: str = ""
    rated_at: datetime = Field(default_factory=utc_now)

    @field_validator("rated_at", mode="before")
    @classmethod
    def convert_datetime(cls, v):
        return ensure_utc(v)


class UserProfile(MarketModel):
    """Identifier record for a caller. An unset profile has an empty DID."""

    identity: str
    did: str = ""
    updated_at: datetime | None = None

    @field_validator("updated_at", mode="before")
    @classmethod
    def convert_datetime(cls, v):
        return ensure_utc(v)

    @property
    def is_set(self) -> bool:
        return bool(self.did)


class PaymentRecord(MarketModel):
    """
    Record of an amount settled to a recipient for a purchase or rental.
    """

    id: str = Field(default_factory=generate_id)
    listing_id: str
    payer: str
    recipient: str
    amount: int = Field(ge=0)
    kind: PaymentKind
    reference: str | None = Field(
        default=None,
        description="Gateway-specific settlement reference",
    )
    settled_at: datetime = Field(default_factory=utc_now)
