"""
Listing Events
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

LISTING_CREATED = "ListingCreated"
LISTING_HELD = "ListingHeld"
LISTING_HOLD_RELEASED = "ListingHoldReleased"
LISTING_SOLD = "ListingSold"
LISTING_WITHDRAWN = "ListingWithdrawn"

LISTING_EVENT_TYPES = [
    LISTING_CREATED,
    LISTING_HELD,
    LISTING_HOLD_RELEASED,
    LISTING_SOLD,
    LISTING_WITHDRAWN,
]


class ListingCreated(BaseModel):
    listing_id: str
    isbn: str
    title: str
    author: str
    condition: str
    listing_price: Decimal
    source_appraisal_id: str


class ListingHeld(BaseModel):
    listing_id: str
    order_id: str
    held_until: datetime


class ListingHoldReleased(BaseModel):
    listing_id: str
    previous_order_id: str | None
    expired: bool = False


class ListingSold(BaseModel):
    listing_id: str
    order_id: str | None
    sold_at: datetime
    sale_price: Decimal


class ListingWithdrawn(BaseModel):
    listing_id: str
    reason: str | None = None
