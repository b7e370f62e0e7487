"""
Listing Domain Models - appraised books offered for resale

Lifecycle:
    available -> held        (reserved by a checking-out order)
    held -> available        (hold released or expired)
    held -> sold             (only by the order holding it)
    available | held -> withdrawn

A hold carries an expiry time; expired holds are swept back to available
by ListingService.release_expired_holds.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from bookbuyback.appraisal.models import Condition
from bookbuyback.kernel.errors import HoldNotOwned, ValidationError
from bookbuyback.kernel.ids import generate_id
from bookbuyback.kernel.lifecycle import TransitionTable
from bookbuyback.kernel.money import Money
from bookbuyback.kernel.time import resolve_now


class ListingStatus(str, Enum):
    AVAILABLE = "available"
    HELD = "held"
    SOLD = "sold"
    WITHDRAWN = "withdrawn"


LISTING_TRANSITIONS = TransitionTable(
    "listing",
    {
        ListingStatus.AVAILABLE: {ListingStatus.HELD, ListingStatus.WITHDRAWN},
        ListingStatus.HELD: {
            ListingStatus.AVAILABLE,
            ListingStatus.SOLD,
            ListingStatus.WITHDRAWN,
        },
        ListingStatus.SOLD: set(),
        ListingStatus.WITHDRAWN: set(),
    },
)


class ListedBook(BaseModel):
    """Catalogue data shown on the listing"""

    isbn: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    author: str
    condition: Condition
    cover_image_url: str | None = None
    publisher: str | None = None
    publish_year: int | None = None
    description: str | None = None

    model_config = {"frozen": True}


class Listing(BaseModel):
    """One physical book for sale"""

    listing_id: str
    book: ListedBook
    source_appraisal_id: str
    purchase_request_id: str
    status: ListingStatus = ListingStatus.AVAILABLE
    offer_price: Money
    listing_price: Money
    held_by_order_id: str | None = None
    held_until: datetime | None = None
    sold_at: datetime | None = None
    withdraw_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"frozen": True}

    @classmethod
    def create(
        cls,
        *,
        book: ListedBook,
        source_appraisal_id: str,
        purchase_request_id: str,
        offer_price: Money,
        listing_price: Money,
        now: datetime | None = None,
    ) -> "Listing":
        if listing_price.amount < offer_price.amount:
            raise ValidationError("Listing price cannot be below the offer price")
        ts = resolve_now(now)
        return cls(
            listing_id=generate_id("lst"),
            book=book,
            source_appraisal_id=source_appraisal_id,
            purchase_request_id=purchase_request_id,
            offer_price=offer_price,
            listing_price=listing_price,
            created_at=ts,
            updated_at=ts,
        )

    def hold(self, order_id: str, duration_minutes: int, now: datetime | None = None) -> "Listing":
        """
        Reserve the listing for an order

        Raises:
            InvalidTransition: Unless the listing is available
        """
        with LISTING_TRANSITIONS.transition(self.status, ListingStatus.HELD, "hold"):
            if duration_minutes < 1:
                raise ValidationError("Hold duration must be at least one minute")
            ts = resolve_now(now)
            return self.model_copy(
                update={
                    "status": ListingStatus.HELD,
                    "held_by_order_id": order_id,
                    "held_until": ts + timedelta(minutes=duration_minutes),
                    "updated_at": ts,
                }
            )

    def _require_holder(self, order_id: str | None) -> None:
        if order_id is not None and self.held_by_order_id != order_id:
            raise HoldNotOwned(self.listing_id, order_id, self.held_by_order_id)

    def release(self, order_id: str | None = None, now: datetime | None = None) -> "Listing":
        """
        Make the listing available again

        Args:
            order_id: The order giving up the hold; None for the expiry sweep

        Raises:
            InvalidTransition: Unless the listing is held
            HoldNotOwned: If another order holds it
        """
        with LISTING_TRANSITIONS.transition(self.status, ListingStatus.AVAILABLE, "release"):
            self._require_holder(order_id)
            return self.model_copy(
                update={
                    "status": ListingStatus.AVAILABLE,
                    "held_by_order_id": None,
                    "held_until": None,
                    "updated_at": resolve_now(now),
                }
            )

    def mark_sold(self, order_id: str | None = None, now: datetime | None = None) -> "Listing":
        with LISTING_TRANSITIONS.transition(self.status, ListingStatus.SOLD, "mark sold"):
            self._require_holder(order_id)
            ts = resolve_now(now)
            return self.model_copy(
                update={"status": ListingStatus.SOLD, "sold_at": ts, "updated_at": ts}
            )

    def withdraw(self, reason: str | None = None, now: datetime | None = None) -> "Listing":
        LISTING_TRANSITIONS.require(self.status, ListingStatus.WITHDRAWN, "withdraw")
        return self.model_copy(
            update={
                "status": ListingStatus.WITHDRAWN,
                "withdraw_reason": reason,
                "held_by_order_id": None,
                "held_until": None,
                "updated_at": resolve_now(now),
            }
        )

    def is_hold_expired(self, now: datetime) -> bool:
        if self.status != ListingStatus.HELD or self.held_until is None:
            return False
        return now > self.held_until

    @property
    def margin(self) -> Decimal:
        return self.listing_price.amount - self.offer_price.amount
