"""
Listing client - how orders reserve and sell listings

OrderService depends on this protocol rather than on the listing context
directly, so the catalogue can live in-process or behind a remote API.
Release and sale name the order, so one order can never act on a hold
taken by another.
"""

from datetime import datetime
from typing import Protocol

from bookbuyback.listing.models import Listing
from bookbuyback.listing.services import ListingService


class ListingClient(Protocol):
    def get_by_id(self, listing_id: str) -> Listing | None: ...

    def hold_for_order(self, listing_id: str, order_id: str) -> datetime | None:
        """Reserve the listing; returns when the hold lapses"""
        ...

    def release_hold(self, listing_id: str, order_id: str) -> None: ...

    def mark_sold(self, listing_id: str, order_id: str) -> None: ...


class LocalListingClient:
    """ListingClient backed by an in-process ListingService"""

    def __init__(self, listings: ListingService) -> None:
        self.listings = listings

    def get_by_id(self, listing_id: str) -> Listing | None:
        return self.listings.find(listing_id)

    def hold_for_order(self, listing_id: str, order_id: str) -> datetime | None:
        return self.listings.hold_for_order(listing_id, order_id).held_until

    def release_hold(self, listing_id: str, order_id: str) -> None:
        self.listings.release_hold(listing_id, order_id)

    def mark_sold(self, listing_id: str, order_id: str) -> None:
        self.listings.mark_sold(listing_id, order_id)
