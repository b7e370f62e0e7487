"""
Listing Service - resale catalogue commands

Creates listings when an appraisal completes, and holds, releases and
sells them on behalf of orders.
"""

from typing import Iterable

from pydantic import BaseModel

from bookbuyback.appraisal.models import AppraisedBook
from bookbuyback.kernel.bus import EventBus
from bookbuyback.kernel.errors import ListingNotFound
from bookbuyback.kernel.events import create_event
from bookbuyback.kernel.logging import LogOperation, get_logger
from bookbuyback.kernel.metrics import track_command_duration
from bookbuyback.kernel.money import Money
from bookbuyback.kernel.settings import BuybackPolicy
from bookbuyback.kernel.time import RealTimeProvider, TimeProvider
from bookbuyback.listing.events import (
    LISTING_CREATED,
    LISTING_HELD,
    LISTING_HOLD_RELEASED,
    LISTING_SOLD,
    LISTING_WITHDRAWN,
    ListingCreated,
    ListingHeld,
    ListingHoldReleased,
    ListingSold,
    ListingWithdrawn,
)
from bookbuyback.listing.models import ListedBook, Listing
from bookbuyback.listing.pricing import PricingService
from bookbuyback.listing.repositories import ListingRepository, SearchCriteria, SearchResult

logger = get_logger(__name__)


class ListingService:
    """Commands on resale listings"""

    def __init__(
        self,
        repository: ListingRepository,
        bus: EventBus,
        pricing: PricingService | None = None,
        time_provider: TimeProvider | None = None,
        policy: BuybackPolicy | None = None,
    ) -> None:
        self.repository = repository
        self.bus = bus
        self.policy = policy or BuybackPolicy()
        self.pricing = pricing or PricingService(self.policy)
        self.time_provider = time_provider or RealTimeProvider()

    # Queries

    def get(self, listing_id: str) -> Listing:
        """
        Raises:
            ListingNotFound: If no listing has this id
        """
        listing = self.repository.find_by_id(listing_id)
        if listing is None:
            raise ListingNotFound(listing_id)
        return listing

    def find(self, listing_id: str) -> Listing | None:
        return self.repository.find_by_id(listing_id)

    def get_by_isbn(self, isbn: str) -> Listing | None:
        return self.repository.find_by_isbn(isbn)

    def search(self, criteria: SearchCriteria | None = None) -> SearchResult[Listing]:
        return self.repository.search(criteria or SearchCriteria())

    # Commands

    @track_command_duration("create_listings")
    def handle_appraisal_completed(
        self,
        appraisal_id: str,
        purchase_request_id: str,
        books: Iterable[AppraisedBook],
    ) -> list[Listing]:
        """
        List every book of a completed appraisal

        Each listing is priced at the book's offer plus the markup for its
        condition, and published as ListingCreated. An appraisal that is
        already listed is left as it is.
        """
        existing = self.repository.find_by_appraisal_id(appraisal_id)
        if existing:
            logger.debug("Appraisal already listed", appraisal_id=appraisal_id)
            return existing
        listings: list[Listing] = []
        with LogOperation(logger, "create_listings", appraisal_id=appraisal_id):
            for book in books:
                offer = Money.of(book.offer_price)
                listing = Listing.create(
                    book=ListedBook(
                        isbn=book.isbn,
                        title=book.title,
                        author=book.author,
                        condition=book.condition,
                    ),
                    source_appraisal_id=appraisal_id,
                    purchase_request_id=purchase_request_id,
                    offer_price=offer,
                    listing_price=self.pricing.calculate_listing_price(offer, book.condition),
                    now=self.time_provider.now(),
                )
                self.repository.save(listing)
                self._publish(
                    LISTING_CREATED,
                    listing,
                    ListingCreated(
                        listing_id=listing.listing_id,
                        isbn=listing.book.isbn,
                        title=listing.book.title,
                        author=listing.book.author,
                        condition=listing.book.condition.value,
                        listing_price=listing.listing_price.amount,
                        source_appraisal_id=appraisal_id,
                    ),
                )
                listings.append(listing)
        return listings

    @track_command_duration("hold_listing")
    def hold_for_order(self, listing_id: str, order_id: str) -> Listing:
        """
        Raises:
            ListingNotFound: If the listing does not exist
            InvalidTransition: Unless the listing is available
        """
        listing = self.get(listing_id).hold(
            order_id, self.policy.listing_hold_minutes, now=self.time_provider.now()
        )
        self.repository.save(listing)
        self._publish(
            LISTING_HELD,
            listing,
            ListingHeld(
                listing_id=listing.listing_id,
                order_id=order_id,
                held_until=listing.held_until,
            ),
        )
        return listing

    @track_command_duration("release_listing")
    def release_hold(self, listing_id: str, order_id: str | None = None) -> Listing:
        """
        Raises:
            HoldNotOwned: If `order_id` is given and another order holds the listing
        """
        return self._release(self.get(listing_id), expired=False, order_id=order_id)

    @track_command_duration("sell_listing")
    def mark_sold(self, listing_id: str, order_id: str | None = None) -> Listing:
        """
        Raises:
            InvalidTransition: Unless the listing is held
            HoldNotOwned: If `order_id` is given and another order holds the listing
        """
        current = self.get(listing_id)
        order_id = order_id or current.held_by_order_id
        listing = current.mark_sold(order_id, now=self.time_provider.now())
        self.repository.save(listing)
        self._publish(
            LISTING_SOLD,
            listing,
            ListingSold(
                listing_id=listing.listing_id,
                order_id=order_id,
                sold_at=listing.sold_at,
                sale_price=listing.listing_price.amount,
            ),
        )
        return listing

    @track_command_duration("withdraw_listing")
    def withdraw(self, listing_id: str, reason: str | None = None) -> Listing:
        listing = self.get(listing_id).withdraw(reason, now=self.time_provider.now())
        self.repository.save(listing)
        self._publish(
            LISTING_WITHDRAWN,
            listing,
            ListingWithdrawn(listing_id=listing.listing_id, reason=reason),
        )
        return listing

    def release_expired_holds(self) -> int:
        """
        Return every listing whose hold has lapsed to available

        Returns:
            Number of holds released
        """
        expired = self.repository.find_expired_holds(self.time_provider.now())
        for listing in expired:
            self._release(listing, expired=True)
        if expired:
            logger.info("Expired listing holds released", count=len(expired))
        return len(expired)

    def _release(self, current: Listing, expired: bool, order_id: str | None = None) -> Listing:
        previous_order_id = current.held_by_order_id
        listing = current.release(order_id, now=self.time_provider.now())
        self.repository.save(listing)
        self._publish(
            LISTING_HOLD_RELEASED,
            listing,
            ListingHoldReleased(
                listing_id=listing.listing_id,
                previous_order_id=previous_order_id,
                expired=expired,
            ),
        )
        return listing

    def _publish(self, event_type: str, listing: Listing, payload: BaseModel) -> None:
        self.bus.publish(
            create_event(
                event_type=event_type,
                aggregate_id=listing.listing_id,
                aggregate_type="listing",
                occurred_at=listing.updated_at,
                payload=payload,
            )
        )
