"""
Listing repository and catalogue search
"""

import math
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Generic, Protocol, TypeVar

from pydantic import BaseModel, Field

from bookbuyback.appraisal.models import Condition
from bookbuyback.kernel.repository import InMemoryRepository
from bookbuyback.listing.models import Listing, ListingStatus

T = TypeVar("T")


class SortOption(str, Enum):
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    DATE_NEWEST = "date_newest"
    DATE_OLDEST = "date_oldest"
    TITLE = "title"


class SearchCriteria(BaseModel):
    """Storefront search over available listings"""

    q: str | None = None
    conditions: list[Condition] = Field(default_factory=list)
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    sort: SortOption | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class SearchResult(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int


class ListingRepository(Protocol):
    def save(self, listing: Listing) -> None: ...

    def find_by_id(self, listing_id: str) -> Listing | None: ...

    def find_by_ids(self, listing_ids: list[str] | set[str]) -> list[Listing]: ...

    def find_by_isbn(self, isbn: str) -> Listing | None: ...

    def find_by_status(self, status: ListingStatus) -> list[Listing]: ...

    def find_by_appraisal_id(self, appraisal_id: str) -> list[Listing]: ...

    def find_expired_holds(self, now: datetime) -> list[Listing]: ...

    def search(self, criteria: SearchCriteria) -> SearchResult[Listing]: ...

    def find_all(self) -> list[Listing]: ...


_SORT_KEYS = {
    SortOption.PRICE_ASC: (lambda l: l.listing_price.amount, False),
    SortOption.PRICE_DESC: (lambda l: l.listing_price.amount, True),
    SortOption.DATE_NEWEST: (lambda l: l.created_at, True),
    SortOption.DATE_OLDEST: (lambda l: l.created_at, False),
    SortOption.TITLE: (lambda l: l.book.title.lower(), False),
}


class InMemoryListingRepository(InMemoryRepository[Listing]):
    id_attribute = "listing_id"

    def find_by_isbn(self, isbn: str) -> Listing | None:
        """First listing of `isbn` that is still for sale (available or held)"""
        matches = self._select(
            lambda l: l.book.isbn == isbn
            and l.status in (ListingStatus.AVAILABLE, ListingStatus.HELD)
        )
        return matches[0] if matches else None

    def find_by_status(self, status: ListingStatus) -> list[Listing]:
        return self._select(lambda l: l.status == status)

    def find_by_appraisal_id(self, appraisal_id: str) -> list[Listing]:
        return self._select(lambda l: l.source_appraisal_id == appraisal_id)

    def find_expired_holds(self, now: datetime) -> list[Listing]:
        return self._select(lambda l: l.is_hold_expired(now))

    def search(self, criteria: SearchCriteria) -> SearchResult[Listing]:
        results = self.find_by_status(ListingStatus.AVAILABLE)

        if criteria.q:
            query = criteria.q.lower()
            results = [
                l
                for l in results
                if query in l.book.title.lower()
                or query in l.book.author.lower()
                or query in l.book.isbn.lower()
            ]
        if criteria.conditions:
            results = [l for l in results if l.book.condition in criteria.conditions]
        if criteria.min_price is not None:
            results = [l for l in results if l.listing_price.amount >= criteria.min_price]
        if criteria.max_price is not None:
            results = [l for l in results if l.listing_price.amount <= criteria.max_price]
        if criteria.sort is not None:
            key, reverse = _SORT_KEYS[criteria.sort]
            results.sort(key=key, reverse=reverse)

        total = len(results)
        start = (criteria.page - 1) * criteria.page_size
        return SearchResult[Listing](
            items=results[start : start + criteria.page_size],
            total=total,
            page=criteria.page,
            page_size=criteria.page_size,
            total_pages=math.ceil(total / criteria.page_size) if total else 0,
        )
