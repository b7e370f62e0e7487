"""
Listing context - appraised books for resale
"""

from bookbuyback.listing.models import ListedBook, Listing, ListingStatus
from bookbuyback.listing.pricing import PricingService
from bookbuyback.listing.repositories import (
    InMemoryListingRepository,
    SearchCriteria,
    SearchResult,
    SortOption,
)
from bookbuyback.listing.services import ListingService

__all__ = [
    "ListedBook",
    "Listing",
    "ListingStatus",
    "PricingService",
    "InMemoryListingRepository",
    "SearchCriteria",
    "SearchResult",
    "SortOption",
    "ListingService",
]
