"""
Test Helper Functions - Builders

Reusable builders for customers, addresses and catalogue listings so the
tests read as the scenario they check rather than as setup.
"""

from decimal import Decimal

from bookbuyback.appraisal.models import AppraisedBook, Condition
from bookbuyback.fulfillment.models import Address
from bookbuyback.intake.models import Customer, CustomerAddress
from bookbuyback.listing.models import Listing
from bookbuyback.listing.services import ListingService


def make_customer(email: str = "seller@example.com") -> Customer:
    return Customer.create(
        email=email,
        name="Hanako Sato",
        phone="090-0000-0000",
        address=CustomerAddress(
            postal_code="150-0001",
            prefecture="Tokyo",
            city="Shibuya",
            street="1-2-3 Jingumae",
        ),
    )


def make_address(name: str = "Taro Yamada") -> Address:
    return Address.create(
        name=name,
        street1="4-5-6 Umeda",
        city="Osaka",
        state="Osaka",
        postal_code="530-0001",
    )


def make_book(
    isbn: str = "978-0-13-468599-1",
    title: str = "Clean Code",
    condition: Condition | str = Condition.GOOD,
    base_price: str = "10.00",
) -> AppraisedBook:
    return AppraisedBook.create(
        isbn=isbn,
        title=title,
        author="Robert C. Martin",
        condition=condition,
        base_price=Decimal(base_price),
    )


def list_books(
    listings: ListingService,
    *books: AppraisedBook,
    appraisal_id: str = "appr-1",
    purchase_request_id: str = "pr-1",
) -> list[Listing]:
    """
    Create listings the way a completed appraisal does

    Example:
        >>> [listing] = list_books(listing_service, make_book())
        >>> listing.listing_price.amount
        Decimal('9.00')
    """
    return listings.handle_appraisal_completed(
        appraisal_id, purchase_request_id, books or (make_book(),)
    )
