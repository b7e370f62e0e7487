"""
Book catalogue lookup used while appraising

The real catalogue is an external service; the static implementation
serves a fixed table and is what the demo and tests use.
"""

from decimal import Decimal
from typing import Mapping, Protocol

from pydantic import BaseModel


class BookInfo(BaseModel):
    isbn: str
    title: str
    author: str
    base_price: Decimal

    model_config = {"frozen": True}


class BookLookupService(Protocol):
    def lookup_by_isbn(self, isbn: str) -> BookInfo | None: ...


DEFAULT_CATALOGUE: dict[str, BookInfo] = {
    "978-0-13-468599-1": BookInfo(
        isbn="978-0-13-468599-1",
        title="Clean Code",
        author="Robert C. Martin",
        base_price=Decimal("10.00"),
    ),
    "978-0-201-63361-0": BookInfo(
        isbn="978-0-201-63361-0",
        title="Design Patterns",
        author="Gang of Four",
        base_price=Decimal("15.00"),
    ),
}


class StaticBookLookupService:
    """Catalogue backed by an in-memory table"""

    def __init__(self, catalogue: Mapping[str, BookInfo] | None = None) -> None:
        self._catalogue = dict(DEFAULT_CATALOGUE if catalogue is None else catalogue)

    def add(self, book: BookInfo) -> None:
        self._catalogue[book.isbn] = book

    def lookup_by_isbn(self, isbn: str) -> BookInfo | None:
        return self._catalogue.get(isbn.strip())
