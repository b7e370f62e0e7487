"""
Appraisal Domain Models - books examined from a purchase request

An appraiser opens an appraisal for a received box, records each book
with its condition, and completes the appraisal. Completion fixes the
offer that is sent back to the purchase request.

Lifecycle:
    pending -> in_progress   (first book added)
    in_progress -> completed (complete; needs at least one book)

Fun fact: the offer is computed per book and rounded per book, so the
total is always the sum of what the seller sees line by line.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Mapping

from pydantic import BaseModel, Field

from bookbuyback.kernel.errors import InvariantViolation, ValidationError
from bookbuyback.kernel.ids import generate_id
from bookbuyback.kernel.lifecycle import TransitionTable
from bookbuyback.kernel.money import round2, to_decimal
from bookbuyback.kernel.time import resolve_now


class Condition(str, Enum):
    """Physical condition of an appraised book"""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


CONDITION_MULTIPLIERS: dict[Condition, Decimal] = {
    Condition.EXCELLENT: Decimal("0.8"),
    Condition.GOOD: Decimal("0.6"),
    Condition.FAIR: Decimal("0.4"),
    Condition.POOR: Decimal("0.1"),
}


class AppraisalStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


APPRAISAL_TRANSITIONS = TransitionTable(
    "appraisal",
    {
        AppraisalStatus.PENDING: {AppraisalStatus.IN_PROGRESS},
        AppraisalStatus.IN_PROGRESS: {AppraisalStatus.COMPLETED},
        AppraisalStatus.COMPLETED: set(),
    },
)

_EDITABLE = {AppraisalStatus.PENDING, AppraisalStatus.IN_PROGRESS}


class AppraisedBook(BaseModel):
    """
    One book as recorded by the appraiser

    `offer_price` is fixed when the book is recorded:
    round2(base_price * condition multiplier).
    """

    isbn: str = Field(..., min_length=1)
    title: str
    author: str
    condition: Condition
    base_price: Decimal = Field(..., ge=0)
    offer_price: Decimal = Field(..., ge=0)

    model_config = {"frozen": True}

    @classmethod
    def create(
        cls,
        *,
        isbn: str,
        title: str,
        author: str,
        condition: Condition | str,
        base_price: Decimal | int | str,
        multipliers: Mapping[str, Decimal] | None = None,
    ) -> "AppraisedBook":
        """
        Record a book and price it

        Args:
            multipliers: Condition value -> fraction of base price offered;
                defaults to CONDITION_MULTIPLIERS

        Raises:
            ValidationError: For a blank ISBN or negative base price
        """
        isbn = (isbn or "").strip()
        if not isbn:
            raise ValidationError("ISBN is required")
        condition = Condition(condition)
        base = to_decimal(base_price)
        if base < 0:
            raise ValidationError("Base price cannot be negative")
        table = multipliers or {c.value: m for c, m in CONDITION_MULTIPLIERS.items()}
        multiplier = to_decimal(table[condition.value])
        return cls(
            isbn=isbn,
            title=title,
            author=author,
            condition=condition,
            base_price=base,
            offer_price=round2(base * multiplier),
        )


class Appraisal(BaseModel):
    """
    Appraisal of the books received for one purchase request

    Frozen: every transition returns a new Appraisal.
    """

    appraisal_id: str
    purchase_request_id: str
    status: AppraisalStatus = AppraisalStatus.PENDING
    books: tuple[AppraisedBook, ...] = ()
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None

    model_config = {"frozen": True}

    @classmethod
    def create(
        cls,
        purchase_request_id: str,
        appraisal_id: str | None = None,
        now: datetime | None = None,
    ) -> "Appraisal":
        if not purchase_request_id:
            raise ValidationError("Purchase request id is required")
        ts = resolve_now(now)
        return cls(
            appraisal_id=appraisal_id or generate_id("appr"),
            purchase_request_id=purchase_request_id,
            created_at=ts,
            updated_at=ts,
        )

    @property
    def total_offer(self) -> Decimal:
        """Sum of the per-book offer prices"""
        return round2(sum((b.offer_price for b in self.books), Decimal("0")))

    @property
    def book_count(self) -> int:
        return len(self.books)

    def add_book(self, book: AppraisedBook, now: datetime | None = None) -> "Appraisal":
        """
        Record a book; the first book starts the appraisal

        Raises:
            InvalidTransition: Once the appraisal is completed
        """
        APPRAISAL_TRANSITIONS.require_one_of(self.status, _EDITABLE, "add book")
        status = self.status
        if status == AppraisalStatus.PENDING:
            status = AppraisalStatus.IN_PROGRESS
        return self.model_copy(
            update={
                "books": self.books + (book,),
                "status": status,
                "updated_at": resolve_now(now),
            }
        )

    def remove_book(self, isbn: str, now: datetime | None = None) -> "Appraisal":
        """
        Drop every recorded copy of `isbn`; the status does not move back

        Raises:
            InvalidTransition: Once the appraisal is completed
        """
        APPRAISAL_TRANSITIONS.require_one_of(self.status, _EDITABLE, "remove book")
        return self.model_copy(
            update={
                "books": tuple(b for b in self.books if b.isbn != isbn),
                "updated_at": resolve_now(now),
            }
        )

    def complete(self, now: datetime | None = None) -> "Appraisal":
        """
        Fix the offer

        Raises:
            InvariantViolation: If no books were recorded
            InvalidTransition: If already completed
        """
        if self.status != AppraisalStatus.COMPLETED and not self.books:
            raise InvariantViolation("Cannot complete appraisal with no books")
        APPRAISAL_TRANSITIONS.require(self.status, AppraisalStatus.COMPLETED, "complete")
        ts = resolve_now(now)
        return self.model_copy(
            update={
                "status": AppraisalStatus.COMPLETED,
                "completed_at": ts,
                "updated_at": ts,
            }
        )
