"""
Appraisal Service - appraisal commands

Each command loads the appraisal, applies one transition, saves the
result and only then publishes. A failed transition raises before the
save, so nothing is persisted or published.
"""

from bookbuyback.appraisal.events import APPRAISAL_COMPLETED, AppraisalCompleted
from bookbuyback.appraisal.lookup import BookInfo, BookLookupService
from bookbuyback.appraisal.models import Appraisal, AppraisedBook, Condition
from bookbuyback.appraisal.repositories import AppraisalRepository
from bookbuyback.kernel.bus import EventBus
from bookbuyback.kernel.errors import AppraisalNotFound, BookNotFound
from bookbuyback.kernel.events import create_event
from bookbuyback.kernel.logging import LogOperation, get_logger
from bookbuyback.kernel.metrics import track_command_duration
from bookbuyback.kernel.retry import retry_on_transient_error
from bookbuyback.kernel.settings import BuybackPolicy
from bookbuyback.kernel.time import RealTimeProvider, TimeProvider

logger = get_logger(__name__)


class AppraisalService:
    """Commands for appraising the contents of a purchase request"""

    def __init__(
        self,
        repository: AppraisalRepository,
        bus: EventBus,
        book_lookup: BookLookupService,
        time_provider: TimeProvider | None = None,
        policy: BuybackPolicy | None = None,
    ) -> None:
        self.repository = repository
        self.bus = bus
        self.book_lookup = book_lookup
        self.time_provider = time_provider or RealTimeProvider()
        self.policy = policy or BuybackPolicy()

    def get(self, appraisal_id: str) -> Appraisal:
        """
        Raises:
            AppraisalNotFound: If no appraisal has this id
        """
        appraisal = self.repository.find_by_id(appraisal_id)
        if appraisal is None:
            raise AppraisalNotFound(appraisal_id)
        return appraisal

    def find(self, appraisal_id: str) -> Appraisal | None:
        return self.repository.find_by_id(appraisal_id)

    @track_command_duration("create_appraisal")
    def create(self, purchase_request_id: str) -> Appraisal:
        appraisal = Appraisal.create(purchase_request_id, now=self.time_provider.now())
        self.repository.save(appraisal)
        logger.info(
            "Appraisal created",
            appraisal_id=appraisal.appraisal_id,
            purchase_request_id=purchase_request_id,
        )
        return appraisal

    @retry_on_transient_error()
    def _lookup(self, isbn: str) -> BookInfo | None:
        return self.book_lookup.lookup_by_isbn(isbn)

    @track_command_duration("add_book")
    def add_book(self, appraisal_id: str, isbn: str, condition: Condition | str) -> Appraisal:
        """
        Look the book up and record it on the appraisal

        Raises:
            AppraisalNotFound: If the appraisal does not exist
            BookNotFound: If the catalogue does not know the ISBN
            InvalidTransition: If the appraisal is already completed
        """
        appraisal = self.get(appraisal_id)
        info = self._lookup(isbn)
        if info is None:
            raise BookNotFound(isbn)

        with LogOperation(logger, "add_book", appraisal_id=appraisal_id, isbn=isbn):
            book = AppraisedBook.create(
                isbn=info.isbn,
                title=info.title,
                author=info.author,
                condition=condition,
                base_price=info.base_price,
                multipliers=self.policy.appraisal_condition_multipliers,
            )
            appraisal = appraisal.add_book(book, now=self.time_provider.now())
            self.repository.save(appraisal)
        return appraisal

    @track_command_duration("remove_book")
    def remove_book(self, appraisal_id: str, isbn: str) -> Appraisal:
        appraisal = self.get(appraisal_id).remove_book(isbn, now=self.time_provider.now())
        self.repository.save(appraisal)
        logger.info("Book removed from appraisal", appraisal_id=appraisal_id, isbn=isbn)
        return appraisal

    @track_command_duration("complete_appraisal")
    def complete(self, appraisal_id: str, actor_id: str | None = None) -> Appraisal:
        """
        Complete the appraisal and publish appraisal.completed

        Raises:
            AppraisalNotFound: If the appraisal does not exist
            InvariantViolation: If no books were recorded
            InvalidTransition: If already completed
        """
        appraisal = self.get(appraisal_id)

        with LogOperation(logger, "complete_appraisal", appraisal_id=appraisal_id):
            appraisal = appraisal.complete(now=self.time_provider.now())
            self.repository.save(appraisal)

        self.bus.publish(
            create_event(
                event_type=APPRAISAL_COMPLETED,
                aggregate_id=appraisal.appraisal_id,
                aggregate_type="appraisal",
                occurred_at=appraisal.completed_at,
                actor_id=actor_id,
                payload=AppraisalCompleted(
                    appraisal_id=appraisal.appraisal_id,
                    purchase_request_id=appraisal.purchase_request_id,
                    total_offer=appraisal.total_offer,
                    book_count=appraisal.book_count,
                ),
            )
        )
        return appraisal
