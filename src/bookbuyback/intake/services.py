"""
Purchase Request Service - intake commands

Handles the seller side of a buyback: create, submit (estimate + label),
receive the box, take the appraised offer, and pay out or send the box
back. Listens to appraisal.completed to set the offer.
"""

from decimal import Decimal

from pydantic import BaseModel

from bookbuyback.intake.carrier import CarrierAdapter, ShippingLabel
from bookbuyback.intake.estimation import EstimationService
from bookbuyback.intake.events import (
    PURCHASE_REQUEST_ACCEPTED,
    PURCHASE_REQUEST_RECEIVED,
    PURCHASE_REQUEST_REJECTED,
    PURCHASE_REQUEST_SUBMITTED,
    PurchaseRequestAccepted,
    PurchaseRequestReceived,
    PurchaseRequestRejected,
    PurchaseRequestSubmitted,
)
from bookbuyback.intake.models import (
    PURCHASE_REQUEST_TRANSITIONS,
    BookCategory,
    BoxCondition,
    BoxDescription,
    Customer,
    PaymentMethod,
    PurchaseRequest,
    PurchaseRequestStatus,
)
from bookbuyback.intake.repositories import PurchaseRequestRepository
from bookbuyback.kernel.bus import EventBus
from bookbuyback.kernel.errors import InvalidTransition, PurchaseRequestNotFound
from bookbuyback.kernel.events import DomainEvent, create_event
from bookbuyback.kernel.logging import LogOperation, get_logger
from bookbuyback.kernel.metrics import track_command_duration
from bookbuyback.kernel.retry import retry_on_transient_error
from bookbuyback.kernel.settings import BuybackPolicy
from bookbuyback.kernel.time import RealTimeProvider, TimeProvider

logger = get_logger(__name__)


class PurchaseRequestService:
    """Commands for the seller's purchase request"""

    def __init__(
        self,
        repository: PurchaseRequestRepository,
        bus: EventBus,
        carrier: CarrierAdapter,
        estimation: EstimationService | None = None,
        time_provider: TimeProvider | None = None,
        policy: BuybackPolicy | None = None,
    ) -> None:
        self.repository = repository
        self.bus = bus
        self.carrier = carrier
        self.policy = policy or BuybackPolicy()
        self.estimation = estimation or EstimationService(self.policy)
        self.time_provider = time_provider or RealTimeProvider()

    # Queries

    def get(self, request_id: str) -> PurchaseRequest:
        """
        Raises:
            PurchaseRequestNotFound: If no request has this id
        """
        request = self.repository.find_by_id(request_id)
        if request is None:
            raise PurchaseRequestNotFound(request_id)
        return request

    def list_for_customer(self, customer_id: str) -> list[PurchaseRequest]:
        return self.repository.find_by_customer_id(customer_id)

    def list_by_status(self, status: PurchaseRequestStatus) -> list[PurchaseRequest]:
        return self.repository.find_by_status(status)

    # Collaborators

    @retry_on_transient_error()
    def _generate_label(self, request: PurchaseRequest) -> ShippingLabel:
        return self.carrier.generate_label(request.customer.address)

    @retry_on_transient_error()
    def _schedule_return(self, tracking_number: str) -> ShippingLabel:
        return self.carrier.schedule_return(tracking_number)

    # Commands

    @track_command_duration("create_purchase_request")
    def create(
        self,
        customer: Customer,
        *,
        quantity: int,
        category: BookCategory | str,
        condition: BoxCondition | str,
        pickup_date: str | None = None,
        pickup_time_slot: str | None = None,
        coupon_code: str | None = None,
    ) -> PurchaseRequest:
        box = BoxDescription.create(quantity, category, condition)
        request = PurchaseRequest.create(
            customer,
            box,
            pickup_date=pickup_date,
            pickup_time_slot=pickup_time_slot,
            coupon_code=coupon_code,
            now=self.time_provider.now(),
        )
        self.repository.save(request)
        logger.info("Purchase request created", request_id=request.request_id)
        return request

    @track_command_duration("submit_purchase_request")
    def submit(self, request_id: str) -> PurchaseRequest:
        """
        Quote an estimate, issue the inbound label and submit

        Raises:
            PurchaseRequestNotFound: If the request does not exist
            InvalidTransition: Unless the request is a draft
        """
        request = self.get(request_id)
        # No label is issued for a request that cannot be submitted
        self._require(request, PurchaseRequestStatus.SUBMITTED, "submit")

        with LogOperation(
            logger, "submit_purchase_request", request_id=request_id, customer_id=request.customer.email
        ):
            estimate = self.estimation.calculate_estimate(request.box_description)
            label = self._generate_label(request)
            request = request.submit(
                estimate, label.tracking_number, label.label_url, now=self.time_provider.now()
            )
            self.repository.save(request)

        self._publish(
            PURCHASE_REQUEST_SUBMITTED,
            request,
            PurchaseRequestSubmitted(
                request_id=request.request_id,
                customer_id=request.customer.email,
                tracking_number=label.tracking_number,
            ),
        )
        return request

    @track_command_duration("mark_purchase_request_shipped")
    def mark_shipped(self, request_id: str) -> PurchaseRequest:
        request = self.get(request_id).mark_shipped(now=self.time_provider.now())
        self.repository.save(request)
        logger.info("Purchase request shipped", request_id=request_id)
        return request

    @track_command_duration("mark_purchase_request_received")
    def mark_received(self, request_id: str) -> PurchaseRequest:
        """
        Record the box arriving at the warehouse

        A box that arrives before the carrier reported pickup is marked
        shipped first.
        """
        request = self.get(request_id)
        now = self.time_provider.now()
        if request.status == PurchaseRequestStatus.SUBMITTED:
            request = request.mark_shipped(now=now)
        request = request.mark_received(now=now)
        self.repository.save(request)

        self._publish(
            PURCHASE_REQUEST_RECEIVED,
            request,
            PurchaseRequestReceived(
                request_id=request.request_id,
                tracking_number=request.shipment.tracking_number,
            ),
        )
        return request

    @track_command_duration("set_purchase_request_offer")
    def set_offer(self, request_id: str, amount: Decimal | str | int) -> PurchaseRequest:
        request = self.get(request_id).set_offer(amount, now=self.time_provider.now())
        self.repository.save(request)
        logger.info(
            "Offer set",
            request_id=request_id,
            status=request.status.value,
            auto_accepted=request.status == PurchaseRequestStatus.ACCEPTED,
        )
        return request

    def handle_appraisal_completed(self, event: DomainEvent) -> PurchaseRequest:
        """Subscriber for appraisal.completed: the total offer becomes the request's offer"""
        return self.set_offer(
            event.payload["purchase_request_id"],
            Decimal(str(event.payload["total_offer"])),
        )

    @track_command_duration("accept_offer")
    def accept_offer(self, request_id: str, payment_method: PaymentMethod | str) -> PurchaseRequest:
        """
        Accept (if still pending) and pay the seller

        Raises:
            InvalidTransition: If there is no offer to accept
        """
        request = self.get(request_id)
        now = self.time_provider.now()
        if request.status == PurchaseRequestStatus.AWAITING_DECISION:
            request = request.accept(now=now)
        request = request.process_payment(
            payment_method, store_credit_bonus=self.policy.store_credit_bonus, now=now
        )
        self.repository.save(request)

        self._publish(
            PURCHASE_REQUEST_ACCEPTED,
            request,
            PurchaseRequestAccepted(
                request_id=request.request_id,
                amount=request.payout.amount,
                payment_method=request.payout.method,
            ),
        )
        logger.info(
            "Seller paid",
            request_id=request_id,
            payment_method=request.payout.method.value,
            amount=str(request.payout.amount),
        )
        return request

    @track_command_duration("reject_offer")
    def reject_offer(self, request_id: str) -> PurchaseRequest:
        """Decline the offer and schedule the box's return"""
        request = self.get(request_id)
        self._require(request, PurchaseRequestStatus.REJECTED, "reject")

        return_label = self._schedule_return(request.shipment.tracking_number)
        request = request.reject(
            return_tracking_number=return_label.tracking_number, now=self.time_provider.now()
        )
        self.repository.save(request)

        self._publish(
            PURCHASE_REQUEST_REJECTED,
            request,
            PurchaseRequestRejected(
                request_id=request.request_id,
                tracking_number=request.shipment.tracking_number,
            ),
        )
        return request

    @staticmethod
    def _require(request: PurchaseRequest, target: PurchaseRequestStatus, action: str) -> None:
        if not PURCHASE_REQUEST_TRANSITIONS.can_transition(request.status, target):
            raise InvalidTransition("purchase_request", action, request.status.value)

    def _publish(self, event_type: str, request: PurchaseRequest, payload: BaseModel) -> None:
        self.bus.publish(
            create_event(
                event_type=event_type,
                aggregate_id=request.request_id,
                aggregate_type="purchase_request",
                occurred_at=request.updated_at,
                payload=payload,
            )
        )
