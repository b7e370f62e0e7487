"""
Tests for purchase requests - a seller's box from draft to payout

Lifecycle under test:
    draft -> submitted -> shipped -> received
    received -> accepted | awaiting_decision
    awaiting_decision -> accepted | rejected
    accepted -> completed

Fun fact: the estimate is deliberately rounded to whole units - sellers
remember "11 to 20", not "10.50 to 19.50".
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from bookbuyback.intake.carrier import MockCarrierAdapter, ShippingLabel
from bookbuyback.intake.estimation import EstimationService
from bookbuyback.intake.events import (
    PURCHASE_REQUEST_ACCEPTED,
    PURCHASE_REQUEST_EVENT_TYPES,
    PURCHASE_REQUEST_REJECTED,
    PURCHASE_REQUEST_SUBMITTED,
)
from bookbuyback.intake.models import (
    PURCHASE_REQUEST_TRANSITIONS,
    BoxDescription,
    Customer,
    Estimate,
    PaymentMethod,
    PurchaseRequest,
    PurchaseRequestStatus,
)
from bookbuyback.intake.repositories import InMemoryPurchaseRequestRepository
from bookbuyback.intake.services import PurchaseRequestService
from bookbuyback.kernel.errors import (
    InvalidTransition,
    PurchaseRequestNotFound,
    ValidationError,
)
from bookbuyback.kernel.event_log import EventLog
from bookbuyback.kernel.retry import TransientCollaboratorError
from tests.helpers import make_customer

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


def received_request(estimate: Estimate | None = None) -> PurchaseRequest:
    request = PurchaseRequest.create(
        make_customer(), BoxDescription.create(10, "fiction", "good"), now=NOW
    )
    request = request.submit(
        estimate or Estimate.create(11, 20), "MOCK1", "https://labels/MOCK1.pdf", now=NOW
    )
    return request.mark_shipped(now=NOW).mark_received(now=NOW)


# =============================================================================
# Value objects
# =============================================================================


def test_box_description_bounds() -> None:
    """Test quantity must be between 1 and 100"""
    assert BoxDescription.create(100, "textbooks", "mixed").quantity == 100
    with pytest.raises(ValidationError, match="Quantity must be at least 1"):
        BoxDescription.create(0, "fiction", "good")
    with pytest.raises(ValidationError, match="Quantity cannot exceed 100"):
        BoxDescription.create(101, "fiction", "good")
    with pytest.raises(ValidationError, match="Invalid box description"):
        BoxDescription.create(5, "poetry", "good")


def test_estimate_range() -> None:
    """Test the range is inclusive and ordered"""
    estimate = Estimate.create(11, 20)

    assert estimate.is_within_range("11.00")
    assert estimate.is_within_range(20)
    assert not estimate.is_within_range("20.01")
    with pytest.raises(ValidationError, match="Low estimate cannot exceed high estimate"):
        Estimate.create(21, 20)


def test_customer_requires_email_and_name() -> None:
    """Test customer validation"""
    address = make_customer().address
    with pytest.raises(ValidationError, match="valid email"):
        Customer.create(email="nope", name="A", phone="1", address=address)
    with pytest.raises(ValidationError, match="Customer name is required"):
        Customer.create(email="a@example.com", name=" ", phone="1", address=address)


# =============================================================================
# Estimation
# =============================================================================


def test_estimate_for_ten_good_fiction_books() -> None:
    """Test base 15.00 gives the range 11 to 20"""
    service = EstimationService()
    box = BoxDescription.create(10, "fiction", "good")

    assert service.base_value(box) == Decimal("15.00")
    estimate = service.calculate_estimate(box)
    assert estimate.low == Decimal("11")
    assert estimate.high == Decimal("20")


@pytest.mark.parametrize(
    "category,condition,low,high",
    [
        ("textbooks", "excellent", 39, 73),
        ("children", "fair", 4, 8),
        ("non-fiction", "mixed", 9, 16),
    ],
)
def test_estimate_multipliers(category: str, condition: str, low: int, high: int) -> None:
    """Test category and condition multipliers compose"""
    estimate = EstimationService().calculate_estimate(BoxDescription.create(10, category, condition))

    assert (estimate.low, estimate.high) == (Decimal(low), Decimal(high))


# =============================================================================
# Entity transitions
# =============================================================================


def test_offer_inside_estimate_is_auto_accepted() -> None:
    """Test an in-range offer skips the seller's decision"""
    request = received_request().set_offer("18.00", now=NOW)

    assert request.status == PurchaseRequestStatus.ACCEPTED
    assert request.offer.decision == "accept"
    assert request.offer.decided_at == NOW


def test_offer_outside_estimate_awaits_decision() -> None:
    """Test an out-of-range offer waits for the seller"""
    request = received_request().set_offer("6.00", now=NOW)

    assert request.status == PurchaseRequestStatus.AWAITING_DECISION
    assert request.offer.decision is None


def test_reject_records_return_label() -> None:
    """Test rejection stores the return tracking number"""
    request = received_request().set_offer("6.00").reject("RETMOCK1", now=NOW)

    assert request.status == PurchaseRequestStatus.REJECTED
    assert request.return_tracking_number == "RETMOCK1"
    assert request.offer.decision == "reject"


def test_store_credit_adds_bonus() -> None:
    """Test store credit pays the offer plus the bonus"""
    request = received_request().set_offer("18.00").process_payment("store_credit", now=NOW)

    assert request.status == PurchaseRequestStatus.COMPLETED
    assert request.payout.amount == Decimal("19.80")
    assert request.payout.method == PaymentMethod.STORE_CREDIT


def test_unknown_payout_method() -> None:
    """Test an unknown payout method is refused"""
    with pytest.raises(ValidationError, match="Unknown payment method: cash"):
        received_request().set_offer("18.00").process_payment("cash")


def test_every_edge_is_reachable() -> None:
    """Test the transition table matches the documented lifecycle"""
    S = PurchaseRequestStatus
    expected = {
        (S.DRAFT, S.SUBMITTED),
        (S.SUBMITTED, S.SHIPPED),
        (S.SHIPPED, S.RECEIVED),
        (S.RECEIVED, S.ACCEPTED),
        (S.RECEIVED, S.AWAITING_DECISION),
        (S.AWAITING_DECISION, S.ACCEPTED),
        (S.AWAITING_DECISION, S.REJECTED),
        (S.ACCEPTED, S.COMPLETED),
    }
    for source in S:
        for target in S:
            assert PURCHASE_REQUEST_TRANSITIONS.can_transition(source, target) == (
                (source, target) in expected
            )


def test_transitions_out_of_order_fail() -> None:
    """Test steps cannot be skipped"""
    request = PurchaseRequest.create(make_customer(), BoxDescription.create(1, "fiction", "good"))

    with pytest.raises(InvalidTransition, match="Cannot mark received: current status is draft"):
        request.mark_received()
    with pytest.raises(InvalidTransition, match="Cannot set offer: current status is draft"):
        request.set_offer("1.00")
    with pytest.raises(InvalidTransition, match="Cannot process payment"):
        request.process_payment("ach")


# =============================================================================
# Service
# =============================================================================


@pytest.fixture
def events(bus) -> EventLog:
    log = EventLog()
    log.attach(bus, PURCHASE_REQUEST_EVENT_TYPES)
    return log


def test_submit_quotes_estimate_and_issues_label(
    purchase_request_service: PurchaseRequestService, events: EventLog
) -> None:
    """Test submit attaches an estimate and the inbound label"""
    request = purchase_request_service.create(
        make_customer(), quantity=10, category="fiction", condition="good"
    )

    request = purchase_request_service.submit(request.request_id)

    assert request.status == PurchaseRequestStatus.SUBMITTED
    assert (request.estimate.low, request.estimate.high) == (Decimal("11"), Decimal("20"))
    assert request.shipment.tracking_number.startswith("MOCK")
    assert request.shipment.carrier == "ups"
    [event] = events.events(event_type=PURCHASE_REQUEST_SUBMITTED)
    assert event.payload["customer_id"] == "seller@example.com"


def test_submit_twice_fails(purchase_request_service: PurchaseRequestService) -> None:
    """Test a submitted request cannot be submitted again"""
    request = purchase_request_service.create(
        make_customer(), quantity=10, category="fiction", condition="good"
    )
    purchase_request_service.submit(request.request_id)

    with pytest.raises(InvalidTransition, match="Cannot submit: current status is submitted"):
        purchase_request_service.submit(request.request_id)


def test_receive_skips_missing_pickup_scan(purchase_request_service: PurchaseRequestService) -> None:
    """Test a box received straight from submitted passes through shipped"""
    request = purchase_request_service.create(
        make_customer(), quantity=3, category="children", condition="fair"
    )
    purchase_request_service.submit(request.request_id)

    request = purchase_request_service.mark_received(request.request_id)

    assert request.status == PurchaseRequestStatus.RECEIVED
    assert request.shipment.shipped_at is not None
    assert request.shipment.delivered_at is not None


def test_accept_after_decision_pays_seller(
    purchase_request_service: PurchaseRequestService, events: EventLog
) -> None:
    """Test accepting an out-of-range offer pays it out"""
    request = purchase_request_service.create(
        make_customer(), quantity=10, category="fiction", condition="good"
    )
    purchase_request_service.submit(request.request_id)
    purchase_request_service.mark_received(request.request_id)
    purchase_request_service.set_offer(request.request_id, "6.00")

    request = purchase_request_service.accept_offer(request.request_id, "ach")

    assert request.status == PurchaseRequestStatus.COMPLETED
    assert request.payout.amount == Decimal("6.00")
    [event] = events.events(event_type=PURCHASE_REQUEST_ACCEPTED)
    assert event.payload == {
        "request_id": request.request_id,
        "amount": "6.00",
        "payment_method": "ach",
    }


def test_reject_schedules_return(
    purchase_request_service: PurchaseRequestService, events: EventLog
) -> None:
    """Test rejection books a return label"""
    request = purchase_request_service.create(
        make_customer(), quantity=10, category="fiction", condition="good"
    )
    request = purchase_request_service.submit(request.request_id)
    purchase_request_service.mark_received(request.request_id)
    purchase_request_service.set_offer(request.request_id, "6.00")

    rejected = purchase_request_service.reject_offer(request.request_id)

    assert rejected.return_tracking_number == f"RET{request.shipment.tracking_number}"
    assert len(events.events(event_type=PURCHASE_REQUEST_REJECTED)) == 1


def test_reject_auto_accepted_offer_fails(purchase_request_service: PurchaseRequestService) -> None:
    """Test an auto-accepted offer can no longer be rejected"""
    request = purchase_request_service.create(
        make_customer(), quantity=10, category="fiction", condition="good"
    )
    purchase_request_service.submit(request.request_id)
    purchase_request_service.mark_received(request.request_id)
    purchase_request_service.set_offer(request.request_id, "15.00")

    with pytest.raises(InvalidTransition, match="Cannot reject: current status is accepted"):
        purchase_request_service.reject_offer(request.request_id)


def test_queries(purchase_request_service: PurchaseRequestService) -> None:
    """Test lookups by seller and status"""
    request = purchase_request_service.create(
        make_customer("Seller@Example.com"), quantity=1, category="fiction", condition="good"
    )

    assert purchase_request_service.list_for_customer("seller@example.com") == [request]
    assert purchase_request_service.list_by_status(PurchaseRequestStatus.DRAFT) == [request]
    with pytest.raises(PurchaseRequestNotFound):
        purchase_request_service.get("pr-missing")


class FlakyCarrier(MockCarrierAdapter):
    """Fails the first label request with a transient error"""

    def __init__(self, time_provider) -> None:
        super().__init__(time_provider)
        self.calls = 0

    def generate_label(self, address) -> ShippingLabel:
        self.calls += 1
        if self.calls == 1:
            raise TransientCollaboratorError("carrier timeout")
        return super().generate_label(address)


def test_transient_carrier_failure_is_retried(bus, test_time, policy) -> None:
    """Test label generation retries a transient failure"""
    carrier = FlakyCarrier(test_time)
    service = PurchaseRequestService(
        InMemoryPurchaseRequestRepository(), bus, carrier, time_provider=test_time, policy=policy
    )
    request = service.create(make_customer(), quantity=1, category="fiction", condition="good")

    request = service.submit(request.request_id)

    assert carrier.calls == 2
    assert request.status == PurchaseRequestStatus.SUBMITTED
