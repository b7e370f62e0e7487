"""
Intake Domain Models - purchase requests from sellers

A seller describes a box of books, receives an estimate and a prepaid
shipping label, sends the box, and is made an offer once the books are
appraised.

Lifecycle:
    draft -> submitted -> shipped -> received
    received -> accepted           (offer inside the estimate)
    received -> awaiting_decision  (offer outside the estimate)
    awaiting_decision -> accepted | rejected
    accepted -> completed          (payout processed)

Fun fact: an offer inside the estimate is accepted on the seller's
behalf. The seller only has to decide when the appraisal surprised them.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from bookbuyback.kernel.errors import ValidationError
from bookbuyback.kernel.ids import generate_id
from bookbuyback.kernel.lifecycle import TransitionTable
from bookbuyback.kernel.money import round2, to_decimal
from bookbuyback.kernel.time import resolve_now

DEFAULT_STORE_CREDIT_BONUS = Decimal("0.10")
INBOUND_CARRIER = "ups"
MAX_BOX_QUANTITY = 100


class BookCategory(str, Enum):
    FICTION = "fiction"
    NON_FICTION = "non-fiction"
    TEXTBOOKS = "textbooks"
    CHILDREN = "children"
    MIXED = "mixed"


class BoxCondition(str, Enum):
    """Overall condition the seller declares for a box"""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    MIXED = "mixed"


class PaymentMethod(str, Enum):
    ACH = "ach"
    STORE_CREDIT = "store_credit"


class PurchaseRequestStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    SHIPPED = "shipped"
    RECEIVED = "received"
    AWAITING_DECISION = "awaiting_decision"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


PURCHASE_REQUEST_TRANSITIONS = TransitionTable(
    "purchase_request",
    {
        PurchaseRequestStatus.DRAFT: {PurchaseRequestStatus.SUBMITTED},
        PurchaseRequestStatus.SUBMITTED: {PurchaseRequestStatus.SHIPPED},
        PurchaseRequestStatus.SHIPPED: {PurchaseRequestStatus.RECEIVED},
        PurchaseRequestStatus.RECEIVED: {
            PurchaseRequestStatus.ACCEPTED,
            PurchaseRequestStatus.AWAITING_DECISION,
        },
        PurchaseRequestStatus.AWAITING_DECISION: {
            PurchaseRequestStatus.ACCEPTED,
            PurchaseRequestStatus.REJECTED,
        },
        PurchaseRequestStatus.ACCEPTED: {PurchaseRequestStatus.COMPLETED},
        PurchaseRequestStatus.REJECTED: set(),
        PurchaseRequestStatus.COMPLETED: set(),
    },
)


# Value objects


class Estimate(BaseModel):
    """Price range quoted before the books are seen"""

    low: Decimal
    high: Decimal
    locked_until: datetime | None = None

    model_config = {"frozen": True}

    @classmethod
    def create(cls, low: object, high: object, locked_until: datetime | None = None) -> "Estimate":
        """
        Raises:
            ValidationError: If low > high
        """
        low_d, high_d = to_decimal(low), to_decimal(high)
        if low_d > high_d:
            raise ValidationError("Low estimate cannot exceed high estimate")
        return cls(low=low_d, high=high_d, locked_until=locked_until)

    def is_within_range(self, amount: object) -> bool:
        """Inclusive on both ends"""
        return self.low <= to_decimal(amount) <= self.high


class BoxDescription(BaseModel):
    quantity: int
    category: BookCategory
    condition: BoxCondition

    model_config = {"frozen": True}

    @classmethod
    def create(
        cls,
        quantity: int,
        category: BookCategory | str,
        condition: BoxCondition | str,
    ) -> "BoxDescription":
        """
        Raises:
            ValidationError: If quantity is outside 1..100 or an enum value is unknown
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        if quantity > MAX_BOX_QUANTITY:
            raise ValidationError(f"Quantity cannot exceed {MAX_BOX_QUANTITY}")
        try:
            return cls(
                quantity=quantity,
                category=BookCategory(category),
                condition=BoxCondition(condition),
            )
        except ValueError as e:
            raise ValidationError(f"Invalid box description: {e}") from e


class CustomerAddress(BaseModel):
    """Japanese postal address the pickup label is issued for"""

    postal_code: str
    prefecture: str
    city: str
    street: str
    building: str | None = None

    model_config = {"frozen": True}


class Customer(BaseModel):
    email: str
    name: str
    phone: str
    address: CustomerAddress

    model_config = {"frozen": True}

    @classmethod
    def create(cls, *, email: str, name: str, phone: str, address: CustomerAddress) -> "Customer":
        email = (email or "").strip()
        if "@" not in email:
            raise ValidationError("A valid email address is required")
        if not (name or "").strip():
            raise ValidationError("Customer name is required")
        return cls(email=email, name=name.strip(), phone=phone, address=address)


class InboundShipment(BaseModel):
    """Parcel the seller sends in, tracked by the label issued on submit"""

    tracking_number: str
    carrier: str
    label_url: str
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None

    model_config = {"frozen": True}


class Offer(BaseModel):
    amount: Decimal
    decided_at: datetime | None = None
    decision: str | None = None  # "accept" | "reject"

    model_config = {"frozen": True}


class Payout(BaseModel):
    method: PaymentMethod
    amount: Decimal
    processed_at: datetime

    model_config = {"frozen": True}


# Aggregate


class PurchaseRequest(BaseModel):
    """A seller's request to sell one box of books"""

    request_id: str
    status: PurchaseRequestStatus = PurchaseRequestStatus.DRAFT
    customer: Customer
    box_description: BoxDescription
    estimate: Estimate | None = None
    shipment: InboundShipment | None = None
    offer: Offer | None = None
    payout: Payout | None = None
    return_tracking_number: str | None = None
    pickup_date: str | None = None
    pickup_time_slot: str | None = None
    coupon_code: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"frozen": True}

    @classmethod
    def create(
        cls,
        customer: Customer,
        box_description: BoxDescription,
        *,
        pickup_date: str | None = None,
        pickup_time_slot: str | None = None,
        coupon_code: str | None = None,
        now: datetime | None = None,
    ) -> "PurchaseRequest":
        ts = resolve_now(now)
        return cls(
            request_id=generate_id("pr"),
            customer=customer,
            box_description=box_description,
            pickup_date=pickup_date,
            pickup_time_slot=pickup_time_slot,
            coupon_code=coupon_code,
            created_at=ts,
            updated_at=ts,
        )

    def _moved(self, target: PurchaseRequestStatus, ts: datetime, **changes: object) -> "PurchaseRequest":
        return self.model_copy(update={"status": target, "updated_at": ts, **changes})

    def submit(
        self,
        estimate: Estimate,
        tracking_number: str,
        label_url: str,
        now: datetime | None = None,
    ) -> "PurchaseRequest":
        """
        Attach the estimate and the inbound label

        Raises:
            InvalidTransition: Unless the request is a draft
        """
        PURCHASE_REQUEST_TRANSITIONS.require(self.status, PurchaseRequestStatus.SUBMITTED, "submit")
        return self._moved(
            PurchaseRequestStatus.SUBMITTED,
            resolve_now(now),
            estimate=estimate,
            shipment=InboundShipment(
                tracking_number=tracking_number,
                carrier=INBOUND_CARRIER,
                label_url=label_url,
            ),
        )

    def mark_shipped(self, now: datetime | None = None) -> "PurchaseRequest":
        PURCHASE_REQUEST_TRANSITIONS.require(self.status, PurchaseRequestStatus.SHIPPED, "mark shipped")
        ts = resolve_now(now)
        return self._moved(
            PurchaseRequestStatus.SHIPPED,
            ts,
            shipment=self.shipment.model_copy(update={"shipped_at": ts}),
        )

    def mark_received(self, now: datetime | None = None) -> "PurchaseRequest":
        PURCHASE_REQUEST_TRANSITIONS.require(self.status, PurchaseRequestStatus.RECEIVED, "mark received")
        ts = resolve_now(now)
        return self._moved(
            PurchaseRequestStatus.RECEIVED,
            ts,
            shipment=self.shipment.model_copy(update={"delivered_at": ts}),
        )

    def set_offer(self, amount: object, now: datetime | None = None) -> "PurchaseRequest":
        """
        Record the appraised offer

        Accepted immediately when inside the estimate range; otherwise the
        seller has to decide.
        """
        with PURCHASE_REQUEST_TRANSITIONS.transition_from(
            self.status, {PurchaseRequestStatus.RECEIVED}, "set offer"
        ):
            ts = resolve_now(now)
            value = round2(amount)
            if value < 0:
                raise ValidationError("Offer amount cannot be negative")
            if self.estimate is not None and self.estimate.is_within_range(value):
                return self._moved(
                    PurchaseRequestStatus.ACCEPTED,
                    ts,
                    offer=Offer(amount=value, decided_at=ts, decision="accept"),
                )
            return self._moved(
                PurchaseRequestStatus.AWAITING_DECISION,
                ts,
                offer=Offer(amount=value),
            )

    def accept(self, now: datetime | None = None) -> "PurchaseRequest":
        with PURCHASE_REQUEST_TRANSITIONS.transition(
            self.status, PurchaseRequestStatus.ACCEPTED, "accept"
        ):
            if self.offer is None:
                raise ValidationError("Cannot accept: no offer has been made")
            ts = resolve_now(now)
            return self._moved(
                PurchaseRequestStatus.ACCEPTED,
                ts,
                offer=self.offer.model_copy(update={"decided_at": ts, "decision": "accept"}),
            )

    def reject(self, return_tracking_number: str | None = None, now: datetime | None = None) -> "PurchaseRequest":
        PURCHASE_REQUEST_TRANSITIONS.require(self.status, PurchaseRequestStatus.REJECTED, "reject")
        ts = resolve_now(now)
        return self._moved(
            PurchaseRequestStatus.REJECTED,
            ts,
            offer=self.offer.model_copy(update={"decided_at": ts, "decision": "reject"}),
            return_tracking_number=return_tracking_number,
        )

    def process_payment(
        self,
        method: PaymentMethod | str,
        store_credit_bonus: Decimal = DEFAULT_STORE_CREDIT_BONUS,
        now: datetime | None = None,
    ) -> "PurchaseRequest":
        """
        Pay the seller; store credit adds a bonus on top of the offer

        Raises:
            InvalidTransition: Unless the offer was accepted
        """
        with PURCHASE_REQUEST_TRANSITIONS.transition(
            self.status, PurchaseRequestStatus.COMPLETED, "process payment"
        ):
            try:
                method = PaymentMethod(method)
            except ValueError as e:
                raise ValidationError(f"Unknown payment method: {method}") from e
            amount = self.offer.amount
            if method == PaymentMethod.STORE_CREDIT:
                amount = round2(amount * (1 + store_credit_bonus))
            ts = resolve_now(now)
            return self._moved(
                PurchaseRequestStatus.COMPLETED,
                ts,
                payout=Payout(method=method, amount=amount, processed_at=ts),
            )
