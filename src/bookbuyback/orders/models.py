"""
Order Domain Models - buyers purchasing listed books

Lifecycle:
    draft -> checking_out -> payment_pending -> confirmed -> shipped -> completed

Any order that has not shipped can be cancelled. Each line item tracks the
listing it reserves:

    pending -> held -> sold
    held -> released     (order cancelled)
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from bookbuyback.appraisal.models import Condition
from bookbuyback.fulfillment.models import Address
from bookbuyback.kernel.errors import InvariantViolation, ValidationError
from bookbuyback.kernel.ids import generate_id
from bookbuyback.kernel.lifecycle import TransitionTable
from bookbuyback.kernel.money import Money, round2
from bookbuyback.kernel.time import resolve_now


class OrderStatus(str, Enum):
    DRAFT = "draft"
    CHECKING_OUT = "checking_out"
    PAYMENT_PENDING = "payment_pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ORDER_TRANSITIONS = TransitionTable(
    "order",
    {
        OrderStatus.DRAFT: {OrderStatus.CHECKING_OUT, OrderStatus.CANCELLED},
        OrderStatus.CHECKING_OUT: {OrderStatus.PAYMENT_PENDING, OrderStatus.CANCELLED},
        OrderStatus.PAYMENT_PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
        OrderStatus.CONFIRMED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
        OrderStatus.SHIPPED: {OrderStatus.COMPLETED},
        OrderStatus.COMPLETED: set(),
        OrderStatus.CANCELLED: set(),
    },
)


class LineItemStatus(str, Enum):
    PENDING = "pending"
    HELD = "held"
    SOLD = "sold"
    RELEASED = "released"


LINE_ITEM_TRANSITIONS = TransitionTable(
    "order line item",
    {
        LineItemStatus.PENDING: {LineItemStatus.HELD},
        LineItemStatus.HELD: {LineItemStatus.SOLD, LineItemStatus.RELEASED},
        LineItemStatus.SOLD: set(),
        LineItemStatus.RELEASED: set(),
    },
)


class OrderLineItem(BaseModel):
    """A listing in an order, priced when it was added"""

    listing_id: str
    isbn: str
    title: str
    author: str
    condition: Condition
    price: Money
    status: LineItemStatus = LineItemStatus.PENDING

    model_config = {"frozen": True}

    @classmethod
    def create(
        cls,
        *,
        listing_id: str,
        isbn: str,
        title: str,
        author: str,
        condition: Condition | str,
        price: Money,
    ) -> "OrderLineItem":
        """
        Raises:
            ValidationError: If an identifying field is blank
        """
        required = {
            "Listing ID": listing_id,
            "ISBN": isbn,
            "Title": title,
            "Author": author,
        }
        for label, value in required.items():
            if not (value or "").strip():
                raise ValidationError(f"{label} is required")
        return cls(
            listing_id=listing_id.strip(),
            isbn=isbn.strip(),
            title=title.strip(),
            author=author.strip(),
            condition=Condition(condition),
            price=price,
        )

    def mark_held(self) -> "OrderLineItem":
        LINE_ITEM_TRANSITIONS.require(self.status, LineItemStatus.HELD, "hold")
        return self.model_copy(update={"status": LineItemStatus.HELD})

    def mark_sold(self) -> "OrderLineItem":
        LINE_ITEM_TRANSITIONS.require(self.status, LineItemStatus.SOLD, "mark sold")
        return self.model_copy(update={"status": LineItemStatus.SOLD})

    def release(self) -> "OrderLineItem":
        LINE_ITEM_TRANSITIONS.require(self.status, LineItemStatus.RELEASED, "release")
        return self.model_copy(update={"status": LineItemStatus.RELEASED})


class OrderPaymentMethod(str, Enum):
    CREDIT_CARD = "credit_card"
    PAYPAL = "paypal"
    STORE_CREDIT = "store_credit"


class Payment(BaseModel):
    """Completed payment for an order"""

    method: OrderPaymentMethod
    amount: Money
    transaction_id: str = Field(..., min_length=1)
    processed_at: datetime

    model_config = {"frozen": True}


class ShipmentTracking(BaseModel):
    carrier: str
    tracking_number: str
    shipped_at: datetime
    delivered_at: datetime | None = None

    model_config = {"frozen": True}

    @classmethod
    def create(
        cls, *, carrier: str, tracking_number: str, now: datetime | None = None
    ) -> "ShipmentTracking":
        if not (carrier or "").strip():
            raise ValidationError("Carrier is required")
        if not (tracking_number or "").strip():
            raise ValidationError("Tracking number is required")
        return cls(
            carrier=carrier.strip(),
            tracking_number=tracking_number.strip(),
            shipped_at=resolve_now(now),
        )


class Order(BaseModel):
    """
    A buyer's order of one or more listings

    Prices are fixed on the line items when they are added. The bulk
    discount rate is fixed when checkout starts.
    """

    order_id: str
    customer_id: str
    shipping_address: Address
    billing_address: Address | None = None
    line_items: tuple[OrderLineItem, ...] = ()
    status: OrderStatus = OrderStatus.DRAFT
    discount_rate: Decimal = Decimal("0")
    tax: Money = Field(default_factory=Money.zero)
    shipping: Money = Field(default_factory=Money.zero)
    holds_expire_at: datetime | None = None
    payment: Payment | None = None
    shipment_tracking: ShipmentTracking | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"frozen": True}

    @classmethod
    def create(
        cls,
        *,
        customer_id: str,
        shipping_address: Address,
        billing_address: Address | None = None,
        tax: Money | None = None,
        shipping: Money | None = None,
        now: datetime | None = None,
    ) -> "Order":
        if not (customer_id or "").strip():
            raise ValidationError("Customer ID is required")
        ts = resolve_now(now)
        return cls(
            order_id=generate_id("ord"),
            customer_id=customer_id.strip(),
            shipping_address=shipping_address,
            billing_address=billing_address,
            tax=tax or Money.zero(),
            shipping=shipping or Money.zero(),
            created_at=ts,
            updated_at=ts,
        )

    @property
    def subtotal(self) -> Money:
        total = Money.zero()
        for item in self.line_items:
            total = total.add(item.price)
        return total

    @property
    def discount(self) -> Money:
        return Money.of(round2(self.subtotal.amount * self.discount_rate))

    @property
    def total(self) -> Money:
        return self.subtotal.subtract(self.discount).add(self.tax).add(self.shipping)

    @property
    def listing_ids(self) -> list[str]:
        return [item.listing_id for item in self.line_items]

    def held_listing_ids(self) -> list[str]:
        return [
            item.listing_id for item in self.line_items if item.status == LineItemStatus.HELD
        ]

    def add_line_item(self, item: OrderLineItem, now: datetime | None = None) -> "Order":
        """
        Raises:
            InvalidTransition: Unless the order is a draft
            ValidationError: If the listing is already in the order
        """
        with ORDER_TRANSITIONS.transition_from(self.status, {OrderStatus.DRAFT}, "add line item"):
            if item.listing_id in self.listing_ids:
                raise ValidationError("Listing already in order")
            return self.model_copy(
                update={
                    "line_items": self.line_items + (item,),
                    "updated_at": resolve_now(now),
                }
            )

    def remove_line_item(self, listing_id: str, now: datetime | None = None) -> "Order":
        with ORDER_TRANSITIONS.transition_from(self.status, {OrderStatus.DRAFT}, "remove line item"):
            if listing_id not in self.listing_ids:
                raise ValidationError("Line item not found")
            return self.model_copy(
                update={
                    "line_items": tuple(i for i in self.line_items if i.listing_id != listing_id),
                    "updated_at": resolve_now(now),
                }
            )

    def start_checkout(
        self, discount_rate: Decimal = Decimal("0"), now: datetime | None = None
    ) -> "Order":
        """
        Raises:
            InvalidTransition: Unless the order is a draft
            InvariantViolation: If the order has no line items
        """
        with ORDER_TRANSITIONS.transition(self.status, OrderStatus.CHECKING_OUT, "start checkout"):
            if not self.line_items:
                raise InvariantViolation("Cannot checkout empty order")
            if not Decimal("0") <= discount_rate < Decimal("1"):
                raise ValidationError("Discount rate must be between 0 and 1")
            return self.model_copy(
                update={
                    "status": OrderStatus.CHECKING_OUT,
                    "discount_rate": discount_rate,
                    "updated_at": resolve_now(now),
                }
            )

    def confirm_holdings(
        self,
        held_listing_ids: list[str],
        holds_expire_at: datetime | None = None,
        now: datetime | None = None,
    ) -> "Order":
        """
        Move to payment once every listing in the order is held

        Args:
            held_listing_ids: Listings the listing side reserved for this order
            holds_expire_at: When the earliest of those reservations lapses

        Raises:
            InvalidTransition: Unless the order is checking out
            InvariantViolation: If any listing was not held
        """
        with ORDER_TRANSITIONS.transition(
            self.status, OrderStatus.PAYMENT_PENDING, "confirm holdings"
        ):
            held = set(held_listing_ids)
            if not all(item.listing_id in held for item in self.line_items):
                raise InvariantViolation("Not all listings held")
            return self.model_copy(
                update={
                    "line_items": tuple(item.mark_held() for item in self.line_items),
                    "status": OrderStatus.PAYMENT_PENDING,
                    "holds_expire_at": holds_expire_at,
                    "updated_at": resolve_now(now),
                }
            )

    def holds_expired(self, now: datetime) -> bool:
        return self.holds_expire_at is not None and now > self.holds_expire_at

    def process_payment(
        self, method: OrderPaymentMethod | str, transaction_id: str, now: datetime | None = None
    ) -> "Order":
        """
        Raises:
            InvalidTransition: Unless payment is pending
            InvariantViolation: If the listing holds lapsed before payment
            ValidationError: On an unknown method or a blank transaction id
        """
        with ORDER_TRANSITIONS.transition(self.status, OrderStatus.CONFIRMED, "process payment"):
            ts = resolve_now(now)
            if self.holds_expired(ts):
                raise InvariantViolation("Listing holds have expired; check out again")
            try:
                method = OrderPaymentMethod(method)
            except ValueError as e:
                raise ValidationError(f"Unknown payment method: {method}") from e
            if not (transaction_id or "").strip():
                raise ValidationError("Transaction ID is required")
            return self.model_copy(
                update={
                    "line_items": tuple(item.mark_sold() for item in self.line_items),
                    "status": OrderStatus.CONFIRMED,
                    "payment": Payment(
                        method=method,
                        amount=self.total,
                        transaction_id=transaction_id.strip(),
                        processed_at=ts,
                    ),
                    "updated_at": ts,
                }
            )

    def ship(self, tracking: ShipmentTracking, now: datetime | None = None) -> "Order":
        ORDER_TRANSITIONS.require(self.status, OrderStatus.SHIPPED, "ship")
        return self.model_copy(
            update={
                "status": OrderStatus.SHIPPED,
                "shipment_tracking": tracking,
                "updated_at": resolve_now(now),
            }
        )

    def mark_delivered(self, now: datetime | None = None) -> "Order":
        ORDER_TRANSITIONS.require(self.status, OrderStatus.COMPLETED, "mark delivered")
        ts = resolve_now(now)
        tracking = self.shipment_tracking
        if tracking is not None:
            tracking = tracking.model_copy(update={"delivered_at": ts})
        return self.model_copy(
            update={
                "status": OrderStatus.COMPLETED,
                "shipment_tracking": tracking,
                "updated_at": ts,
            }
        )

    def cancel(self, reason: str | None = None, now: datetime | None = None) -> "Order":
        """
        Cancel the order, releasing any held line items

        Raises:
            InvalidTransition: If the order has shipped, completed, or is
                already cancelled
        """
        ORDER_TRANSITIONS.require(self.status, OrderStatus.CANCELLED, "cancel")
        ts = resolve_now(now)
        return self.model_copy(
            update={
                "line_items": tuple(
                    item.release() if item.status == LineItemStatus.HELD else item
                    for item in self.line_items
                ),
                "status": OrderStatus.CANCELLED,
                "cancelled_at": ts,
                "cancel_reason": reason,
                "updated_at": ts,
            }
        )
