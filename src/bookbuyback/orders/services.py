"""
Order Service - buyer checkout

Checkout holds every listing in the order. If any hold fails, the holds
already taken are released and the order stays a draft. Paying sells the
held listings; cancelling releases them.
"""

from datetime import datetime, timedelta

from pydantic import BaseModel

from bookbuyback.fulfillment.models import Address
from bookbuyback.kernel.bus import EventBus
from bookbuyback.kernel.errors import (
    BuybackError,
    HoldNotOwned,
    ListingNotFound,
    OrderNotFound,
    ValidationError,
)
from bookbuyback.kernel.events import create_event
from bookbuyback.kernel.logging import LogOperation, get_logger
from bookbuyback.kernel.metrics import track_command_duration
from bookbuyback.kernel.retry import TRANSIENT_ERRORS, retry_on_transient_error
from bookbuyback.kernel.settings import BuybackPolicy
from bookbuyback.kernel.time import RealTimeProvider, TimeProvider
from bookbuyback.listing.models import ListingStatus
from bookbuyback.listing.pricing import PricingService
from bookbuyback.orders.events import (
    ORDER_CANCELLED,
    ORDER_CHECKOUT_STARTED,
    ORDER_CONFIRMED,
    ORDER_CREATED,
    ORDER_DELIVERED,
    ORDER_PAYMENT_PROCESSED,
    ORDER_SHIPPED,
    OrderCancelled,
    OrderCheckoutStarted,
    OrderConfirmed,
    OrderCreated,
    OrderDelivered,
    OrderLineItemSnapshot,
    OrderPaymentProcessed,
    OrderShipped,
)
from bookbuyback.orders.listings import ListingClient
from bookbuyback.orders.models import (
    Order,
    OrderLineItem,
    OrderPaymentMethod,
    OrderStatus,
    ShipmentTracking,
)
from bookbuyback.orders.repositories import OrderRepository

logger = get_logger(__name__)

CHECKOUT_TIMEOUT_REASON = "Checkout timeout"

_RELEASE_ERRORS = (BuybackError, *TRANSIENT_ERRORS)


class OrderService:
    """Commands for buyer orders"""

    def __init__(
        self,
        repository: OrderRepository,
        listings: ListingClient,
        bus: EventBus,
        pricing: PricingService | None = None,
        time_provider: TimeProvider | None = None,
        policy: BuybackPolicy | None = None,
    ) -> None:
        self.repository = repository
        self.listings = listings
        self.bus = bus
        self.policy = policy or BuybackPolicy()
        self.pricing = pricing or PricingService(self.policy)
        self.time_provider = time_provider or RealTimeProvider()

    # Queries

    def get(self, order_id: str) -> Order:
        """
        Raises:
            OrderNotFound: If no order has this id
        """
        order = self.repository.find_by_id(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def list_for_customer(self, customer_id: str) -> list[Order]:
        return self.repository.find_by_customer_id(customer_id)

    def list_by_status(self, status: OrderStatus) -> list[Order]:
        return self.repository.find_by_status(status)

    # Collaborator calls

    @retry_on_transient_error()
    def _hold(self, listing_id: str, order_id: str) -> datetime | None:
        return self.listings.hold_for_order(listing_id, order_id)

    @retry_on_transient_error()
    def _mark_sold(self, listing_id: str, order_id: str) -> None:
        self.listings.mark_sold(listing_id, order_id)

    def _release_all(self, listing_ids: list[str], order_id: str) -> list[str]:
        """Release holds one by one; a failed release does not stop the rest"""
        released = []
        for listing_id in listing_ids:
            try:
                self.listings.release_hold(listing_id, order_id)
            except _RELEASE_ERRORS as e:
                logger.warning(
                    "Failed to release listing hold",
                    order_id=order_id,
                    listing_id=listing_id,
                    error=str(e),
                )
                continue
            released.append(listing_id)
        return released

    def _require_holds(self, order: Order) -> None:
        """
        Raises:
            ListingNotFound: If a listing has disappeared
            HoldNotOwned: If a listing is no longer held for this order
        """
        for listing_id in order.listing_ids:
            listing = self.listings.get_by_id(listing_id)
            if listing is None:
                raise ListingNotFound(listing_id)
            if listing.status != ListingStatus.HELD or listing.held_by_order_id != order.order_id:
                raise HoldNotOwned(listing_id, order.order_id, listing.held_by_order_id)

    # Commands

    @track_command_duration("create_order")
    def create(
        self,
        customer_id: str,
        shipping_address: Address,
        billing_address: Address | None = None,
    ) -> Order:
        order = Order.create(
            customer_id=customer_id,
            shipping_address=shipping_address,
            billing_address=billing_address,
            now=self.time_provider.now(),
        )
        self.repository.save(order)
        self._publish(
            ORDER_CREATED,
            order,
            OrderCreated(order_id=order.order_id, customer_id=order.customer_id),
        )
        logger.info("Order created", order_id=order.order_id)
        return order

    @track_command_duration("add_order_line_item")
    def add_line_item(self, order_id: str, listing_id: str) -> Order:
        """
        Add a listing to a draft order at its current listing price

        Raises:
            OrderNotFound, ListingNotFound: If either does not exist
            ValidationError: If the listing is not available for sale
        """
        order = self.get(order_id)
        listing = self.listings.get_by_id(listing_id)
        if listing is None:
            raise ListingNotFound(listing_id)
        if listing.status != ListingStatus.AVAILABLE:
            raise ValidationError("Listing is not available")

        item = OrderLineItem.create(
            listing_id=listing.listing_id,
            isbn=listing.book.isbn,
            title=listing.book.title,
            author=listing.book.author,
            condition=listing.book.condition,
            price=listing.listing_price,
        )
        updated = order.add_line_item(item, now=self.time_provider.now())
        self.repository.save(updated)
        return updated

    @track_command_duration("remove_order_line_item")
    def remove_line_item(self, order_id: str, listing_id: str) -> Order:
        updated = self.get(order_id).remove_line_item(listing_id, now=self.time_provider.now())
        self.repository.save(updated)
        return updated

    @track_command_duration("checkout_order")
    def checkout(self, order_id: str) -> Order:
        """
        Hold every listing and move the order to payment_pending

        Raises:
            InvalidTransition: Unless the order is a draft
            InvariantViolation: If the order is empty
            BuybackError: Whatever the listing side raised for the first
                listing that could not be held (holds taken so far are
                released first)
        """
        order = self.get(order_id)
        now = self.time_provider.now()
        discount_rate = self.pricing.calculate_bulk_discount(len(order.line_items))
        checking_out = order.start_checkout(discount_rate, now=now)

        held: list[str] = []
        expiries: list[datetime] = []
        with LogOperation(logger, "checkout_order", order_id=order_id):
            try:
                for item in checking_out.line_items:
                    held_until = self._hold(item.listing_id, order_id)
                    held.append(item.listing_id)
                    if held_until is not None:
                        expiries.append(held_until)
            except Exception:
                logger.warning("Checkout failed, rolling back holds", order_id=order_id, held=len(held))
                self._release_all(held, order_id)
                raise

            updated = checking_out.confirm_holdings(
                held, holds_expire_at=min(expiries, default=None), now=now
            )
            self.repository.save(updated)

        self._publish(
            ORDER_CHECKOUT_STARTED,
            updated,
            OrderCheckoutStarted(
                order_id=order_id,
                listing_ids=held,
                discount_rate=discount_rate,
            ),
        )
        return updated

    @track_command_duration("process_order_payment")
    def process_payment(
        self, order_id: str, method: OrderPaymentMethod | str, transaction_id: str
    ) -> Order:
        """
        Record payment, confirm the order and sell its listings

        Every listing is checked to still be held for this order before
        anything changes. Payment is the commit point: the confirmed order
        is saved before the listings are sold.

        Raises:
            InvariantViolation: If the holds lapsed before payment
            HoldNotOwned: If a listing is no longer held for this order
        """
        updated = self.get(order_id).process_payment(
            method, transaction_id, now=self.time_provider.now()
        )
        self._require_holds(updated)
        self.repository.save(updated)
        with LogOperation(logger, "sell_order_listings", order_id=order_id):
            for item in updated.line_items:
                self._mark_sold(item.listing_id, order_id)

        self._publish(
            ORDER_PAYMENT_PROCESSED,
            updated,
            OrderPaymentProcessed(
                order_id=order_id,
                amount=updated.total.amount,
                method=updated.payment.method.value,
            ),
        )
        self._publish(
            ORDER_CONFIRMED,
            updated,
            OrderConfirmed(
                order_id=order_id,
                customer_id=updated.customer_id,
                line_items=[
                    OrderLineItemSnapshot(
                        listing_id=item.listing_id,
                        isbn=item.isbn,
                        title=item.title,
                        author=item.author,
                        condition=item.condition.value,
                        price=item.price.amount,
                    )
                    for item in updated.line_items
                ],
                shipping_address=updated.shipping_address.model_dump(),
            ),
        )
        logger.info("Order confirmed", order_id=order_id, total=str(updated.total))
        return updated

    @track_command_duration("ship_order")
    def mark_shipped(self, order_id: str, carrier: str, tracking_number: str) -> Order:
        now = self.time_provider.now()
        tracking = ShipmentTracking.create(
            carrier=carrier, tracking_number=tracking_number, now=now
        )
        updated = self.get(order_id).ship(tracking, now=now)
        self.repository.save(updated)
        self._publish(
            ORDER_SHIPPED,
            updated,
            OrderShipped(
                order_id=order_id,
                tracking_number=tracking.tracking_number,
                carrier=tracking.carrier,
            ),
        )
        return updated

    @track_command_duration("deliver_order")
    def mark_delivered(self, order_id: str) -> Order:
        updated = self.get(order_id).mark_delivered(now=self.time_provider.now())
        self.repository.save(updated)
        self._publish(
            ORDER_DELIVERED,
            updated,
            OrderDelivered(order_id=order_id, delivered_at=updated.updated_at),
        )
        return updated

    @track_command_duration("cancel_order")
    def cancel(self, order_id: str, reason: str | None = None) -> Order:
        """
        Cancel an order that has not shipped and release its listing holds

        Raises:
            InvalidTransition: If the order has shipped, completed, or is
                already cancelled
        """
        order = self.get(order_id)
        updated = order.cancel(reason, now=self.time_provider.now())
        released = self._release_all(order.held_listing_ids(), order_id)
        self.repository.save(updated)
        self._publish(
            ORDER_CANCELLED,
            updated,
            OrderCancelled(order_id=order_id, reason=reason, released_listing_ids=released),
        )
        logger.info("Order cancelled", order_id=order_id, reason=reason)
        return updated

    def release_expired_checkouts(self) -> int:
        """
        Cancel orders stuck in checkout longer than the configured timeout

        Returns:
            Number of orders cancelled
        """
        cutoff = self.time_provider.now() - timedelta(minutes=self.policy.checkout_timeout_minutes)
        expired = self.repository.find_expired_checkouts(cutoff)
        for order in expired:
            self.cancel(order.order_id, CHECKOUT_TIMEOUT_REASON)
        if expired:
            logger.info("Expired checkouts cancelled", count=len(expired))
        return len(expired)

    def _publish(self, event_type: str, order: Order, payload: BaseModel) -> None:
        self.bus.publish(
            create_event(
                event_type=event_type,
                aggregate_id=order.order_id,
                aggregate_type="order",
                occurred_at=order.updated_at,
                payload=payload,
                actor_id=order.customer_id,
            )
        )
