"""
Order Events
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

ORDER_CREATED = "OrderCreated"
ORDER_CHECKOUT_STARTED = "OrderCheckoutStarted"
ORDER_PAYMENT_PROCESSED = "OrderPaymentProcessed"
ORDER_CONFIRMED = "OrderConfirmed"
ORDER_SHIPPED = "OrderShipped"
ORDER_DELIVERED = "OrderDelivered"
ORDER_CANCELLED = "OrderCancelled"

ORDER_EVENT_TYPES = [
    ORDER_CREATED,
    ORDER_CHECKOUT_STARTED,
    ORDER_PAYMENT_PROCESSED,
    ORDER_CONFIRMED,
    ORDER_SHIPPED,
    ORDER_DELIVERED,
    ORDER_CANCELLED,
]


class OrderCreated(BaseModel):
    order_id: str
    customer_id: str


class OrderCheckoutStarted(BaseModel):
    order_id: str
    listing_ids: list[str]
    discount_rate: Decimal


class OrderPaymentProcessed(BaseModel):
    order_id: str
    amount: Decimal
    method: str


class OrderLineItemSnapshot(BaseModel):
    listing_id: str
    isbn: str
    title: str
    author: str
    condition: str
    price: Decimal


class OrderConfirmed(BaseModel):
    """Carries everything fulfillment needs to ship the order"""

    order_id: str
    customer_id: str
    line_items: list[OrderLineItemSnapshot]
    shipping_address: dict


class OrderShipped(BaseModel):
    order_id: str
    tracking_number: str
    carrier: str


class OrderDelivered(BaseModel):
    order_id: str
    delivered_at: datetime


class OrderCancelled(BaseModel):
    order_id: str
    reason: str | None = None
    released_listing_ids: list[str] = []
