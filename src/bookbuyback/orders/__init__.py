"""
Orders context - buyers checking out listed books
"""

from bookbuyback.orders.listings import ListingClient, LocalListingClient
from bookbuyback.orders.models import (
    LineItemStatus,
    Order,
    OrderLineItem,
    OrderPaymentMethod,
    OrderStatus,
    Payment,
    ShipmentTracking,
)
from bookbuyback.orders.repositories import InMemoryOrderRepository
from bookbuyback.orders.services import OrderService

__all__ = [
    "ListingClient",
    "LocalListingClient",
    "LineItemStatus",
    "Order",
    "OrderLineItem",
    "OrderPaymentMethod",
    "OrderStatus",
    "Payment",
    "ShipmentTracking",
    "InMemoryOrderRepository",
    "OrderService",
]
