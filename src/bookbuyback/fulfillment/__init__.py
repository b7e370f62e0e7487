"""
Fulfillment context - picking, packing and shipping sold books
"""

from bookbuyback.fulfillment.models import Address, Shipment, ShipmentStatus
from bookbuyback.fulfillment.repositories import InMemoryShipmentRepository
from bookbuyback.fulfillment.services import FulfillmentService
from bookbuyback.fulfillment.tracking import Carrier, tracking_url

__all__ = [
    "Address",
    "Shipment",
    "ShipmentStatus",
    "Carrier",
    "tracking_url",
    "InMemoryShipmentRepository",
    "FulfillmentService",
]
