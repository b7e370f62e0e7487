"""
Fulfillment Events - one per shipment step
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel

SHIPMENT_CREATED = "ShipmentCreated"
SHIPMENT_PICKING = "ShipmentPicking"
SHIPMENT_PACKED = "ShipmentPacked"
SHIPMENT_DISPATCHED = "ShipmentDispatched"
SHIPMENT_IN_TRANSIT = "ShipmentInTransit"
SHIPMENT_DELIVERED = "ShipmentDelivered"

SHIPMENT_EVENT_TYPES = [
    SHIPMENT_CREATED,
    SHIPMENT_PICKING,
    SHIPMENT_PACKED,
    SHIPMENT_DISPATCHED,
    SHIPMENT_IN_TRANSIT,
    SHIPMENT_DELIVERED,
]


class ShipmentCreated(BaseModel):
    shipment_id: str
    order_id: str
    shipping_address: dict[str, Any]


class ShipmentStatusChanged(BaseModel):
    """Payload of ShipmentPicking, ShipmentPacked and ShipmentInTransit"""

    shipment_id: str
    order_id: str
    status: str


class ShipmentDispatched(BaseModel):
    shipment_id: str
    order_id: str
    carrier: str
    tracking_number: str
    tracking_url: str


class ShipmentDelivered(BaseModel):
    shipment_id: str
    order_id: str
    delivered_at: datetime
