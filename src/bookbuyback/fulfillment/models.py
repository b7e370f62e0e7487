"""
Fulfillment Domain Models - shipping sold books to buyers

A shipment moves strictly forward through the warehouse:

    pending -> picking -> packed -> dispatched -> in_transit -> delivered

Each step has its own method and is only legal from the step before it.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from bookbuyback.fulfillment.tracking import Carrier, parse_carrier, tracking_url
from bookbuyback.kernel.errors import ValidationError
from bookbuyback.kernel.ids import generate_id
from bookbuyback.kernel.lifecycle import TransitionTable
from bookbuyback.kernel.time import resolve_now


class Address(BaseModel):
    """Delivery address"""

    name: str
    street1: str
    street2: str | None = None
    city: str
    state: str
    postal_code: str
    country: str = "JP"

    model_config = {"frozen": True}

    @classmethod
    def create(
        cls,
        *,
        name: str,
        street1: str,
        city: str,
        state: str,
        postal_code: str,
        street2: str | None = None,
        country: str = "JP",
    ) -> "Address":
        """
        Raises:
            ValidationError: If a required line is blank
        """
        required = {
            "Name": name,
            "Street address": street1,
            "City": city,
            "State": state,
            "Postal code": postal_code,
        }
        for label, value in required.items():
            if not (value or "").strip():
                raise ValidationError(f"{label} is required")
        return cls(
            name=name.strip(),
            street1=street1.strip(),
            street2=street2.strip() if street2 else None,
            city=city.strip(),
            state=state.strip(),
            postal_code=postal_code.strip(),
            country=country,
        )


class ShipmentStatus(str, Enum):
    PENDING = "pending"
    PICKING = "picking"
    PACKED = "packed"
    DISPATCHED = "dispatched"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"


SHIPMENT_TRANSITIONS = TransitionTable(
    "shipment",
    {
        ShipmentStatus.PENDING: {ShipmentStatus.PICKING},
        ShipmentStatus.PICKING: {ShipmentStatus.PACKED},
        ShipmentStatus.PACKED: {ShipmentStatus.DISPATCHED},
        ShipmentStatus.DISPATCHED: {ShipmentStatus.IN_TRANSIT},
        ShipmentStatus.IN_TRANSIT: {ShipmentStatus.DELIVERED},
        ShipmentStatus.DELIVERED: set(),
    },
)


class Shipment(BaseModel):
    """Parcel for one order"""

    shipment_id: str
    order_id: str
    shipping_address: Address
    status: ShipmentStatus = ShipmentStatus.PENDING
    carrier: Carrier | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    delivered_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"frozen": True}

    @classmethod
    def create(
        cls,
        order_id: str,
        shipping_address: Address,
        now: datetime | None = None,
    ) -> "Shipment":
        if not order_id:
            raise ValidationError("Order id is required")
        ts = resolve_now(now)
        return cls(
            shipment_id=generate_id("shp"),
            order_id=order_id,
            shipping_address=shipping_address,
            created_at=ts,
            updated_at=ts,
        )

    def _advance(self, target: ShipmentStatus, action: str, now: datetime | None, **changes: object) -> "Shipment":
        SHIPMENT_TRANSITIONS.require(self.status, target, action)
        return self.model_copy(update={"status": target, "updated_at": resolve_now(now), **changes})

    def start_picking(self, now: datetime | None = None) -> "Shipment":
        return self._advance(ShipmentStatus.PICKING, "start picking", now)

    def mark_packed(self, now: datetime | None = None) -> "Shipment":
        return self._advance(ShipmentStatus.PACKED, "mark packed", now)

    def dispatch(self, carrier: Carrier | str, tracking_number: str, now: datetime | None = None) -> "Shipment":
        """
        Hand the parcel to a carrier

        Raises:
            InvalidTransition: Unless the shipment is packed
            ValidationError: If the tracking number is blank
        """
        with SHIPMENT_TRANSITIONS.transition(self.status, ShipmentStatus.DISPATCHED, "dispatch"):
            number = (tracking_number or "").strip()
            if not number:
                raise ValidationError("Tracking number is required")
            carrier = parse_carrier(carrier)
            return self.model_copy(
                update={
                    "status": ShipmentStatus.DISPATCHED,
                    "carrier": carrier,
                    "tracking_number": number,
                    "tracking_url": tracking_url(carrier, number),
                    "updated_at": resolve_now(now),
                }
            )

    def update_in_transit(self, now: datetime | None = None) -> "Shipment":
        return self._advance(ShipmentStatus.IN_TRANSIT, "update in transit", now)

    def mark_delivered(self, now: datetime | None = None) -> "Shipment":
        ts = resolve_now(now)
        return self._advance(ShipmentStatus.DELIVERED, "mark delivered", ts, delivered_at=ts)
