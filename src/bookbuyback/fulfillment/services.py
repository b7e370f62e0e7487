"""
Fulfillment Service - warehouse commands for shipments

Every step follows load -> transition -> save -> publish. A transition
that raises leaves the stored shipment untouched and publishes nothing.
"""

from datetime import datetime
from typing import Callable

from pydantic import BaseModel

from bookbuyback.fulfillment.events import (
    SHIPMENT_CREATED,
    SHIPMENT_DELIVERED,
    SHIPMENT_DISPATCHED,
    SHIPMENT_IN_TRANSIT,
    SHIPMENT_PACKED,
    SHIPMENT_PICKING,
    ShipmentCreated,
    ShipmentDelivered,
    ShipmentDispatched,
    ShipmentStatusChanged,
)
from bookbuyback.fulfillment.models import Address, Shipment, ShipmentStatus
from bookbuyback.fulfillment.repositories import ShipmentRepository
from bookbuyback.fulfillment.tracking import Carrier
from bookbuyback.kernel.bus import EventBus
from bookbuyback.kernel.errors import ShipmentNotFound
from bookbuyback.kernel.events import create_event
from bookbuyback.kernel.logging import get_logger
from bookbuyback.kernel.metrics import track_command_duration
from bookbuyback.kernel.time import RealTimeProvider, TimeProvider

logger = get_logger(__name__)


class FulfillmentService:
    """Creates shipments and walks them through the warehouse"""

    def __init__(
        self,
        repository: ShipmentRepository,
        bus: EventBus,
        time_provider: TimeProvider | None = None,
    ) -> None:
        self.repository = repository
        self.bus = bus
        self.time_provider = time_provider or RealTimeProvider()

    # Queries

    def get(self, shipment_id: str) -> Shipment:
        """
        Raises:
            ShipmentNotFound: If no shipment has this id
        """
        shipment = self.repository.find_by_id(shipment_id)
        if shipment is None:
            raise ShipmentNotFound(shipment_id)
        return shipment

    def get_by_order_id(self, order_id: str) -> Shipment | None:
        return self.repository.find_by_order_id(order_id)

    def get_by_status(self, status: ShipmentStatus) -> list[Shipment]:
        return self.repository.find_by_status(status)

    def get_all(self) -> list[Shipment]:
        return self.repository.find_all()

    # Commands

    @track_command_duration("create_shipment")
    def create_shipment(self, order_id: str, shipping_address: Address) -> Shipment:
        shipment = Shipment.create(order_id, shipping_address, now=self.time_provider.now())
        self.repository.save(shipment)
        self._publish(
            SHIPMENT_CREATED,
            shipment,
            ShipmentCreated(
                shipment_id=shipment.shipment_id,
                order_id=shipment.order_id,
                shipping_address=shipping_address.model_dump(mode="json"),
            ),
        )
        logger.info("Shipment created", shipment_id=shipment.shipment_id, order_id=order_id)
        return shipment

    @track_command_duration("start_picking")
    def start_picking(self, shipment_id: str) -> Shipment:
        return self._step(shipment_id, SHIPMENT_PICKING, lambda s, now: s.start_picking(now))

    @track_command_duration("mark_packed")
    def mark_packed(self, shipment_id: str) -> Shipment:
        return self._step(shipment_id, SHIPMENT_PACKED, lambda s, now: s.mark_packed(now))

    @track_command_duration("dispatch_shipment")
    def dispatch(self, shipment_id: str, carrier: Carrier | str, tracking_number: str) -> Shipment:
        """
        Raises:
            ShipmentNotFound: If the shipment does not exist
            InvalidTransition: Unless the shipment is packed
            ValidationError: If the tracking number is blank or the carrier unknown
        """
        shipment = self.get(shipment_id).dispatch(
            carrier, tracking_number, now=self.time_provider.now()
        )
        self.repository.save(shipment)
        self._publish(
            SHIPMENT_DISPATCHED,
            shipment,
            ShipmentDispatched(
                shipment_id=shipment.shipment_id,
                order_id=shipment.order_id,
                carrier=shipment.carrier.value,
                tracking_number=shipment.tracking_number,
                tracking_url=shipment.tracking_url,
            ),
        )
        logger.info(
            "Shipment dispatched",
            shipment_id=shipment_id,
            carrier=shipment.carrier.value,
            tracking_number=shipment.tracking_number,
        )
        return shipment

    @track_command_duration("update_in_transit")
    def update_in_transit(self, shipment_id: str) -> Shipment:
        return self._step(shipment_id, SHIPMENT_IN_TRANSIT, lambda s, now: s.update_in_transit(now))

    @track_command_duration("mark_delivered")
    def mark_delivered(self, shipment_id: str) -> Shipment:
        shipment = self.get(shipment_id).mark_delivered(now=self.time_provider.now())
        self.repository.save(shipment)
        self._publish(
            SHIPMENT_DELIVERED,
            shipment,
            ShipmentDelivered(
                shipment_id=shipment.shipment_id,
                order_id=shipment.order_id,
                delivered_at=shipment.delivered_at,
            ),
        )
        logger.info("Shipment delivered", shipment_id=shipment_id)
        return shipment

    def _step(
        self,
        shipment_id: str,
        event_type: str,
        transition: Callable[[Shipment, datetime], Shipment],
    ) -> Shipment:
        shipment = transition(self.get(shipment_id), self.time_provider.now())
        self.repository.save(shipment)
        self._publish(
            event_type,
            shipment,
            ShipmentStatusChanged(
                shipment_id=shipment.shipment_id,
                order_id=shipment.order_id,
                status=shipment.status.value,
            ),
        )
        logger.info("Shipment advanced", shipment_id=shipment_id, status=shipment.status.value)
        return shipment

    def _publish(self, event_type: str, shipment: Shipment, payload: BaseModel) -> None:
        self.bus.publish(
            create_event(
                event_type=event_type,
                aggregate_id=shipment.shipment_id,
                aggregate_type="shipment",
                occurred_at=shipment.updated_at,
                payload=payload,
            )
        )
