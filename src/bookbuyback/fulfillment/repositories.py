"""
Shipment repository
"""

from typing import Protocol

from bookbuyback.fulfillment.models import Shipment, ShipmentStatus
from bookbuyback.kernel.repository import InMemoryRepository


class ShipmentRepository(Protocol):
    def save(self, shipment: Shipment) -> None: ...

    def find_by_id(self, shipment_id: str) -> Shipment | None: ...

    def find_by_order_id(self, order_id: str) -> Shipment | None: ...

    def find_by_status(self, status: ShipmentStatus) -> list[Shipment]: ...

    def find_all(self) -> list[Shipment]: ...


class InMemoryShipmentRepository(InMemoryRepository[Shipment]):
    id_attribute = "shipment_id"

    def find_by_order_id(self, order_id: str) -> Shipment | None:
        matches = self._select(lambda s: s.order_id == order_id)
        return matches[0] if matches else None

    def find_by_status(self, status: ShipmentStatus) -> list[Shipment]:
        return self._select(lambda s: s.status == status)
