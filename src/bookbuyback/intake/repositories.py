"""
Purchase request repository
"""

from typing import Protocol

from bookbuyback.intake.models import PurchaseRequest, PurchaseRequestStatus
from bookbuyback.kernel.repository import InMemoryRepository


class PurchaseRequestRepository(Protocol):
    def save(self, request: PurchaseRequest) -> None: ...

    def find_by_id(self, request_id: str) -> PurchaseRequest | None: ...

    def find_by_customer_id(self, customer_id: str) -> list[PurchaseRequest]: ...

    def find_by_status(self, status: PurchaseRequestStatus) -> list[PurchaseRequest]: ...

    def find_by_tracking_number(self, tracking_number: str) -> PurchaseRequest | None: ...

    def find_all(self) -> list[PurchaseRequest]: ...


class InMemoryPurchaseRequestRepository(InMemoryRepository[PurchaseRequest]):
    id_attribute = "request_id"

    def find_by_customer_id(self, customer_id: str) -> list[PurchaseRequest]:
        """Requests of one seller; sellers are identified by email"""
        wanted = customer_id.strip().lower()
        return self._select(lambda r: r.customer.email.lower() == wanted)

    def find_by_status(self, status: PurchaseRequestStatus) -> list[PurchaseRequest]:
        return self._select(lambda r: r.status == status)

    def find_by_tracking_number(self, tracking_number: str) -> PurchaseRequest | None:
        matches = self._select(
            lambda r: r.shipment is not None and r.shipment.tracking_number == tracking_number
        )
        return matches[0] if matches else None
