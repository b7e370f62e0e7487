"""
Order repository
"""

from datetime import datetime
from typing import Protocol

from bookbuyback.kernel.repository import InMemoryRepository
from bookbuyback.orders.models import Order, OrderStatus

CHECKOUT_STATUSES = (OrderStatus.CHECKING_OUT, OrderStatus.PAYMENT_PENDING)


class OrderRepository(Protocol):
    def save(self, order: Order) -> None: ...

    def find_by_id(self, order_id: str) -> Order | None: ...

    def find_by_customer_id(self, customer_id: str) -> list[Order]: ...

    def find_by_status(self, status: OrderStatus) -> list[Order]: ...

    def find_expired_checkouts(self, cutoff: datetime) -> list[Order]: ...

    def find_all(self) -> list[Order]: ...


class InMemoryOrderRepository(InMemoryRepository[Order]):
    id_attribute = "order_id"

    def find_by_customer_id(self, customer_id: str) -> list[Order]:
        return self._select(lambda o: o.customer_id == customer_id)

    def find_by_status(self, status: OrderStatus) -> list[Order]:
        return self._select(lambda o: o.status == status)

    def find_expired_checkouts(self, cutoff: datetime) -> list[Order]:
        """Orders still in checkout whose last change is older than `cutoff`"""
        return self._select(lambda o: o.status in CHECKOUT_STATUSES and o.updated_at < cutoff)
