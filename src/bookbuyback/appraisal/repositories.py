"""
Appraisal repository
"""

from typing import Protocol

from bookbuyback.appraisal.models import Appraisal, AppraisalStatus
from bookbuyback.kernel.repository import InMemoryRepository


class AppraisalRepository(Protocol):
    def save(self, appraisal: Appraisal) -> None: ...

    def find_by_id(self, appraisal_id: str) -> Appraisal | None: ...

    def find_by_purchase_request_id(self, purchase_request_id: str) -> list[Appraisal]: ...

    def find_by_status(self, status: AppraisalStatus) -> list[Appraisal]: ...

    def find_all(self) -> list[Appraisal]: ...


class InMemoryAppraisalRepository(InMemoryRepository[Appraisal]):
    id_attribute = "appraisal_id"

    def find_by_purchase_request_id(self, purchase_request_id: str) -> list[Appraisal]:
        return self._select(lambda a: a.purchase_request_id == purchase_request_id)

    def find_by_status(self, status: AppraisalStatus) -> list[Appraisal]:
        return self._select(lambda a: a.status == status)
