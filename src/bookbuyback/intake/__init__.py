"""
Intake context - purchase requests from sellers
"""

from bookbuyback.intake.carrier import MockCarrierAdapter, ShippingLabel
from bookbuyback.intake.estimation import EstimationService
from bookbuyback.intake.models import (
    BookCategory,
    BoxCondition,
    BoxDescription,
    Customer,
    CustomerAddress,
    Estimate,
    PaymentMethod,
    PurchaseRequest,
    PurchaseRequestStatus,
)
from bookbuyback.intake.repositories import InMemoryPurchaseRequestRepository
from bookbuyback.intake.services import PurchaseRequestService

__all__ = [
    "BookCategory",
    "BoxCondition",
    "BoxDescription",
    "Customer",
    "CustomerAddress",
    "Estimate",
    "PaymentMethod",
    "PurchaseRequest",
    "PurchaseRequestStatus",
    "EstimationService",
    "MockCarrierAdapter",
    "ShippingLabel",
    "InMemoryPurchaseRequestRepository",
    "PurchaseRequestService",
]
