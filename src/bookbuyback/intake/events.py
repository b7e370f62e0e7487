"""
Intake Events - purchase request milestones

`customer_id` is the seller's email address; it is redacted in logs but
carried in the event so notification subscribers can reach the seller.
"""

from decimal import Decimal

from pydantic import BaseModel

from bookbuyback.intake.models import PaymentMethod

PURCHASE_REQUEST_SUBMITTED = "PurchaseRequestSubmitted"
PURCHASE_REQUEST_RECEIVED = "PurchaseRequestReceived"
PURCHASE_REQUEST_ACCEPTED = "PurchaseRequestAccepted"
PURCHASE_REQUEST_REJECTED = "PurchaseRequestRejected"

PURCHASE_REQUEST_EVENT_TYPES = [
    PURCHASE_REQUEST_SUBMITTED,
    PURCHASE_REQUEST_RECEIVED,
    PURCHASE_REQUEST_ACCEPTED,
    PURCHASE_REQUEST_REJECTED,
]


class PurchaseRequestSubmitted(BaseModel):
    request_id: str
    customer_id: str
    tracking_number: str


class PurchaseRequestReceived(BaseModel):
    request_id: str
    tracking_number: str


class PurchaseRequestAccepted(BaseModel):
    """Seller was paid; amount includes any store credit bonus"""

    request_id: str
    amount: Decimal
    payment_method: PaymentMethod


class PurchaseRequestRejected(BaseModel):
    """Seller declined the offer; the box goes back on the original label"""

    request_id: str
    tracking_number: str
