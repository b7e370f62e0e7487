"""
Appraisal Events

`appraisal.completed` is consumed by intake (to set the offer on the
purchase request) and by listing (to put the books up for sale).
"""

from decimal import Decimal

from pydantic import BaseModel

APPRAISAL_COMPLETED = "appraisal.completed"


class AppraisalCompleted(BaseModel):
    """An appraisal was completed and its offer is final"""

    appraisal_id: str
    purchase_request_id: str
    total_offer: Decimal
    book_count: int
