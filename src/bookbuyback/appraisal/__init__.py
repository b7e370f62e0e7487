"""
Appraisal context - pricing the books received in a purchase request
"""

from bookbuyback.appraisal.events import APPRAISAL_COMPLETED, AppraisalCompleted
from bookbuyback.appraisal.lookup import BookInfo, StaticBookLookupService
from bookbuyback.appraisal.models import Appraisal, AppraisalStatus, AppraisedBook, Condition
from bookbuyback.appraisal.repositories import InMemoryAppraisalRepository
from bookbuyback.appraisal.services import AppraisalService

__all__ = [
    "APPRAISAL_COMPLETED",
    "AppraisalCompleted",
    "Appraisal",
    "AppraisalStatus",
    "AppraisedBook",
    "Condition",
    "BookInfo",
    "StaticBookLookupService",
    "InMemoryAppraisalRepository",
    "AppraisalService",
]
