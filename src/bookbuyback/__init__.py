"""
Book Buyback - used-book buyback and resale backend

Sellers send in boxes of books, appraisers price them, appraised books are
listed for resale, buyers order them and the warehouse ships them. Every
context runs on explicit lifecycle state machines and talks to the others
through a synchronous in-process event bus; a role/permission engine
guards the public commands.
"""

from bookbuyback.app import BuybackApp

__version__ = "0.1.0"
__all__ = ["BuybackApp", "__version__"]
