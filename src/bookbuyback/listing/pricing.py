"""
Pricing - resale price from the price paid to the seller

    listing price = offer price * (1 + markup for the book's condition)

Orders of several books get a tiered bulk discount.
"""

from decimal import Decimal

from bookbuyback.appraisal.models import Condition
from bookbuyback.kernel.money import Money
from bookbuyback.kernel.settings import BuybackPolicy


class PricingService:
    def __init__(self, policy: BuybackPolicy | None = None) -> None:
        self.policy = policy or BuybackPolicy()

    def get_markup(self, condition: Condition | str) -> Decimal:
        return self.policy.listing_markup_by_condition[Condition(condition).value]

    def calculate_listing_price(self, offer_price: Money, condition: Condition | str) -> Money:
        return offer_price.multiply(1 + self.get_markup(condition))

    def calculate_bulk_discount(self, total_items: int) -> Decimal:
        """Discount fraction for an order of `total_items` books"""
        for max_items, discount in self.policy.bulk_discount_tiers:
            if total_items <= max_items:
                return discount
        return self.policy.bulk_discount_max
