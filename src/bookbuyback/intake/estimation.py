"""
Estimation - quote a price range for a described box

    base = quantity * base price per book * category multiplier * condition multiplier
    low  = round(base * (1 - variance))
    high = round(base * (1 + variance))

Both ends are rounded to whole currency units.
"""

from bookbuyback.intake.models import BoxDescription, Estimate
from bookbuyback.kernel.money import round_whole
from bookbuyback.kernel.settings import BuybackPolicy


class EstimationService:
    def __init__(self, policy: BuybackPolicy | None = None) -> None:
        self.policy = policy or BuybackPolicy()

    def base_value(self, box: BoxDescription):
        p = self.policy
        return (
            box.quantity
            * p.estimate_base_price_per_book
            * p.estimate_category_multipliers[box.category.value]
            * p.estimate_condition_multipliers[box.condition.value]
        )

    def calculate_estimate(self, box: BoxDescription) -> Estimate:
        base = self.base_value(box)
        variance = self.policy.estimate_variance
        return Estimate.create(
            low=round_whole(base * (1 - variance)),
            high=round_whole(base * (1 + variance)),
        )
