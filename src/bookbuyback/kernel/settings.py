"""
Buyback Policy - business parameters for pricing, estimation and timeouts

Every tunable number the services rely on lives here, validated by
pydantic, so a deployment can change a multiplier without touching domain
code. Defaults reproduce the production price book.
"""

import os
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

ENV_PREFIX = "BOOKBUYBACK_"


class BuybackPolicy(BaseModel):
    """
    Business parameters for the buyback and resale flows

    Multiplier tables are keyed by the enum *value* of the condition or
    category (e.g. "good", "non-fiction") so they can be loaded from
    plain configuration.
    """

    policy_version: str = Field(
        default="1.0",
        description="Policy version for tracking changes over time",
    )

    # Appraisal
    appraisal_condition_multipliers: dict[str, Decimal] = Field(
        default={
            "excellent": Decimal("0.8"),
            "good": Decimal("0.6"),
            "fair": Decimal("0.4"),
            "poor": Decimal("0.1"),
        },
        description="Fraction of catalogue base price offered per appraised condition",
    )

    # Intake estimation
    estimate_base_price_per_book: Decimal = Field(
        default=Decimal("1.50"),
        gt=0,
        description="Base value of one book before category/condition multipliers",
    )

    estimate_variance: Decimal = Field(
        default=Decimal("0.3"),
        ge=0,
        lt=1,
        description="Half-width of the estimate range as a fraction of base value",
    )

    estimate_category_multipliers: dict[str, Decimal] = Field(
        default={
            "fiction": Decimal("1.0"),
            "non-fiction": Decimal("1.2"),
            "textbooks": Decimal("2.5"),
            "children": Decimal("0.8"),
            "mixed": Decimal("1.0"),
        },
    )

    estimate_condition_multipliers: dict[str, Decimal] = Field(
        default={
            "excellent": Decimal("1.5"),
            "good": Decimal("1.0"),
            "fair": Decimal("0.5"),
            "mixed": Decimal("0.7"),
        },
    )

    store_credit_bonus: Decimal = Field(
        default=Decimal("0.10"),
        ge=0,
        description="Extra fraction paid when the seller chooses store credit",
    )

    # Listing & pricing
    listing_markup_by_condition: dict[str, Decimal] = Field(
        default={
            "excellent": Decimal("0.60"),
            "good": Decimal("0.50"),
            "fair": Decimal("0.40"),
            "poor": Decimal("0.30"),
        },
        description="Markup applied on top of the offer price when listing",
    )

    bulk_discount_tiers: list[tuple[int, Decimal]] = Field(
        default=[
            (2, Decimal("0")),
            (5, Decimal("0.05")),
            (10, Decimal("0.10")),
        ],
        description="(max item count, discount) tiers in ascending order",
    )

    bulk_discount_max: Decimal = Field(
        default=Decimal("0.15"),
        description="Discount for orders larger than the last tier",
    )

    listing_hold_minutes: int = Field(
        default=15,
        ge=1,
        description="How long a listing stays held for a checking-out order",
    )

    # Orders
    checkout_timeout_minutes: int = Field(
        default=15,
        ge=1,
        description="Checkouts idle longer than this are cancelled",
    )

    # Event bus
    max_publish_depth: int = Field(
        default=8,
        ge=1,
        description="Maximum nesting of publish calls made from inside subscribers",
    )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "BuybackPolicy":
        """
        Build a policy from BOOKBUYBACK_* environment variables

        Only scalar fields can be overridden this way, e.g.
        BOOKBUYBACK_LISTING_HOLD_MINUTES=30. Unknown variables are ignored.
        """
        environ = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            if field.annotation not in (str, int, Decimal):
                continue
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                overrides[name] = raw
        return cls.model_validate(overrides)
