"""
Money - Decimal currency amounts

All prices are Decimals rounded half-up to the cent. Floats never enter a
price calculation, so 10.00 * 0.6 is exactly 6.00.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

from bookbuyback.kernel.errors import ValidationError

CENT = Decimal("0.01")
DEFAULT_CURRENCY = "USD"


def to_decimal(value: Any) -> Decimal:
    """Convert int/str/Decimal (or float via its repr) to Decimal"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round2(value: Any) -> Decimal:
    """Round to two decimal places, half-up"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_whole(value: Any) -> Decimal:
    """Round to a whole currency unit, half-up"""
    return to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


class Money(BaseModel):
    """
    Non-negative amount in one currency

    Arithmetic between different currencies is refused.
    """

    amount: Decimal = Field(..., ge=0)
    currency: str = DEFAULT_CURRENCY

    model_config = {"frozen": True}

    @field_validator("amount", mode="before")
    @classmethod
    def _quantize(cls, v: Any) -> Decimal:
        return round2(v)

    @classmethod
    def of(cls, amount: Any, currency: str = DEFAULT_CURRENCY) -> "Money":
        """
        Raises:
            ValidationError: If the amount is negative
        """
        value = round2(amount)
        if value < 0:
            raise ValidationError("Amount cannot be negative")
        return cls(amount=value, currency=currency)

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(amount=Decimal("0"), currency=currency)

    def _same_currency(self, other: "Money", verb: str) -> None:
        if self.currency != other.currency:
            raise ValidationError(f"Cannot {verb} different currencies")

    def add(self, other: "Money") -> "Money":
        self._same_currency(other, "add")
        return Money.of(self.amount + other.amount, self.currency)

    def subtract(self, other: "Money") -> "Money":
        self._same_currency(other, "subtract")
        if self.amount < other.amount:
            raise ValidationError("Result cannot be negative")
        return Money.of(self.amount - other.amount, self.currency)

    def multiply(self, factor: Any) -> "Money":
        factor = to_decimal(factor)
        if factor < 0:
            raise ValidationError("Factor cannot be negative")
        return Money.of(self.amount * factor, self.currency)

    def __str__(self) -> str:
        return f"{self.amount:.2f} {self.currency}"
