"""Order price arithmetic: shipping fee by city and order totals.

All amounts are whole VND ``Decimal`` values.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from django.conf import settings
from pydantic import BaseModel, ConfigDict, model_validator


def _normalize_city(value: str) -> str:
    return " ".join(value.replace(".", ". ").split()).casefold()


def is_inner_city(city: str) -> bool:
    """Whether ``city`` names one of ``SHIPPING_INNER_CITIES``.

    Matching is case-insensitive and the inner city name must appear whole
    in ``city`` ("Quận 1, TP. HCM" matches "TP.HCM"); a fragment such as
    "TP" or "Hồ" does not match.
    """
    if not city:
        return False
    normalized = _normalize_city(city)
    for candidate in settings.SHIPPING_INNER_CITIES:
        inner = _normalize_city(candidate)
        if inner and inner in normalized:
            return True
    return False


def shipping_fee_for(city: str) -> Decimal:
    if is_inner_city(city):
        return settings.SHIPPING_FEE_INNER_CITY
    return settings.SHIPPING_FEE_OTHER_LOCATIONS


class OrderTotals(BaseModel):
    """Frozen money breakdown of an order.

    ``total = subtotal - discount_amount`` and
    ``final_total = total + shipping_fee``.
    """

    model_config = ConfigDict(frozen=True)

    subtotal: Decimal
    discount_amount: Decimal = Decimal("0")
    total: Decimal
    shipping_fee: Decimal
    final_total: Decimal

    @model_validator(mode="after")
    def amounts_are_consistent(self):
        if self.discount_amount < 0 or self.discount_amount > self.subtotal:
            raise ValueError("Discount must be between zero and the subtotal.")
        if self.total != self.subtotal - self.discount_amount:
            raise ValueError("total must equal subtotal - discount_amount.")
        if self.final_total != self.total + self.shipping_fee:
            raise ValueError("final_total must equal total + shipping_fee.")
        return self

    @classmethod
    def compute(
        cls,
        line_totals: Iterable[Decimal],
        discount_amount: Decimal,
        shipping_fee: Decimal,
    ) -> OrderTotals:
        subtotal = sum(line_totals, Decimal("0"))
        total = subtotal - discount_amount
        return cls(
            subtotal=subtotal,
            discount_amount=discount_amount,
            total=total,
            shipping_fee=shipping_fee,
            final_total=total + shipping_fee,
        )
