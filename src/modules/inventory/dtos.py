"""Inventory DTOs (Pydantic v2, immutable)."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ReservationResult(BaseModel):
    """Outcome of ``try_reserve``.

    ``remaining`` is the variant's stock after the attempt: the decremented
    value when ``ok`` is ``True``, the untouched value otherwise (``None``
    when the variant row does not exist).
    """

    model_config = ConfigDict(frozen=True)

    ok: bool
    remaining: int | None = None


class SellableVariantDTO(BaseModel):
    """Catalog data captured on an order line at creation time."""

    model_config = ConfigDict(frozen=True)

    variant_id: UUID
    sku: str
    product_name: str
    unit_price: Decimal
