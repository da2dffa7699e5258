"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CreateOrderItemDTO``: input for a single order line.
- ``CreateOrderDTO``: input for order creation (nested items).
- ``QuoteOrderDTO``: input for a price preview; nothing is reserved.
- ``OrderItemOutputDTO``: a persisted order line, as carried by events.
- ``OrderQuoteDTO``: priced preview with advisory stock flags.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    computed_field,
    field_validator,
    model_validator,
)

if TYPE_CHECKING:
    from modules.orders.models import OrderItem


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """One requested line: which variant and how many.

    Prices are never taken from the client; the service reads them from
    the catalog.
    """

    model_config = ConfigDict(frozen=True)

    variant_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class OrderLinesDTO(BaseModel):
    """Lines, delivery address and voucher shared by create and quote.

    Validates:
    - ``items`` must contain at least one line.
    - A variant appears at most once.
    """

    model_config = ConfigDict(frozen=True)

    user_id: int
    items: List[CreateOrderItemDTO]
    address_id: UUID
    voucher_id: Optional[UUID] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @model_validator(mode="after")
    def no_duplicate_variants(self):
        variant_ids = [item.variant_id for item in self.items]
        if len(variant_ids) != len(set(variant_ids)):
            raise ValueError("Duplicate variant IDs are not allowed in the same order.")
        return self


class CreateOrderDTO(OrderLinesDTO):
    """Immutable DTO for order creation requests."""

    payment_method_id: UUID
    notes: Optional[str] = ""
    idempotency_key: Optional[str] = None


class QuoteOrderDTO(OrderLinesDTO):
    """Price preview request; nothing is reserved or written."""


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderItemOutputDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    variant_id: UUID
    variant_sku: str
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    @classmethod
    def from_entity(cls, item: OrderItem) -> OrderItemOutputDTO:
        return cls(
            id=item.id,
            variant_id=item.variant_id,
            variant_sku=item.variant_sku,
            product_name=item.product_name,
            quantity=item.quantity,
            unit_price=item.unit_price,
            line_total=item.line_total,
        )



class QuoteLineDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant_id: UUID
    variant_sku: str
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    in_stock: bool


class OrderQuoteDTO(BaseModel):
    """What ``create_order`` would charge right now.

    ``in_stock`` and ``can_fulfil`` are advisory: stock may be taken by
    another order before this one is placed.
    """

    model_config = ConfigDict(frozen=True)

    lines: List[QuoteLineDTO]
    subtotal: Decimal
    discount_amount: Decimal
    total: Decimal
    shipping_fee: Decimal
    final_total: Decimal
    shipping_city: str

    @computed_field
    @property
    def can_fulfil(self) -> bool:
        return all(line.in_stock for line in self.lines)
