"""Domain events for the Orders bounded context.

Fields need defaults because ``DomainEvent`` already declares defaulted
fields before them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Raised when an order is created (stock already reserved)."""

    order_number: str = ""
    user_id: Optional[int] = None
    final_total: str = "0"
    items: List[dict] = field(default_factory=list)


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    """Raised when an order is cancelled and its stock released."""

    order_number: str = ""
    previous_status: str = ""
    actor: str = ""
    released: List[dict] = field(default_factory=list)


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised when an order moves along the forward path."""

    old_status: str = ""
    new_status: str = ""
    actor: str = ""


@dataclass(frozen=True)
class OrderPaymentStatusChanged(DomainEvent):
    """Raised when the payment status of an order changes."""

    old_payment_status: str = ""
    new_payment_status: str = ""
    actor: str = ""
    reference: str = ""
