"""Order repository interface.

Extends ``IRepository[Order]`` with what the Order aggregate needs:
creation together with its lines, row locking for status changes, status
history and idempotency-key look-up.

The service layer and the state machine depend exclusively on this
contract.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional
from uuid import UUID

from django.db import models

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The aggregate includes ``OrderItem`` children and
    ``OrderStatusHistory`` records.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its lines.

        ``data`` carries the order fields (``user_id``,
        ``payment_method_id``, ``payment_method_kind``, ``address_id``,
        ``address_snapshot``, ``voucher_id``, the totals, ``notes``,
        ``idempotency_key``) and ``items``: dicts with ``variant_id``,
        ``variant_sku``, ``product_name``, ``quantity``, ``unit_price``.
        """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with prefetched items and status history."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (``SELECT FOR UPDATE``)."""

    @abstractmethod
    def list(
        self, filters: Optional[Dict[str, Any]] = None
    ) -> "models.QuerySet[Order]":
        """List orders with optional filters."""

    @abstractmethod
    def add_history(
        self,
        order_id: UUID,
        status: str,
        payment_status: str,
        actor: str,
        old_status: Optional[str] = None,
        old_payment_status: Optional[str] = None,
        user_id: Optional[int] = None,
        notes: str = "",
    ) -> OrderStatusHistory:
        """Append a row to the order's audit trail."""

    @abstractmethod
    def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        """Retrieve an order by its idempotency key."""

    @abstractmethod
    def missing_address_snapshot(self) -> "models.QuerySet[Order]":
        """Orders created before snapshots existed (``address_snapshot`` null)."""
