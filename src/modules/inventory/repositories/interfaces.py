"""Inventory repository interfaces.

``IStockLedger`` is the only write path to a variant's stock count.
``IVariantRepository`` covers the catalog reads the order service needs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Tuple
from uuid import UUID

from modules.core.repositories.interfaces import IReadRepository
from modules.inventory.dtos import ReservationResult

if TYPE_CHECKING:
    from modules.inventory.models import ProductVariant


class IVariantRepository(IReadRepository["ProductVariant"]):
    """Read access to product variants; the catalog is managed elsewhere."""

    @abstractmethod
    def get_many(self, ids: Iterable[UUID | str]) -> Dict[str, "ProductVariant"]:
        """Fetch variants (with their product) keyed by ``str(id)``.

        Soft-deleted variants are included so callers can tell "deleted"
        apart from "never existed".
        """


class IStockLedger(ABC):
    """Per-variant stock counter with atomic conditional reservation."""

    @abstractmethod
    def try_reserve(self, variant_id: UUID | str, quantity: int) -> ReservationResult:
        """Decrement stock by ``quantity`` only if enough is available.

        A single conditional write; never a read followed by a write.

        Raises:
            ValueError: ``quantity`` is not positive.
            AtomicReservationFailure: the storage layer could not complete
                the conditional write (lock timeout, deadlock).
        """

    @abstractmethod
    def release(self, variant_id: UUID | str, quantity: int) -> bool:
        """Unconditionally add ``quantity`` back. ``False`` if the row is gone."""

    @abstractmethod
    def check_available(self, variant_id: UUID | str, quantity: int) -> bool:
        """Advisory only: the answer may be stale by the time it is used."""

    @abstractmethod
    def get_available(self, variant_id: UUID | str) -> Optional[int]:
        """Current stock count, or ``None`` for an unknown variant."""

    def release_all(self, reservations: Iterable[Tuple[str, int]]) -> None:
        """Give back every ``(variant_id, quantity)`` pair, most recent first."""
        for variant_id, quantity in reversed(list(reservations)):
            self.release(variant_id, quantity)
