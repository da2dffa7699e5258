"""Django ORM implementations of the inventory repositories."""

from __future__ import annotations

from typing import Dict, Iterable, Optional
from uuid import UUID

import structlog
from django.core.exceptions import ValidationError
from django.db import OperationalError, transaction
from django.db.models import F
from django.utils import timezone

from modules.inventory.dtos import ReservationResult
from modules.inventory.exceptions import AtomicReservationFailure
from modules.inventory.models import ProductVariant
from modules.inventory.repositories.interfaces import IStockLedger, IVariantRepository

logger = structlog.get_logger(__name__)


class VariantDjangoRepository(IVariantRepository):
    """Concrete variant repository backed by Django ORM."""

    def get_by_id(self, id: str) -> Optional[ProductVariant]:
        try:
            return (
                ProductVariant.objects.select_related("product").filter(id=id).first()
            )
        except (ValueError, ValidationError):
            return None

    def get_many(self, ids: Iterable[UUID | str]) -> Dict[str, ProductVariant]:
        try:
            variants = ProductVariant.objects.select_related("product").filter(
                id__in=list(ids)
            )
            return {str(variant.id): variant for variant in variants}
        except (ValueError, ValidationError):
            return {}


class StockLedgerDjangoRepository(IStockLedger):
    """Stock ledger over ``ProductVariant.stock_quantity``.

    Reservation is ``UPDATE ... SET stock_quantity = stock_quantity - q
    WHERE id = v AND stock_quantity >= q``; the affected-row count decides
    success, so two concurrent reservations can never both consume the last
    units. The write runs in a savepoint of the caller's transaction, so a
    contention error leaves that transaction usable for compensation and
    the order service can still roll every line back together.
    """

    @staticmethod
    def _check_quantity(quantity: int) -> None:
        if quantity <= 0:
            raise ValueError(f"Quantity must be positive, got {quantity}.")

    def try_reserve(self, variant_id: UUID | str, quantity: int) -> ReservationResult:
        self._check_quantity(quantity)
        log = logger.bind(variant_id=str(variant_id), quantity=quantity)
        try:
            with transaction.atomic():
                updated = ProductVariant.objects.filter(
                    id=variant_id, stock_quantity__gte=quantity
                ).update(
                    stock_quantity=F("stock_quantity") - quantity,
                    updated_at=timezone.now(),
                )
                remaining = self.get_available(variant_id)
        except OperationalError as exc:
            log.warning("stock.reserve_contention", error=str(exc))
            raise AtomicReservationFailure(variant_id, quantity) from exc

        if updated == 1:
            log.info("stock.reserved", remaining=remaining)
            return ReservationResult(ok=True, remaining=remaining)

        log.info("stock.reserve_rejected", available=remaining)
        return ReservationResult(ok=False, remaining=remaining)

    def release(self, variant_id: UUID | str, quantity: int) -> bool:
        self._check_quantity(quantity)
        updated = ProductVariant.objects.filter(id=variant_id).update(
            stock_quantity=F("stock_quantity") + quantity,
            updated_at=timezone.now(),
        )
        if updated == 0:
            logger.error(
                "stock.release_missing_variant",
                variant_id=str(variant_id),
                quantity=quantity,
            )
            return False
        logger.info("stock.released", variant_id=str(variant_id), quantity=quantity)
        return True

    def check_available(self, variant_id: UUID | str, quantity: int) -> bool:
        available = self.get_available(variant_id)
        return available is not None and available >= quantity

    def get_available(self, variant_id: UUID | str) -> Optional[int]:
        return (
            ProductVariant.objects.filter(id=variant_id)
            .values_list("stock_quantity", flat=True)
            .first()
        )

