"""Catalog rows the order engine reads, and the per-variant stock count.

``ProductVariant.stock_quantity`` is the stock ledger entry for a variant.
It is only ever written through ``StockLedgerDjangoRepository`` with
conditional ``UPDATE`` statements; never assign it and call ``save()`` in
order code.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from modules.core.models import SoftDeleteModel


class Product(SoftDeleteModel):
    """Catalog product. Only the fields the order engine needs."""

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    price = models.DecimalField(
        max_digits=12,
        decimal_places=0,
        validators=[MinValueValidator(Decimal("1"))],
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "products"
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__gt=0),
                name="products_price_positive",
            ),
        ]

    def __str__(self) -> str:
        return self.name


class ProductVariant(SoftDeleteModel):
    """Sellable unit (product + color + size) carrying its own stock count."""

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name="variants",
    )
    sku = models.CharField(max_length=64, unique=True)
    color = models.CharField(max_length=50, blank=True, default="")
    size = models.CharField(max_length=20, blank=True, default="")
    price = models.DecimalField(
        max_digits=12,
        decimal_places=0,
        null=True,
        blank=True,
        default=None,
    )
    stock_quantity = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "product_variants"
        ordering = ["sku"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock_quantity__gte=0),
                name="product_variants_stock_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(price__isnull=True) | models.Q(price__gt=0),
                name="product_variants_price_positive",
            ),
        ]

    def save(self, *args, **kwargs) -> None:
        if self.sku:
            self.sku = self.sku.strip().upper()
        super().save(*args, **kwargs)

    @property
    def unit_price(self) -> Decimal:
        """Variant price when set, otherwise the product price."""
        if self.price is not None:
            return self.price
        return self.product.price

    @property
    def is_sellable(self) -> bool:
        return (
            self.is_active
            and not self.is_deleted
            and self.product.is_active
            and not self.product.is_deleted
        )

    def __str__(self) -> str:
        label = " / ".join(part for part in (self.color, self.size) if part)
        return f"{self.sku} - {self.product.name}" + (f" ({label})" if label else "")
