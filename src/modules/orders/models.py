"""Order, OrderItem, and OrderStatusHistory models.

Rules held by the schema:
- ``final_total == total + shipping_fee`` (check constraint).
- Order lines copy sku, product name and unit price at creation; they are
  never recomputed from the live catalog.
- ``address_snapshot`` is written once at creation and is the address the
  order displays. ``address`` is only a weak link (``SET_NULL``).
- Idempotency via ``idempotency_key`` unique constraint.
- History rows are append-only.

Status rules live in ``modules.orders.state_machine``; nothing here
validates transitions.
"""

from __future__ import annotations

import secrets
from decimal import Decimal
from typing import Any

import structlog
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel, SoftDeleteModel
from modules.orders.constants import (
    ORDER_NUMBER_DIGITS,
    ORDER_NUMBER_MAX_RETRIES,
    TERMINAL_STATES,
    Actor,
    OrderStatus,
    PaymentStatus,
)
from modules.payments.models import PaymentMethodKind
from shared.domain.events import DomainEventMixin

logger = structlog.get_logger(__name__)

MONEY = {"max_digits": 14, "decimal_places": 0}


class Order(DomainEventMixin, SoftDeleteModel):
    """Order aggregate root.

    ``order_number`` is a human-readable identifier generated on first save
    (format: ``DH<year><8 digits>``). The UUIDv7 ``id`` is used for all
    internal references and API lookups.

    ``address_snapshot`` is nullable only for rows created before snapshots
    existed; ``manage.py backfill_address_snapshots`` repairs them.
    """

    order_number = models.CharField(max_length=20, unique=True, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.UNPAID,
    )
    payment_method = models.ForeignKey(
        "payments.PaymentMethod",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    payment_method_kind = models.CharField(
        max_length=20,
        choices=PaymentMethodKind.choices,
        editable=False,
    )
    payment_reference = models.CharField(max_length=255, blank=True, default="")
    address = models.ForeignKey(
        "addresses.Address",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    address_snapshot = models.JSONField(null=True, blank=True, default=None)
    voucher = models.ForeignKey(
        "vouchers.Voucher",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    subtotal = models.DecimalField(**MONEY, default=Decimal("0"))
    discount_amount = models.DecimalField(**MONEY, default=Decimal("0"))
    total = models.DecimalField(**MONEY, default=Decimal("0"))
    shipping_fee = models.DecimalField(**MONEY, default=Decimal("0"))
    final_total = models.DecimalField(**MONEY, default=Decimal("0"))
    notes = models.TextField(blank=True, default="")
    idempotency_key = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["user", "-created_at"], name="orders_user_created_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    final_total=models.F("total") + models.F("shipping_fee")
                ),
                name="orders_final_total_consistent",
            ),
            models.CheckConstraint(
                condition=models.Q(total=models.F("subtotal") - models.F("discount_amount")),
                name="orders_total_consistent",
            ),
            models.CheckConstraint(
                condition=models.Q(discount_amount__gte=0)
                & models.Q(shipping_fee__gte=0)
                & models.Q(total__gte=0),
                name="orders_amounts_non_negative",
            ),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def is_cash_on_delivery(self) -> bool:
        return self.payment_method_kind == PaymentMethodKind.CASH_ON_DELIVERY

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """``DH<year><8 random digits>``, e.g. ``DH202604815162``."""
        digits = "".join(secrets.choice("0123456789") for _ in range(ORDER_NUMBER_DIGITS))
        return f"{settings.ORDER_NUMBER_PREFIX}{timezone.now():%Y}{digits}"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            for _ in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status}/{self.payment_status})"


class OrderItem(BaseModel):
    """Order line.

    ``variant_sku``, ``product_name`` and ``unit_price`` are copied from the
    catalog when the order is created; ``line_total`` is
    ``quantity * unit_price``.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    variant = models.ForeignKey(
        "inventory.ProductVariant",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    variant_sku = models.CharField(max_length=64)
    product_name = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(**MONEY)
    line_total = models.DecimalField(**MONEY, editable=False)

    class Meta:
        db_table = "order_items"
        ordering = ["variant_sku"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
            models.UniqueConstraint(
                fields=["order", "variant"],
                name="order_items_unique_variant_per_order",
            ),
        ]

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.line_total = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.variant_sku} x{self.quantity} ({self.line_total})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for status and payment-status changes.

    ``user`` is nullable: the gateway and system actors have no user.
    """

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status = models.CharField(max_length=20, choices=OrderStatus.choices)
    old_payment_status = models.CharField(  # noqa: DJ01
        max_length=20,
        choices=PaymentStatus.choices,
        null=True,
        blank=True,
    )
    new_payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices)
    actor = models.CharField(max_length=20, choices=Actor.choices)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["order", "created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"{self.order_id}: {self.old_status}/{self.old_payment_status} -> "
            f"{self.new_status}/{self.new_payment_status} by {self.actor}"
        )
