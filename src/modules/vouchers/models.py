from __future__ import annotations

from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from modules.core.models import BaseModel


class Voucher(BaseModel):
    """Percentage discount code with an order-value window and a cap.

    Usage is counted over the user's orders that are not cancelled.
    """

    code = models.CharField(max_length=50, unique=True)
    discount_percent = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(100)],
    )
    minimum_order_value = models.DecimalField(
        max_digits=14, decimal_places=0, default=Decimal("0")
    )
    maximum_order_value = models.DecimalField(
        max_digits=14, decimal_places=0, null=True, blank=True, default=None
    )
    maximum_discount_amount = models.DecimalField(
        max_digits=14, decimal_places=0, null=True, blank=True, default=None
    )
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()
    is_active = models.BooleanField(default=True)
    # Only enforced when is_one_time_per_user is set.
    usage_limit = models.PositiveIntegerField(default=1)
    is_one_time_per_user = models.BooleanField(default=False)

    class Meta:
        db_table = "vouchers"
        ordering = ["-start_date"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_date__gt=models.F("start_date")),
                name="vouchers_end_after_start",
            ),
            models.CheckConstraint(
                condition=models.Q(discount_percent__gte=1)
                & models.Q(discount_percent__lte=100),
                name="vouchers_percent_range",
            ),
        ]

    def save(self, *args, **kwargs) -> None:
        if self.code:
            self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.code} (-{self.discount_percent}%)"
