from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel


class PaymentMethodKind(models.TextChoices):
    CASH_ON_DELIVERY = "cash_on_delivery", "Thanh toán khi nhận hàng"
    ONLINE_GATEWAY = "online_gateway", "Cổng thanh toán trực tuyến"


class PaymentMethod(BaseModel):
    """How an order is paid.

    ``kind`` decides who controls the order's payment status: the delivery
    flow for cash on delivery, the gateway callback for online payments.
    """

    name = models.CharField(max_length=100)
    code = models.SlugField(max_length=50, unique=True)
    kind = models.CharField(max_length=20, choices=PaymentMethodKind.choices)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "payment_methods"
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.kind})"
