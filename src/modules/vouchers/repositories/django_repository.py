from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.core.exceptions import ValidationError

from modules.orders.constants import OrderStatus
from modules.orders.models import Order
from modules.vouchers.models import Voucher
from modules.vouchers.repositories.interfaces import IVoucherRepository


def _orders_using_vouchers(user_id: int):
    return (
        Order.objects.alive()
        .filter(user_id=user_id, voucher__isnull=False)
        .exclude(status=OrderStatus.CANCELLED)
    )


class VoucherDjangoRepository(IVoucherRepository):
    def get_by_id(self, id: str) -> Optional[Voucher]:
        try:
            return Voucher.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def count_user_usage(self, voucher_id: UUID | str, user_id: int) -> int:
        return _orders_using_vouchers(user_id).filter(voucher_id=voucher_id).count()

    def last_used_voucher(self, user_id: int) -> Optional[Voucher]:
        order = (
            _orders_using_vouchers(user_id)
            .select_related("voucher")
            .order_by("-created_at")
            .first()
        )
        return order.voucher if order else None
