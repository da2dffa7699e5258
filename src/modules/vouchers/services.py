"""Voucher discount rules."""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from typing import Optional

import structlog
from django.conf import settings
from django.utils import timezone

from modules.vouchers.exceptions import VoucherNotApplicable
from modules.vouchers.models import Voucher
from modules.vouchers.repositories.interfaces import IVoucherRepository

logger = structlog.get_logger(__name__)

VND = Decimal("1")


class VoucherService:
    """Computes the discount a voucher grants on a given subtotal.

    The discount is ``subtotal * percent / 100`` capped by the smaller of
    ``VOUCHER_MAX_DISCOUNT_RATIO`` of the subtotal and the voucher's own
    ``maximum_discount_amount`` (``VOUCHER_DEFAULT_MAX_DISCOUNT`` when the
    voucher does not set one). Amounts are whole VND, rounded down.

    With a ``user_id`` the usage rules apply as well: a user sticks to the
    one voucher they used first, and a one-time-per-user voucher stops
    applying once ``usage_limit`` of their orders carry it. Cancelled
    orders give the use back.
    """

    def __init__(self, repository: Optional[IVoucherRepository] = None) -> None:
        self._repository = repository

    def compute_discount(
        self,
        voucher: Voucher,
        subtotal: Decimal,
        at: Optional[datetime] = None,
        user_id: Optional[int] = None,
    ) -> Decimal:
        """Raises ``VoucherNotApplicable`` when the voucher cannot be used."""
        at = at or timezone.now()

        if not voucher.is_active:
            raise VoucherNotApplicable(voucher.code, "voucher is inactive")
        if at < voucher.start_date:
            raise VoucherNotApplicable(voucher.code, "voucher is not yet valid")
        if at > voucher.end_date:
            raise VoucherNotApplicable(voucher.code, "voucher has expired")
        if subtotal < voucher.minimum_order_value:
            raise VoucherNotApplicable(
                voucher.code,
                f"minimum order value is {voucher.minimum_order_value}",
            )
        if (
            voucher.maximum_order_value is not None
            and subtotal > voucher.maximum_order_value
        ):
            raise VoucherNotApplicable(
                voucher.code,
                f"maximum order value is {voucher.maximum_order_value}",
            )
        if user_id is not None:
            self._check_usage(voucher, user_id)

        discount = subtotal * Decimal(voucher.discount_percent) / Decimal(100)
        cap_by_ratio = subtotal * settings.VOUCHER_MAX_DISCOUNT_RATIO
        cap_by_amount = (
            voucher.maximum_discount_amount or settings.VOUCHER_DEFAULT_MAX_DISCOUNT
        )
        discount = min(discount, cap_by_ratio, cap_by_amount).quantize(
            VND, rounding=ROUND_DOWN
        )

        logger.info(
            "voucher.applied",
            voucher_code=voucher.code,
            subtotal=str(subtotal),
            discount=str(discount),
        )
        return discount

    def _check_usage(self, voucher: Voucher, user_id: int) -> None:
        if self._repository is None:
            raise RuntimeError("Voucher usage checks need a voucher repository.")

        previous = self._repository.last_used_voucher(user_id)
        if previous is not None and previous.id != voucher.id:
            raise VoucherNotApplicable(
                voucher.code,
                f"voucher {previous.code} was already used on this account",
            )
        if voucher.is_one_time_per_user:
            used = self._repository.count_user_usage(voucher.id, user_id)
            if used >= voucher.usage_limit:
                raise VoucherNotApplicable(voucher.code, "usage limit reached")
