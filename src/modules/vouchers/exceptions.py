"""Voucher exceptions."""

from __future__ import annotations

from uuid import UUID


class VoucherNotFound(Exception):
    code = "VoucherNotFound"

    def __init__(self, voucher_id: UUID | str) -> None:
        self.voucher_id = str(voucher_id)
        super().__init__(f"Voucher {self.voucher_id} not found.")


class VoucherNotApplicable(Exception):
    """The voucher exists but cannot be applied to this order."""

    code = "VoucherNotApplicable"

    def __init__(self, voucher_code: str, reason: str) -> None:
        self.voucher_code = voucher_code
        self.reason = reason
        super().__init__(f"Voucher {voucher_code} cannot be applied: {reason}")
