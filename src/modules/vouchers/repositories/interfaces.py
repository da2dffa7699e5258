from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IReadRepository

if TYPE_CHECKING:
    from modules.vouchers.models import Voucher


class IVoucherRepository(IReadRepository["Voucher"]):
    """Vouchers plus the usage history kept on orders.

    Cancelled orders never count as a use.
    """

    @abstractmethod
    def count_user_usage(self, voucher_id: UUID | str, user_id: int) -> int:
        """How many of the user's orders applied this voucher."""

    @abstractmethod
    def last_used_voucher(self, user_id: int) -> Optional["Voucher"]:
        """Voucher of the user's most recent order that applied one."""
