from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IReadRepository

if TYPE_CHECKING:
    from modules.payments.models import PaymentMethod


class IPaymentMethodRepository(IReadRepository["PaymentMethod"]):
    @abstractmethod
    def get_active(self, id: UUID | str) -> Optional["PaymentMethod"]:
        """Payment method that can be used for new orders."""
