from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.core.exceptions import ValidationError

from modules.payments.models import PaymentMethod
from modules.payments.repositories.interfaces import IPaymentMethodRepository


class PaymentMethodDjangoRepository(IPaymentMethodRepository):
    def get_by_id(self, id: str) -> Optional[PaymentMethod]:
        try:
            return PaymentMethod.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def get_active(self, id: UUID | str) -> Optional[PaymentMethod]:
        method = self.get_by_id(id)
        if method is None or not method.is_active:
            return None
        return method
