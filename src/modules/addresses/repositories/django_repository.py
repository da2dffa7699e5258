"""Django ORM implementation of the Address repository."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.core.exceptions import ValidationError

from modules.addresses.models import Address
from modules.addresses.repositories.interfaces import IAddressRepository


class AddressDjangoRepository(IAddressRepository):
    def get_by_id(self, id: str) -> Optional[Address]:
        return self.get_alive(id)

    def get_alive(
        self, id: UUID | str, user_id: Optional[int] = None
    ) -> Optional[Address]:
        if not id:
            return None
        queryset = Address.objects.alive().filter(id=id)
        if user_id is not None:
            queryset = queryset.filter(user_id=user_id)
        try:
            return queryset.first()
        except (ValueError, ValidationError):
            return None

    def get_including_deleted(self, id: UUID | str) -> Optional[Address]:
        if not id:
            return None
        try:
            return Address.objects.filter(id=id).first()
        except (ValueError, ValidationError):
            return None

