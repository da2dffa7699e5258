"""Address domain exceptions."""

from __future__ import annotations

from uuid import UUID


class AddressNotFound(Exception):
    """The address does not exist, is deleted, or belongs to another user."""

    code = "AddressNotFound"

    def __init__(self, address_id: UUID | str | None) -> None:
        self.address_id = str(address_id) if address_id else None
        super().__init__(f"Address {self.address_id} not found.")
