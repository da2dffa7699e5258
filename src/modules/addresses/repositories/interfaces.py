from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from modules.core.repositories.interfaces import IReadRepository

if TYPE_CHECKING:
    from modules.addresses.models import Address


class IAddressRepository(IReadRepository["Address"]):
    """Read access to user addresses for snapshot capture and display."""

    @abstractmethod
    def get_alive(
        self, id: UUID | str, user_id: Optional[int] = None
    ) -> Optional["Address"]:
        """Non-deleted address, restricted to ``user_id`` when given."""

    @abstractmethod
    def get_including_deleted(self, id: UUID | str) -> Optional["Address"]:
        """Address row if it still exists in storage, soft-deleted or not."""
