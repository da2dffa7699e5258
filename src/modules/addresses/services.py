"""Address snapshot service.

An order copies its delivery address once, at creation, and from then on
shows that copy. The live ``Address`` row stays editable and deletable by
its owner without touching any order placed with it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol
from uuid import UUID

import structlog
from django.utils import timezone
from pydantic import ValidationError

from modules.addresses.dtos import (
    DISPLAY_FIELDS,
    AddressSnapshotDTO,
    AddressUnavailable,
    DisplayAddressDTO,
)
from modules.addresses.exceptions import AddressNotFound
from modules.addresses.models import Address
from modules.addresses.repositories.interfaces import IAddressRepository

logger = structlog.get_logger(__name__)


class HasDeliveryAddress(Protocol):
    id: Any
    address_id: Optional[UUID]
    address_snapshot: Optional[dict]


def snapshot_from_address(
    address: Address, captured_at: Optional[datetime] = None
) -> AddressSnapshotDTO:
    """Copy the display fields of ``address`` and stamp ``captured_at`` (now by default)."""
    return AddressSnapshotDTO(
        full_name=address.full_name,
        phone=address.phone,
        address_line=address.address_line,
        ward=address.ward,
        district=address.district,
        city=address.city,
        postal_code=address.postal_code,
        is_default=address.is_default,
        captured_at=captured_at or timezone.now(),
    )


class AddressSnapshotService:
    def __init__(self, repository: IAddressRepository) -> None:
        self._repository = repository

    def capture(
        self, address_id: UUID | str, user_id: Optional[int] = None
    ) -> AddressSnapshotDTO:
        """Snapshot a live, non-deleted address.

        When ``user_id`` is given the address must belong to that user;
        someone else's address is reported exactly like a missing one.

        Raises:
            AddressNotFound: missing, soft-deleted, or not owned by the user.
        """
        address = self._repository.get_alive(address_id, user_id=user_id)
        if address is None:
            logger.info(
                "address.snapshot_missing",
                address_id=str(address_id),
                user_id=user_id,
            )
            raise AddressNotFound(address_id)
        return snapshot_from_address(address)

    def resolve_for_display(
        self, order: HasDeliveryAddress
    ) -> DisplayAddressDTO | AddressUnavailable:
        """Resolve the address to show for ``order``.

        Snapshot values always win over the live row. The live row only
        fills in the ``address_id`` link (and a ``live_differs`` hint), or
        stands in alone for legacy orders that were never snapshotted.
        """
        snapshot = self._load_snapshot(order)
        live = self._repository.get_alive(order.address_id) if order.address_id else None

        if snapshot is not None:
            values = {name: getattr(snapshot, name) for name in DISPLAY_FIELDS}
            live_differs = False
            if live is not None:
                live_differs = any(
                    getattr(live, name) != values[name] for name in DISPLAY_FIELDS
                )
            return DisplayAddressDTO(
                **values,
                source="snapshot",
                address_id=live.id if live is not None else None,
                captured_at=snapshot.captured_at,
                live_differs=live_differs,
            )

        if live is not None:
            logger.warning(
                "address.live_fallback",
                order_id=str(order.id),
                address_id=str(live.id),
            )
            return DisplayAddressDTO(
                **{name: getattr(live, name) for name in DISPLAY_FIELDS},
                source="live",
                address_id=live.id,
                needs_manual_review=True,
            )

        logger.warning("address.unavailable", order_id=str(order.id))
        return AddressUnavailable()

    @staticmethod
    def _load_snapshot(order: HasDeliveryAddress) -> Optional[AddressSnapshotDTO]:
        if not order.address_snapshot:
            return None
        try:
            return AddressSnapshotDTO.model_validate(order.address_snapshot)
        except ValidationError as exc:
            logger.error(
                "address.snapshot_invalid",
                order_id=str(order.id),
                errors=exc.error_count(),
            )
            return None
