"""Address snapshot DTOs.

- ``AddressSnapshotDTO``: the copy stored on an order at creation time.
- ``DisplayAddressDTO``: what the order's delivery address resolves to.
- ``AddressUnavailable``: marker returned when nothing can be shown.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

DISPLAY_FIELDS: tuple[str, ...] = (
    "full_name",
    "phone",
    "address_line",
    "ward",
    "district",
    "city",
    "postal_code",
)


class AddressSnapshotDTO(BaseModel):
    """Immutable structural copy of an address.

    Carries no identity link back to the source row.
    """

    model_config = ConfigDict(frozen=True)

    full_name: str
    phone: str
    address_line: str
    ward: str = ""
    district: str = ""
    city: str
    postal_code: str = ""
    is_default: bool = False
    captured_at: datetime

    @field_validator("full_name", "phone", "address_line", "city")
    @classmethod
    def required_text(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Field must not be empty.")
        return v.strip()

    def to_storage(self) -> dict:
        """JSON-ready dict stored in ``Order.address_snapshot``."""
        return self.model_dump(mode="json")


class DisplayAddressDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    full_name: str
    phone: str
    address_line: str
    ward: str = ""
    district: str = ""
    city: str
    postal_code: str = ""
    source: Literal["snapshot", "live"]
    address_id: UUID | None = None
    captured_at: datetime | None = None
    live_differs: bool = False
    needs_manual_review: bool = False


class AddressUnavailable(BaseModel):
    """No snapshot and no live address: the order needs a human to look at it."""

    model_config = ConfigDict(frozen=True)

    needs_manual_review: bool = True
    reason: str = "No address snapshot and the referenced address no longer exists."
