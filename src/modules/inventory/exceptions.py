"""Inventory domain exceptions.

Raised by the stock ledger and by the order service while validating
order lines. The API layer translates them into HTTP responses.
"""

from __future__ import annotations

from uuid import UUID


class VariantNotFound(Exception):
    """A product variant referenced by an order line does not exist."""

    code = "VariantNotFound"

    def __init__(self, variant_id: UUID | str) -> None:
        self.variant_id = str(variant_id)
        super().__init__(f"Product variant {self.variant_id} not found.")


class InactiveVariant(Exception):
    """The variant (or its product) is inactive or deleted and cannot be sold."""

    code = "InactiveVariant"

    def __init__(self, variant_id: UUID | str) -> None:
        self.variant_id = str(variant_id)
        super().__init__(f"Product variant {self.variant_id} is not available for sale.")


class InsufficientStock(Exception):
    """The ledger could not reserve the requested quantity for a variant."""

    code = "InsufficientStock"

    def __init__(
        self,
        variant_id: UUID | str,
        requested: int,
        available: int | None = None,
        message: str | None = None,
    ) -> None:
        self.variant_id = str(variant_id)
        self.requested = requested
        self.available = available
        super().__init__(
            message
            or (
                f"Insufficient stock for variant {self.variant_id}: "
                f"requested {requested}, available {available}."
            )
        )


class AtomicReservationFailure(InsufficientStock):
    """The storage layer could not complete the conditional decrement.

    Lock wait timeouts, deadlocks and similar contention errors. Callers
    treat it like ``InsufficientStock``; the order is never created.
    """

    code = "AtomicReservationFailure"

    def __init__(
        self,
        variant_id: UUID | str,
        requested: int,
        available: int | None = None,
    ) -> None:
        super().__init__(
            variant_id,
            requested,
            available,
            message=(
                f"Stock reservation for variant {variant_id} could not be "
                "completed atomically; please retry."
            ),
        )
