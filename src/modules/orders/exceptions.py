"""Order domain exceptions.

Raised by the state machine and the order service when business rules
are violated. The API layer (Views) catches these and translates them into
HTTP responses; ``code`` is the stable name sent to clients.

Errors owned by other contexts (stock, addresses, payment methods,
vouchers) are re-exported here so callers have a single import point.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from modules.addresses.exceptions import AddressNotFound
from modules.inventory.exceptions import (
    AtomicReservationFailure,
    InactiveVariant,
    InsufficientStock,
    VariantNotFound,
)
from modules.payments.exceptions import PaymentMethodNotFound
from modules.vouchers.exceptions import VoucherNotApplicable, VoucherNotFound

__all__ = [
    "AddressNotFound",
    "AtomicReservationFailure",
    "BackwardTransition",
    "IdempotencyKeyReused",
    "IllegalStatusTransition",
    "InactiveVariant",
    "InsufficientStock",
    "OrderNotFound",
    "PaymentMethodNotFound",
    "PaymentStatusNotAdminControlled",
    "TerminalStateImmutable",
    "TransitionError",
    "VariantNotFound",
    "VoucherNotApplicable",
    "VoucherNotFound",
]


class OrderNotFound(Exception):
    """The order does not exist, or is not visible to the caller."""

    code = "OrderNotFound"

    def __init__(self, order_id: UUID | str) -> None:
        self.order_id = str(order_id)
        super().__init__(f"Order {self.order_id} not found.")


class TransitionError(Exception):
    """Base class for rejected status / payment-status changes."""

    code = "TransitionError"

    def __init__(
        self,
        message: str,
        current_status: Optional[str] = None,
        requested_status: Optional[str] = None,
        current_payment_status: Optional[str] = None,
        requested_payment_status: Optional[str] = None,
    ) -> None:
        self.current_status = current_status
        self.requested_status = requested_status
        self.current_payment_status = current_payment_status
        self.requested_payment_status = requested_payment_status
        super().__init__(message)

    def context(self) -> dict:
        """Non-empty offending values, for error responses and logs."""
        values = {
            "current_status": self.current_status,
            "requested_status": self.requested_status,
            "current_payment_status": self.current_payment_status,
            "requested_payment_status": self.requested_payment_status,
        }
        return {key: value for key, value in values.items() if value is not None}


class IllegalStatusTransition(TransitionError):
    """Skipped step, self transition, or a cancel outside pending/processing."""

    code = "IllegalStatusTransition"


class BackwardTransition(TransitionError):
    """The requested status is earlier on the forward path."""

    code = "BackwardTransition"


class TerminalStateImmutable(TransitionError):
    """The order is delivered or cancelled; nothing may change."""

    code = "TerminalStateImmutable"


class PaymentStatusNotAdminControlled(TransitionError):
    """Payment status belongs to the gateway (online) or the delivery flow (COD)."""

    code = "PaymentStatusNotAdminControlled"


class IdempotencyKeyReused(Exception):
    """The idempotency key already belongs to another user's order."""

    code = "IdempotencyKeyReused"

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__("Idempotency-Key has already been used.")
