"""Payment method exceptions."""

from __future__ import annotations

from uuid import UUID


class PaymentMethodNotFound(Exception):
    """Unknown or disabled payment method."""

    code = "PaymentMethodNotFound"

    def __init__(self, payment_method_id: UUID | str) -> None:
        self.payment_method_id = str(payment_method_id)
        super().__init__(f"Payment method {self.payment_method_id} not found.")
