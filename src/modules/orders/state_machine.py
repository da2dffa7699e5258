"""Order state machine.

The only place that decides whether a ``(status, payment_status)`` change
is legal. Rules depend on the current status, the payment method kind the
order was created with, and who is asking:

Status
    ``pending -> processing -> shipped -> delivered``, one step at a time.
    ``cancelled`` only from ``pending`` or ``processing``. ``delivered`` and
    ``cancelled`` are terminal. Customers (and the gateway) may only ask
    for ``cancelled``.

Payment status
    Cash on delivery: becomes ``paid`` as a side effect of ``delivered``;
    nobody sets it by hand, before or after delivery. Online gateway:
    only the gateway signal (``set_payment_status``) sets it. Cancelled
    orders never change payment status.

``evaluate`` is pure; ``transition`` and ``set_payment_status`` persist
the outcome (order row, history row, outbox event). Callers are expected
to hold the order row lock and to run inside a transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import structlog
from pydantic import BaseModel, ConfigDict

from modules.orders.constants import (
    CANCELLABLE_STATES,
    STATUS_RANK,
    TERMINAL_STATES,
    Actor,
    OrderStatus,
    PaymentStatus,
)
from modules.orders.events import OrderPaymentStatusChanged, OrderStatusChanged
from modules.orders.exceptions import (
    BackwardTransition,
    IllegalStatusTransition,
    PaymentStatusNotAdminControlled,
    TerminalStateImmutable,
    TransitionError,
)
from modules.payments.models import PaymentMethodKind

if TYPE_CHECKING:
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

STATUS_ACTORS: frozenset[str] = frozenset({Actor.ADMIN, Actor.SYSTEM})
MANUAL_PAYMENT_ACTORS: frozenset[str] = frozenset(
    {Actor.ADMIN, Actor.CUSTOMER, Actor.SYSTEM}
)


class TransitionOutcome(BaseModel):
    """Result of a validated change; may be a no-op."""

    model_config = ConfigDict(frozen=True)

    old_status: str
    new_status: str
    old_payment_status: str
    new_payment_status: str

    @property
    def status_changed(self) -> bool:
        return self.old_status != self.new_status

    @property
    def payment_status_changed(self) -> bool:
        return self.old_payment_status != self.new_payment_status

    @property
    def changed(self) -> bool:
        return self.status_changed or self.payment_status_changed


class OrderStateMachine:
    def __init__(self, order_repository: IOrderRepository) -> None:
        self._order_repo = order_repository

    # ------------------------------------------------------------------
    # Validation (pure)
    # ------------------------------------------------------------------

    def evaluate(
        self,
        order: Order,
        requested_status: Optional[str] = None,
        requested_payment_status: Optional[str] = None,
        actor: str = Actor.ADMIN,
    ) -> TransitionOutcome:
        """Validate a requested change without touching storage.

        Payment-status rules are checked against the order as it is now,
        before any status change in the same request.

        Raises:
            IllegalStatusTransition, BackwardTransition,
            TerminalStateImmutable, PaymentStatusNotAdminControlled.
        """
        if requested_status is None and requested_payment_status is None:
            raise IllegalStatusTransition(
                "No status or payment status change was requested.",
                current_status=order.status,
                current_payment_status=order.payment_status,
            )

        new_status = order.status
        new_payment_status = order.payment_status

        if requested_status is not None:
            new_status = self._check_status(order, requested_status, actor)
            if (
                new_status == OrderStatus.DELIVERED
                and order.payment_method_kind == PaymentMethodKind.CASH_ON_DELIVERY
            ):
                new_payment_status = PaymentStatus.PAID

        if requested_payment_status is not None:
            requested = self._check_manual_payment(
                order, requested_payment_status, actor
            )
            if requested_status is None:
                new_payment_status = requested

        return TransitionOutcome(
            old_status=order.status,
            new_status=new_status,
            old_payment_status=order.payment_status,
            new_payment_status=new_payment_status,
        )

    def _check_status(self, order: Order, requested: str, actor: str) -> str:
        current = order.status
        context = {"current_status": current, "requested_status": requested}

        if requested not in OrderStatus.values:
            raise IllegalStatusTransition(
                f"Unknown order status '{requested}'.", **context
            )
        if current in TERMINAL_STATES:
            raise TerminalStateImmutable(
                f"Order is {current}; no further status changes are allowed.",
                **context,
            )
        if requested != OrderStatus.CANCELLED and actor not in STATUS_ACTORS:
            raise IllegalStatusTransition(
                f"Actor '{actor}' may only cancel an order.", **context
            )
        if requested == OrderStatus.CANCELLED:
            if current not in CANCELLABLE_STATES:
                raise IllegalStatusTransition(
                    f"Cannot cancel an order that is already {current}.", **context
                )
            return requested

        current_rank = STATUS_RANK[current]
        requested_rank = STATUS_RANK[requested]
        if requested_rank < current_rank:
            raise BackwardTransition(
                f"Cannot move an order back from {current} to {requested}.",
                **context,
            )
        if requested_rank == current_rank:
            raise IllegalStatusTransition(
                f"Order is already {current}.", **context
            )
        if requested_rank != current_rank + 1:
            raise IllegalStatusTransition(
                f"Cannot skip from {current} to {requested}.", **context
            )
        return requested

    def _check_manual_payment(self, order: Order, requested: str, actor: str) -> str:
        current = order.payment_status
        context = {
            "current_status": order.status,
            "current_payment_status": current,
            "requested_payment_status": requested,
        }

        if requested not in PaymentStatus.values:
            raise IllegalStatusTransition(
                f"Unknown payment status '{requested}'.", **context
            )
        if actor not in MANUAL_PAYMENT_ACTORS:
            raise PaymentStatusNotAdminControlled(
                f"Actor '{actor}' must use the payment signal path.", **context
            )
        if order.payment_method_kind == PaymentMethodKind.ONLINE_GATEWAY:
            raise PaymentStatusNotAdminControlled(
                "Payment status of a gateway order is set by the payment gateway only.",
                **context,
            )
        # Cancelled orders land here as well.
        if order.status != OrderStatus.DELIVERED:
            raise PaymentStatusNotAdminControlled(
                "Cash-on-delivery orders are marked paid on delivery.", **context
            )
        if requested != current:
            raise TerminalStateImmutable(
                "Payment status of a delivered cash-on-delivery order is closed.",
                **context,
            )
        return requested

    # ------------------------------------------------------------------
    # Persisting transitions
    # ------------------------------------------------------------------

    def transition(
        self,
        order: Order,
        requested_status: Optional[str] = None,
        requested_payment_status: Optional[str] = None,
        actor: str = Actor.ADMIN,
        user_id: Optional[int] = None,
        notes: str = "",
    ) -> Order:
        """Validate and persist a change on an already-locked order.

        A validated no-op (e.g. re-asserting the payment status of a
        delivered COD order) is returned unchanged without writing.
        """
        log = logger.bind(
            order_id=str(order.id),
            actor=actor,
            requested_status=requested_status,
            requested_payment_status=requested_payment_status,
        )
        try:
            outcome = self.evaluate(
                order, requested_status, requested_payment_status, actor
            )
        except TransitionError as exc:
            log.warning("order.transition_rejected", code=exc.code, **exc.context())
            raise

        if not outcome.changed:
            log.info("order.transition_noop")
            return order

        self._apply(order, outcome, actor=actor, user_id=user_id, notes=notes)
        log.info(
            "order.transitioned",
            old_status=outcome.old_status,
            new_status=outcome.new_status,
            old_payment_status=outcome.old_payment_status,
            new_payment_status=outcome.new_payment_status,
        )
        return order

    def set_payment_status(
        self,
        order: Order,
        payment_status: str,
        reference: str = "",
    ) -> Order:
        """Apply a payment-gateway outcome (``paid`` or ``failed``).

        Duplicate signals are no-ops. A ``failed`` arriving after ``paid``
        is ignored: a late failure cannot un-pay an order.

        Raises:
            IllegalStatusTransition: not a gateway order, or not a terminal
                gateway outcome.
            TerminalStateImmutable: the order is cancelled.
        """
        log = logger.bind(
            order_id=str(order.id),
            payment_status=payment_status,
            current_payment_status=order.payment_status,
        )
        context = {
            "current_status": order.status,
            "current_payment_status": order.payment_status,
            "requested_payment_status": payment_status,
        }
        if payment_status not in (PaymentStatus.PAID, PaymentStatus.FAILED):
            raise IllegalStatusTransition(
                "Gateway outcome must be 'paid' or 'failed'.", **context
            )
        if order.payment_method_kind != PaymentMethodKind.ONLINE_GATEWAY:
            log.warning("order.payment_signal_rejected", reason="not_gateway_order")
            raise IllegalStatusTransition(
                "Only gateway orders accept payment signals.", **context
            )
        if order.status == OrderStatus.CANCELLED:
            log.warning("order.payment_signal_rejected", reason="cancelled")
            raise TerminalStateImmutable(
                "Payment status of a cancelled order cannot change.", **context
            )
        if order.payment_status == payment_status:
            log.info("order.payment_signal_duplicate")
            return order
        if order.payment_status == PaymentStatus.PAID:
            log.warning("order.payment_signal_ignored", reason="already_paid")
            return order

        outcome = TransitionOutcome(
            old_status=order.status,
            new_status=order.status,
            old_payment_status=order.payment_status,
            new_payment_status=payment_status,
        )
        if reference:
            order.payment_reference = reference
        self._apply(
            order,
            outcome,
            actor=Actor.PAYMENT_GATEWAY,
            notes=f"Gateway reference {reference}" if reference else "",
            reference=reference,
        )
        log.info("order.payment_status_set")
        return order

    def _apply(
        self,
        order: Order,
        outcome: TransitionOutcome,
        actor: str,
        user_id: Optional[int] = None,
        notes: str = "",
        reference: str = "",
    ) -> None:
        order.status = outcome.new_status
        order.payment_status = outcome.new_payment_status

        if outcome.status_changed and outcome.new_status != OrderStatus.CANCELLED:
            order.add_domain_event(
                OrderStatusChanged(
                    aggregate_id=order.id,
                    old_status=outcome.old_status,
                    new_status=outcome.new_status,
                    actor=actor,
                )
            )
        if outcome.payment_status_changed:
            order.add_domain_event(
                OrderPaymentStatusChanged(
                    aggregate_id=order.id,
                    old_payment_status=outcome.old_payment_status,
                    new_payment_status=outcome.new_payment_status,
                    actor=actor,
                    reference=reference,
                )
            )

        self._order_repo.save(order)
        self._order_repo.add_history(
            order_id=order.id,
            status=outcome.new_status,
            payment_status=outcome.new_payment_status,
            old_status=outcome.old_status,
            old_payment_status=outcome.old_payment_status,
            actor=actor,
            user_id=user_id,
            notes=notes,
        )
