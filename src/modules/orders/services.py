"""Order service layer (Use Cases).

Sequences the stock ledger, the address snapshot service and the state
machine for the order lifecycle. All write operations are atomic: the
service defines the unit-of-work boundary.

Rules enforced here:
- Stock is reserved per line with the ledger's conditional update, in
  variant-id order; any failure releases every reservation made by the
  request before the error reaches the caller.
- The delivery address is snapshotted synchronously at creation.
- Totals, discount and shipping fee are computed once and frozen.
- Cancellation goes through the state machine first; stock is released
  only when that succeeds, exactly once, under the order row lock.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple
from uuid import UUID

import structlog
from django.db import DatabaseError, transaction

from modules.addresses.dtos import AddressUnavailable, DisplayAddressDTO
from modules.inventory.dtos import SellableVariantDTO
from modules.inventory.exceptions import (
    AtomicReservationFailure,
    InactiveVariant,
    InsufficientStock,
    VariantNotFound,
)
from modules.orders.constants import Actor, OrderStatus, PaymentStatus
from modules.orders.dtos import OrderItemOutputDTO, OrderQuoteDTO, QuoteLineDTO
from modules.orders.events import OrderCancelled, OrderCreated
from modules.orders.exceptions import IdempotencyKeyReused, OrderNotFound
from modules.orders.pricing import OrderTotals, shipping_fee_for
from modules.orders.state_machine import OrderStateMachine
from modules.payments.exceptions import PaymentMethodNotFound
from modules.vouchers.exceptions import VoucherNotFound
from modules.vouchers.services import VoucherService

if TYPE_CHECKING:
    from modules.addresses.services import AddressSnapshotService
    from modules.inventory.repositories.interfaces import (
        IStockLedger,
        IVariantRepository,
    )
    from modules.orders.dtos import CreateOrderDTO, OrderLinesDTO, QuoteOrderDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.payments.repositories.interfaces import IPaymentMethodRepository
    from modules.vouchers.models import Voucher
    from modules.vouchers.repositories.interfaces import IVoucherRepository

logger = structlog.get_logger(__name__)


class OrderService:
    """Application service for Order use-cases.

    Receives repositories and collaborators via constructor injection.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        variant_repository: IVariantRepository,
        stock_ledger: IStockLedger,
        address_snapshot_service: AddressSnapshotService,
        payment_method_repository: IPaymentMethodRepository,
        voucher_repository: IVoucherRepository,
        voucher_service: Optional[VoucherService] = None,
        state_machine: Optional[OrderStateMachine] = None,
    ) -> None:
        self._order_repo = order_repository
        self._variant_repo = variant_repository
        self._ledger = stock_ledger
        self._address_service = address_snapshot_service
        self._payment_method_repo = payment_method_repository
        self._voucher_repo = voucher_repository
        self._voucher_service = voucher_service or VoucherService(voucher_repository)
        self._state_machine = state_machine or OrderStateMachine(order_repository)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_order(self, dto: CreateOrderDTO) -> Order:
        """Create an order; see ``create_or_replay``."""
        order, _ = self.create_or_replay(dto)
        return order

    @transaction.atomic
    def create_or_replay(self, dto: CreateOrderDTO) -> Tuple[Order, bool]:
        """Create a new ``pending/unpaid`` order.

        Returns ``(order, created)``; ``created`` is ``False`` when the
        idempotency key matched an order this user already placed.

        Steps:
        1. Validate payment method, voucher and variants (no side effects).
        2. Reserve stock for each line, sorted by variant id.
        3. Snapshot the delivery address.
        4. Compute discount, shipping fee and totals.
        5. Persist order + lines + history + ``OrderCreated`` outbox event.

        Any failure after step 2 started releases every reservation made so
        far before the error propagates (the enclosing transaction is also
        rolled back).

        Raises:
            PaymentMethodNotFound, VoucherNotFound, VariantNotFound,
            InactiveVariant, InsufficientStock (incl.
            AtomicReservationFailure), AddressNotFound,
            VoucherNotApplicable, IdempotencyKeyReused.
        """
        log = logger.bind(user_id=dto.user_id)
        log.info("order.creation_started", item_count=len(dto.items))

        # 0. Idempotency check
        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(dto.idempotency_key)
            if existing:
                if existing.user_id != dto.user_id:
                    raise IdempotencyKeyReused(dto.idempotency_key)
                log.info(
                    "order.idempotency_hit",
                    order_id=str(existing.id),
                    key=dto.idempotency_key,
                )
                return existing, False

        # 1. Validate references
        payment_method = self._payment_method_repo.get_active(dto.payment_method_id)
        if payment_method is None:
            raise PaymentMethodNotFound(dto.payment_method_id)

        voucher = self._get_voucher(dto)
        catalog = self._load_sellable_variants(dto)
        lines = sorted(dto.items, key=lambda item: str(item.variant_id))

        # 2-5. Reserve, snapshot, price, persist
        reserved: List[Tuple[str, int]] = []
        try:
            for line in lines:
                self._reserve(line.variant_id, line.quantity)
                reserved.append((str(line.variant_id), line.quantity))

            snapshot = self._address_service.capture(dto.address_id, user_id=dto.user_id)

            repo_items = []
            for line in lines:
                variant = catalog[str(line.variant_id)]
                repo_items.append(
                    {
                        "variant_id": variant.variant_id,
                        "variant_sku": variant.sku,
                        "product_name": variant.product_name,
                        "quantity": line.quantity,
                        "unit_price": variant.unit_price,
                    }
                )
            line_totals = [item["quantity"] * item["unit_price"] for item in repo_items]

            discount = Decimal("0")
            if voucher is not None:
                discount = self._voucher_service.compute_discount(
                    voucher, sum(line_totals, Decimal("0")), user_id=dto.user_id
                )
            totals = OrderTotals.compute(
                line_totals,
                discount_amount=discount,
                shipping_fee=shipping_fee_for(snapshot.city),
            )

            order = self._order_repo.create(
                {
                    "user_id": dto.user_id,
                    "payment_method_id": payment_method.id,
                    "payment_method_kind": payment_method.kind,
                    "address_id": dto.address_id,
                    "address_snapshot": snapshot.to_storage(),
                    "voucher_id": voucher.id if voucher else None,
                    **totals.model_dump(),
                    "notes": dto.notes or "",
                    "idempotency_key": dto.idempotency_key,
                    "items": repo_items,
                }
            )
        except Exception:
            self._compensate(reserved, log)
            raise

        self._order_repo.add_history(
            order_id=order.id,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.UNPAID,
            actor=Actor.CUSTOMER,
            user_id=dto.user_id,
            notes="Order created",
        )
        order.add_domain_event(
            OrderCreated(
                aggregate_id=order.id,
                order_number=order.order_number,
                user_id=dto.user_id,
                final_total=str(order.final_total),
                items=[
                    OrderItemOutputDTO.from_entity(item).model_dump(mode="json")
                    for item in order.items.all()
                ],
            )
        )
        self._order_repo.save(order)

        log.info(
            "order.created",
            order_id=str(order.id),
            order_number=order.order_number,
            final_total=str(order.final_total),
        )
        return self._order_repo.get_by_id(str(order.id)) or order, True

    @transaction.atomic
    def cancel_order(
        self,
        order_id: UUID | str,
        actor: str,
        user_id: Optional[int] = None,
        notes: str = "",
    ) -> Order:
        """Cancel an order and give its stock back.

        The order row is locked first, so concurrent cancellations
        serialize and the second one fails on the terminal state instead
        of releasing stock twice.

        Raises:
            OrderNotFound: missing, or another customer's order.
            IllegalStatusTransition: already shipped.
            TerminalStateImmutable: already delivered or cancelled.
        """
        order = self._lock_visible_order(order_id, actor, user_id)
        previous_status = order.status
        log = logger.bind(order_id=str(order.id), actor=actor)

        self._state_machine.transition(
            order,
            requested_status=OrderStatus.CANCELLED,
            actor=actor,
            user_id=user_id,
            notes=notes or "Order cancelled",
        )

        released = []
        for item in sorted(order.items.all(), key=lambda i: str(i.variant_id)):
            self._ledger.release(item.variant_id, item.quantity)
            released.append({"variant_id": str(item.variant_id), "quantity": item.quantity})

        order.add_domain_event(
            OrderCancelled(
                aggregate_id=order.id,
                order_number=order.order_number,
                previous_status=previous_status,
                actor=actor,
                released=released,
            )
        )
        self._order_repo.save(order)

        log.info("order.cancelled", previous_status=previous_status, lines=len(released))
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def change_status(
        self,
        order_id: UUID | str,
        requested_status: str,
        actor: str,
        user_id: Optional[int] = None,
        notes: str = "",
    ) -> Order:
        """Move an order along its lifecycle.

        A request for ``cancelled`` is handled by ``cancel_order`` so the
        stock always comes back.
        """
        if requested_status == OrderStatus.CANCELLED:
            return self.cancel_order(order_id, actor=actor, user_id=user_id, notes=notes)

        order = self._lock_visible_order(order_id, actor, user_id)
        self._state_machine.transition(
            order,
            requested_status=requested_status,
            actor=actor,
            user_id=user_id,
            notes=notes,
        )
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def change_payment_status(
        self,
        order_id: UUID | str,
        requested_payment_status: str,
        actor: str,
        user_id: Optional[int] = None,
        notes: str = "",
    ) -> Order:
        """Manual payment-status change (admin path); always rule-checked."""
        order = self._lock_visible_order(order_id, actor, user_id)
        self._state_machine.transition(
            order,
            requested_payment_status=requested_payment_status,
            actor=actor,
            user_id=user_id,
            notes=notes,
        )
        return self._order_repo.get_by_id(str(order.id)) or order

    @transaction.atomic
    def record_gateway_payment(
        self,
        order_id: UUID | str,
        payment_status: str,
        reference: str = "",
    ) -> Order:
        """Entry point for the payment-gateway callback receiver."""
        order = self._order_repo.get_for_update(str(order_id))
        if order is None:
            raise OrderNotFound(order_id)
        self._state_machine.set_payment_status(order, payment_status, reference)
        return self._order_repo.get_by_id(str(order.id)) or order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def quote_order(self, dto: QuoteOrderDTO) -> OrderQuoteDTO:
        """Price an order the way ``create_order`` would, without placing it.

        Nothing is reserved and nothing is written. Stock is checked with
        the ledger's advisory ``check_available``, so a line reported in
        stock can still fail at creation time.

        Raises:
            VoucherNotFound, VariantNotFound, InactiveVariant,
            AddressNotFound, VoucherNotApplicable.
        """
        voucher = self._get_voucher(dto)
        catalog = self._load_sellable_variants(dto)
        snapshot = self._address_service.capture(dto.address_id, user_id=dto.user_id)

        lines = []
        for item in sorted(dto.items, key=lambda line: str(line.variant_id)):
            variant = catalog[str(item.variant_id)]
            lines.append(
                QuoteLineDTO(
                    variant_id=variant.variant_id,
                    variant_sku=variant.sku,
                    product_name=variant.product_name,
                    quantity=item.quantity,
                    unit_price=variant.unit_price,
                    line_total=variant.unit_price * item.quantity,
                    in_stock=self._ledger.check_available(item.variant_id, item.quantity),
                )
            )
        line_totals = [line.line_total for line in lines]

        discount = Decimal("0")
        if voucher is not None:
            discount = self._voucher_service.compute_discount(
                voucher, sum(line_totals, Decimal("0")), user_id=dto.user_id
            )
        totals = OrderTotals.compute(
            line_totals,
            discount_amount=discount,
            shipping_fee=shipping_fee_for(snapshot.city),
        )

        quote = OrderQuoteDTO(
            lines=lines, shipping_city=snapshot.city, **totals.model_dump()
        )
        logger.info(
            "order.quoted",
            user_id=dto.user_id,
            final_total=str(quote.final_total),
            can_fulfil=quote.can_fulfil,
        )
        return quote

    def get_order(self, order_id: UUID | str, user_id: Optional[int] = None) -> Order:
        """Retrieve a single order; restricted to ``user_id``'s orders when given.

        Raises:
            OrderNotFound: if the order does not exist or is not visible.
        """
        order = self._order_repo.get_by_id(str(order_id))
        if not order or (user_id is not None and order.user_id != user_id):
            raise OrderNotFound(order_id)
        return order

    def find_by_idempotency_key(self, key: str, user_id: int) -> Optional[Order]:
        """The order ``user_id`` already placed with ``key``, if any."""
        order = self._order_repo.get_by_idempotency_key(key)
        if order is None or order.user_id != user_id:
            return None
        return order

    def list_orders(
        self,
        filters: Optional[Dict[str, Any]] = None,
        user_id: Optional[int] = None,
    ):
        """Orders matching ``filters``; only ``user_id``'s orders when given."""
        filters = dict(filters or {})
        if user_id is not None:
            filters["user_id"] = user_id
        return self._order_repo.list(filters)

    def resolve_delivery_address(
        self, order: Order
    ) -> DisplayAddressDTO | AddressUnavailable:
        return self._address_service.resolve_for_display(order)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _get_voucher(self, dto: OrderLinesDTO) -> Optional[Voucher]:
        if not dto.voucher_id:
            return None
        voucher = self._voucher_repo.get_by_id(str(dto.voucher_id))
        if voucher is None:
            raise VoucherNotFound(dto.voucher_id)
        return voucher

    def _load_sellable_variants(
        self, dto: OrderLinesDTO
    ) -> Dict[str, SellableVariantDTO]:
        variants = self._variant_repo.get_many(item.variant_id for item in dto.items)
        catalog: Dict[str, SellableVariantDTO] = {}
        for item in dto.items:
            variant = variants.get(str(item.variant_id))
            if variant is None:
                raise VariantNotFound(item.variant_id)
            if not variant.is_sellable:
                raise InactiveVariant(item.variant_id)
            catalog[str(item.variant_id)] = SellableVariantDTO(
                variant_id=variant.id,
                sku=variant.sku,
                product_name=variant.product.name,
                unit_price=variant.unit_price,
            )
        return catalog

    def _reserve(self, variant_id: UUID, quantity: int) -> None:
        result = self._ledger.try_reserve(variant_id, quantity)
        if result.ok:
            return
        if result.remaining is not None and result.remaining >= quantity:
            # The conditional update missed although stock is there now.
            raise AtomicReservationFailure(variant_id, quantity, result.remaining)
        raise InsufficientStock(variant_id, quantity, result.remaining)

    def _compensate(self, reserved: List[Tuple[str, int]], log) -> None:
        if not reserved:
            return
        try:
            self._ledger.release_all(reserved)
        except DatabaseError:
            # The transaction rollback still restores the ledger.
            log.error("order.compensation_failed", reserved=len(reserved), exc_info=True)
            return
        log.info("order.reservations_released", reserved=len(reserved))

    def _lock_visible_order(
        self, order_id: UUID | str, actor: str, user_id: Optional[int]
    ) -> Order:
        order = self._order_repo.get_for_update(str(order_id))
        if order is None:
            raise OrderNotFound(order_id)
        if actor == Actor.CUSTOMER and order.user_id != user_id:
            raise OrderNotFound(order_id)
        return order
