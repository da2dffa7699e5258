"""Stock consistency under concurrent requests.

Each worker thread gets its own database connection, so reservations are
real competing transactions against the same variant row. Uses
``TransactionTestCase`` so every thread sees committed data.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.db import connections
from django.test import TransactionTestCase

from modules.addresses.models import Address
from modules.addresses.repositories.django_repository import AddressDjangoRepository
from modules.addresses.services import AddressSnapshotService
from modules.inventory.models import Product, ProductVariant
from modules.inventory.repositories.django_repository import (
    StockLedgerDjangoRepository,
    VariantDjangoRepository,
)
from modules.orders.constants import Actor
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.exceptions import InsufficientStock
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.payments.models import PaymentMethod, PaymentMethodKind
from modules.payments.repositories.django_repository import (
    PaymentMethodDjangoRepository,
)
from modules.vouchers.repositories.django_repository import VoucherDjangoRepository

pytestmark = pytest.mark.integration

NUM_WORKERS = 10


def _service() -> OrderService:
    return OrderService(
        order_repository=OrderDjangoRepository(),
        variant_repository=VariantDjangoRepository(),
        stock_ledger=StockLedgerDjangoRepository(),
        address_snapshot_service=AddressSnapshotService(AddressDjangoRepository()),
        payment_method_repository=PaymentMethodDjangoRepository(),
        voucher_repository=VoucherDjangoRepository(),
    )


class ConcurrencyTestCase(TransactionTestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user("dongthoi", password="x")
        self.address = Address.objects.create(
            user=self.user,
            full_name="Lê Thị Cúc",
            phone="0987654321",
            address_line="8 Nguyễn Huệ",
            city="TP. Hồ Chí Minh",
        )
        self.method = PaymentMethod.objects.create(
            name="COD", code="cod", kind=PaymentMethodKind.CASH_ON_DELIVERY
        )
        self.product = Product.objects.create(name="Áo khoác", price=Decimal("350000"))

    def _variant(self, stock: int, sku: str = "AK-1-M") -> ProductVariant:
        return ProductVariant.objects.create(
            product=self.product, sku=sku, stock_quantity=stock
        )

    def _stock(self, variant: ProductVariant) -> int:
        variant.refresh_from_db()
        return variant.stock_quantity

    def _in_thread(self, fn, *args):
        try:
            return fn(*args)
        finally:
            connections.close_all()

    def _run_parallel(self, fn, count: int):
        with ThreadPoolExecutor(max_workers=NUM_WORKERS) as pool:
            futures = [pool.submit(self._in_thread, fn, i) for i in range(count)]
            return [future.result() for future in futures]

    def _create(self, variant: ProductVariant, quantity: int) -> str:
        dto = CreateOrderDTO(
            user_id=self.user.id,
            items=[CreateOrderItemDTO(variant_id=variant.id, quantity=quantity)],
            address_id=self.address.id,
            payment_method_id=self.method.id,
        )
        try:
            _service().create_order(dto)
        except InsufficientStock:
            return "insufficient"
        return "success"


class TestLedgerUnderContention(ConcurrencyTestCase):
    def test_no_oversell_single_units(self):
        """10 reservations of 1 against stock 5: exactly 5 succeed."""
        variant = self._variant(stock=5)
        ledger = StockLedgerDjangoRepository()

        results = self._run_parallel(lambda _: ledger.try_reserve(variant.id, 1).ok, 10)

        self.assertEqual(results.count(True), 5)
        self.assertEqual(self._stock(variant), 0)

    def test_no_oversell_multi_unit(self):
        """K reservations of q against N: floor(N/q) succeed, N mod q remains."""
        initial, quantity, workers = 7, 2, 8
        variant = self._variant(stock=initial)
        ledger = StockLedgerDjangoRepository()

        results = self._run_parallel(
            lambda _: ledger.try_reserve(variant.id, quantity).ok, workers
        )

        self.assertEqual(results.count(True), initial // quantity)
        self.assertEqual(self._stock(variant), initial - (initial // quantity) * quantity)

    def test_interleaved_reserve_and_release_never_go_negative(self):
        variant = self._variant(stock=3)
        ledger = StockLedgerDjangoRepository()

        def reserve_then_release(_):
            result = ledger.try_reserve(variant.id, 2)
            if result.ok:
                self.assertGreaterEqual(result.remaining, 0)
                ledger.release(variant.id, 2)
            return result.ok

        results = self._run_parallel(reserve_then_release, 12)

        self.assertGreaterEqual(results.count(True), 1)
        self.assertEqual(self._stock(variant), 3)


class TestConcurrentOrderCreation(ConcurrencyTestCase):
    def test_concurrent_orders_exhaust_stock(self):
        variant = self._variant(stock=5)

        results = self._run_parallel(lambda _: self._create(variant, 1), NUM_WORKERS)

        self.assertEqual(results.count("success"), 5)
        self.assertEqual(results.count("insufficient"), NUM_WORKERS - 5)
        self.assertEqual(self._stock(variant), 0)
        self.assertEqual(Order.objects.count(), 5)

    def test_reserve_release_scenario(self):
        """Buy the last 2 units, lose a race for 1 more, cancel, stock is back."""
        variant = self._variant(stock=2)
        service = _service()
        first = service.create_order(
            CreateOrderDTO(
                user_id=self.user.id,
                items=[CreateOrderItemDTO(variant_id=variant.id, quantity=2)],
                address_id=self.address.id,
                payment_method_id=self.method.id,
            )
        )
        self.assertEqual(self._stock(variant), 0)

        with ThreadPoolExecutor(max_workers=1) as pool:
            second = pool.submit(self._in_thread, self._create, variant, 1).result()
        self.assertEqual(second, "insufficient")

        service.cancel_order(first.id, actor=Actor.CUSTOMER, user_id=self.user.id)
        self.assertEqual(self._stock(variant), 2)
        self.assertEqual(Order.objects.count(), 1)
