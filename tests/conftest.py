from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from modules.addresses.models import Address
from modules.addresses.repositories.django_repository import AddressDjangoRepository
from modules.addresses.services import AddressSnapshotService
from modules.inventory.models import Product, ProductVariant
from modules.inventory.repositories.django_repository import (
    StockLedgerDjangoRepository,
    VariantDjangoRepository,
)
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.payments.models import PaymentMethod, PaymentMethodKind
from modules.payments.repositories.django_repository import (
    PaymentMethodDjangoRepository,
)
from modules.vouchers.repositories.django_repository import VoucherDjangoRepository


def build_order_service() -> OrderService:
    return OrderService(
        order_repository=OrderDjangoRepository(),
        variant_repository=VariantDjangoRepository(),
        stock_ledger=StockLedgerDjangoRepository(),
        address_snapshot_service=AddressSnapshotService(AddressDjangoRepository()),
        payment_method_repository=PaymentMethodDjangoRepository(),
        voucher_repository=VoucherDjangoRepository(),
    )


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Users and addresses
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer(django_user_model):
    return django_user_model.objects.create_user("khachhang", password="khachhang123")


@pytest.fixture()
def other_customer(django_user_model):
    return django_user_model.objects.create_user("khachhang2", password="khachhang123")


@pytest.fixture()
def staff_user(django_user_model):
    return django_user_model.objects.create_user(
        "nhanvien", password="nhanvien123", is_staff=True
    )


@pytest.fixture()
def address(customer):
    return Address.objects.create(
        user=customer,
        full_name="Nguyễn Văn An",
        phone="0901234567",
        address_line="12 Lê Lợi",
        ward="Bến Nghé",
        district="Quận 1",
        city="TP. Hồ Chí Minh",
        is_default=True,
    )


@pytest.fixture()
def province_address(customer):
    return Address.objects.create(
        user=customer,
        full_name="Nguyễn Văn An",
        phone="0901234567",
        address_line="45 Trần Phú",
        ward="Lộc Thọ",
        district="Nha Trang",
        city="Khánh Hòa",
    )


# ---------------------------------------------------------------------------
# Catalog and payment methods
# ---------------------------------------------------------------------------


@pytest.fixture()
def cod_method():
    return PaymentMethod.objects.create(
        name="Thanh toán khi nhận hàng",
        code="cod",
        kind=PaymentMethodKind.CASH_ON_DELIVERY,
    )


@pytest.fixture()
def gateway_method():
    return PaymentMethod.objects.create(
        name="VNPay",
        code="vnpay",
        kind=PaymentMethodKind.ONLINE_GATEWAY,
    )


@pytest.fixture()
def product():
    return Product.objects.create(name="Áo thun cổ tròn", price=Decimal("150000"))


@pytest.fixture()
def make_variant(product):
    def _make(sku, stock=10, price=None, **kwargs):
        return ProductVariant.objects.create(
            product=product,
            sku=sku,
            stock_quantity=stock,
            price=price,
            **kwargs,
        )

    return _make


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def order_service():
    return build_order_service()


@pytest.fixture()
def place_order(order_service, customer, address, cod_method):
    """Create an order through the service.

    ``lines`` is a list of ``(variant, quantity)`` pairs.
    """

    def _place(lines, user=None, delivery_address=None, payment_method=None, **kwargs):
        dto = CreateOrderDTO(
            user_id=(user or customer).id,
            items=[
                CreateOrderItemDTO(variant_id=variant.id, quantity=quantity)
                for variant, quantity in lines
            ],
            address_id=(delivery_address or address).id,
            payment_method_id=(payment_method or cod_method).id,
            **kwargs,
        )
        return order_service.create_order(dto)

    return _place
