"""Integration tests for ``manage.py seed_data``."""

from io import StringIO

import pytest
from django.contrib.auth import get_user_model
from django.core.management import call_command

from modules.addresses.models import Address
from modules.inventory.models import ProductVariant
from modules.payments.models import PaymentMethod
from modules.vouchers.models import Voucher

pytestmark = pytest.mark.integration


def test_seed_creates_development_data():
    out = StringIO()
    call_command("seed_data", stdout=out)

    assert "Seed completed" in out.getvalue()
    assert get_user_model().objects.filter(username="admin", is_superuser=True).exists()
    assert Address.objects.filter(user__username="khachhang").count() == 2
    assert set(PaymentMethod.objects.values_list("code", flat=True)) == {"cod", "vnpay"}
    assert ProductVariant.objects.filter(sku="AT-1-M").exists()
    assert Voucher.objects.filter(code="GIAM10").exists()
    assert Voucher.objects.get(code="CHAOBAN").is_one_time_per_user


def test_seed_is_idempotent():
    call_command("seed_data", stdout=StringIO())
    variants = ProductVariant.objects.count()

    call_command("seed_data", stdout=StringIO())

    assert ProductVariant.objects.count() == variants
    assert Address.objects.count() == 2
