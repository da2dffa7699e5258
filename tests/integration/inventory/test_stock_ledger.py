"""StockLedgerDjangoRepository against the database."""

from __future__ import annotations

from uuid import uuid4

import pytest

from modules.inventory.models import ProductVariant
from modules.inventory.repositories.django_repository import (
    StockLedgerDjangoRepository,
    VariantDjangoRepository,
)

pytestmark = pytest.mark.integration


@pytest.fixture()
def ledger():
    return StockLedgerDjangoRepository()


def _stock(variant) -> int:
    return ProductVariant.objects.values_list("stock_quantity", flat=True).get(pk=variant.pk)


class TestTryReserve:
    def test_reserves_and_reports_remaining(self, ledger, make_variant):
        variant = make_variant("AT-1-M", stock=5)

        result = ledger.try_reserve(variant.id, 3)

        assert result.ok is True
        assert result.remaining == 2
        assert _stock(variant) == 2

    def test_exact_remaining_quantity_can_be_reserved(self, ledger, make_variant):
        variant = make_variant("AT-1-L", stock=2)
        assert ledger.try_reserve(variant.id, 2).ok
        assert _stock(variant) == 0

    def test_rejects_more_than_available_without_writing(self, ledger, make_variant):
        variant = make_variant("AT-1-S", stock=2)

        result = ledger.try_reserve(variant.id, 3)

        assert result.ok is False
        assert result.remaining == 2
        assert _stock(variant) == 2

    def test_unknown_variant(self, ledger):
        result = ledger.try_reserve(uuid4(), 1)
        assert result.ok is False
        assert result.remaining is None

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_quantity_must_be_positive(self, ledger, make_variant, quantity):
        variant = make_variant("AT-2-M", stock=5)
        with pytest.raises(ValueError):
            ledger.try_reserve(variant.id, quantity)


class TestRelease:
    def test_release_adds_stock_back(self, ledger, make_variant):
        variant = make_variant("QJ-1-30", stock=1)
        ledger.try_reserve(variant.id, 1)

        assert ledger.release(variant.id, 1) is True
        assert _stock(variant) == 1

    def test_release_of_missing_variant_reports_false(self, ledger):
        assert ledger.release(uuid4(), 1) is False

    def test_release_all_returns_every_reservation(self, ledger, make_variant):
        a = make_variant("QJ-1-31", stock=4)
        b = make_variant("QJ-1-32", stock=4)
        ledger.try_reserve(a.id, 3)
        ledger.try_reserve(b.id, 1)

        ledger.release_all([(str(a.id), 3), (str(b.id), 1)])

        assert _stock(a) == 4
        assert _stock(b) == 4


class TestReads:
    def test_check_available(self, ledger, make_variant):
        variant = make_variant("SM-1-M", stock=3)
        assert ledger.check_available(variant.id, 3)
        assert not ledger.check_available(variant.id, 4)
        assert not ledger.check_available(uuid4(), 1)

    def test_get_available(self, ledger, make_variant):
        variant = make_variant("SM-1-L", stock=7)
        assert ledger.get_available(variant.id) == 7


class TestVariantRepository:
    def test_get_many_keys_by_string_id(self, make_variant):
        a = make_variant("GT-1-40")
        b = make_variant("GT-1-41")

        found = VariantDjangoRepository().get_many([a.id, b.id, uuid4()])

        assert set(found) == {str(a.id), str(b.id)}

    def test_variant_price_overrides_product_price(self, make_variant, product):
        plain = make_variant("GT-2-40")
        premium = make_variant("GT-2-41", price=990000)
        assert plain.unit_price == product.price
        assert premium.unit_price == 990000

    def test_soft_deleted_variant_is_not_sellable(self, make_variant):
        variant = make_variant("GT-2-42")
        variant.delete()
        assert not variant.is_sellable
